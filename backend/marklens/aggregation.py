"""
aggregation.py — Cohort statistics over a snapshot of mark records.

Computes:
- Per-subject stats (mean, max, min, count) in first-appearance order
- Per-student rankings (stable, descending by mean) with competition rank
- At-risk subset (strictly below a threshold)
- Individual student performance profiles (subject trends, weak/strong lists)

Every function accepts either an iterable of mark records or a DataFrame
already produced by ``records_to_frame``. Nothing is cached between calls.
"""

from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from marklens.config import Thresholds
from marklens.parser import records_to_frame

PLACEHOLDER_NAME = "Student"

RecordData = Union[pd.DataFrame, Iterable[Dict[str, Any]]]


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val) -> Optional[float]:
    """Convert to float, or None for missing/NaN/inf. No rounding."""
    try:
        v = float(val)
        return None if np.isnan(v) or np.isinf(v) else v
    except (TypeError, ValueError):
        return None


def _ensure_frame(data: RecordData) -> pd.DataFrame:
    if isinstance(data, pd.DataFrame):
        return data
    return records_to_frame(data)


def _mean(values) -> float:
    """Divide before summing so the mean of finite marks stays finite."""
    values = list(values)
    return sum(v / len(values) for v in values)


def _ranking_key(entry: Dict[str, Any]):
    # Missing averages sort after every real one
    return (entry["average"] is not None, entry["average"] or 0.0)


def _last_name(names: pd.Series) -> str:
    names = names.dropna()
    return str(names.iloc[-1]) if not names.empty else PLACEHOLDER_NAME


# ── Subject Statistics ──────────────────────────────────────────────

def compute_subject_stats(data: RecordData) -> List[Dict[str, Any]]:
    """Per-subject mean/max/min/count, skipping records without subject or mark."""
    df = _ensure_frame(data)
    valid = df[df["subject_name"].notna() & df["mark"].notna()]

    subjects = []
    for subject, marks in valid.groupby("subject_name", sort=False)["mark"]:
        subjects.append({
            "subject": str(subject),
            "average": _safe_float(_mean(marks)),
            "highest": _safe_float(marks.max()),
            "lowest": _safe_float(marks.min()),
            "count": int(len(marks)),
        })
    return subjects


# ── Student Rankings ────────────────────────────────────────────────

def compute_student_rankings(data: RecordData) -> List[Dict[str, Any]]:
    """
    Rank students by the mean of all their marks, highest first.

    Students with equal means keep the order in which they first appear.
    The display name is the last one seen for the student.
    """
    df = _ensure_frame(data)
    valid = df[
        df["student_id"].notna() & df["student_name"].notna() & df["mark"].notna()
    ]

    rankings = []
    for student_id, group in valid.groupby("student_id", sort=False):
        # May overflow to inf, reported as None
        total = sum(float(m) for m in group["mark"])
        count = len(group)
        rankings.append({
            "student_id": str(student_id),
            "student_name": str(group["student_name"].iloc[-1]),
            "average": _safe_float(_mean(group["mark"])),
            "total_marks": _safe_float(total),
            "mark_count": int(count),
        })

    # list.sort is stable, including with reverse=True
    rankings.sort(key=_ranking_key, reverse=True)

    if rankings:
        ranks = pd.Series([s["average"] for s in rankings]).rank(
            ascending=False, method="min", na_option="bottom"
        )
        for student, rank in zip(rankings, ranks):
            student["rank"] = int(rank)

    return rankings


def filter_at_risk(
    rankings: List[Dict[str, Any]], threshold: float = 50.0
) -> List[Dict[str, Any]]:
    """Students whose mean is strictly below the threshold, in ranking order."""
    return [s for s in rankings if s["average"] is not None and s["average"] < threshold]


# ── Cohort Overview ─────────────────────────────────────────────────

def analyze_cohort(
    data: RecordData, thresholds: Optional[Thresholds] = None
) -> Dict[str, Any]:
    """
    One aggregation pass: subject stats, rankings and the at-risk subset.

    ``status`` separates an empty snapshot (``no_records``) from one where
    every record was unusable (``no_valid_records``).
    """
    thresholds = thresholds or Thresholds()
    df = _ensure_frame(data)

    subjects = compute_subject_stats(df)
    rankings = compute_student_rankings(df)
    at_risk = filter_at_risk(rankings, thresholds.at_risk)

    has_mark = df["mark"].notna()
    usable = has_mark & (
        df["subject_name"].notna()
        | (df["student_id"].notna() & df["student_name"].notna())
    )
    usable_count = int(usable.sum())

    if df.empty:
        status = "no_records"
    elif not subjects and not rankings:
        status = "no_valid_records"
    else:
        status = "ok"

    return {
        "status": status,
        "subjects": subjects,
        "rankings": rankings,
        "at_risk": at_risk,
        "summary": {
            "total_records": int(len(df)),
            "usable_records": usable_count,
            "skipped_records": int(len(df)) - usable_count,
            "total_students": len(rankings),
            "total_subjects": len(subjects),
            "at_risk_count": len(at_risk),
            "cohort_average": _safe_float(_mean(df.loc[usable, "mark"])) if usable_count else None,
            "at_risk_threshold": thresholds.at_risk,
        },
    }


def list_students(data: RecordData) -> List[Dict[str, Any]]:
    """Distinct students in first-appearance order, for a student selector."""
    df = _ensure_frame(data)
    valid = df[df["student_id"].notna()]
    return [
        {
            "student_id": str(student_id),
            "student_name": _last_name(group["student_name"]),
            "record_count": int(len(group)),
        }
        for student_id, group in valid.groupby("student_id", sort=False)
    ]


# ── Student Performance ─────────────────────────────────────────────

def _subject_trend(marks: List[float], margin: float) -> str:
    if len(marks) < 2:
        return "stable"
    latest = marks[-1]
    previous_average = _mean(marks[:-1])
    if latest > previous_average + margin:
        return "up"
    if latest < previous_average - margin:
        return "down"
    return "stable"


def compute_student_performance(
    data: RecordData,
    student_id: str,
    thresholds: Optional[Thresholds] = None,
) -> Optional[Dict[str, Any]]:
    """
    Per-subject breakdown for one student.

    Returns None when the student has no records at all, and a profile with
    status ``no_data`` when none of their records carry a subject and mark.
    """
    thresholds = thresholds or Thresholds()
    df = _ensure_frame(data)

    student_df = df[df["student_id"] == str(student_id)]
    if student_df.empty:
        return None

    profile: Dict[str, Any] = {
        "student_id": str(student_id),
        "student_name": _last_name(student_df["student_name"]),
        "status": "ok",
        "overall_average": None,
        "subjects": [],
        "weakest_subject": None,
        "strongest_subject": None,
        "weak_subjects": [],
        "strong_subjects": [],
    }

    valid = student_df[student_df["subject_name"].notna() & student_df["mark"].notna()]
    subjects = []
    for subject, group in valid.groupby("subject_name", sort=False):
        ordered = group.sort_values("assessment_date", kind="stable", na_position="last")
        marks = [float(m) for m in ordered["mark"]]
        subjects.append({
            "subject": str(subject),
            "average": _mean(marks),
            "latest_mark": marks[-1],
            "trend": _subject_trend(marks, thresholds.trend_margin),
            "assessment_count": len(marks),
        })

    if not subjects:
        profile["status"] = "no_data"
        return profile

    # min/max return the first subject on ties
    profile["overall_average"] = _mean(s["average"] for s in subjects)
    profile["weakest_subject"] = min(subjects, key=lambda s: s["average"])["subject"]
    profile["strongest_subject"] = max(subjects, key=lambda s: s["average"])["subject"]
    profile["weak_subjects"] = [
        s["subject"] for s in subjects if s["average"] < thresholds.weak_subject
    ]
    profile["strong_subjects"] = [
        s["subject"] for s in subjects if s["average"] >= thresholds.strong_subject
    ]
    profile["subjects"] = sorted(subjects, key=lambda s: s["average"])

    return profile
