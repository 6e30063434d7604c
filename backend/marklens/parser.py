"""
parser.py — CSV ingestion of assessment marks.

Input layout is fixed by column position, not by header names:

    studentId, studentName, subjectName, mark, assessmentDate (optional)

The header row only sets the minimum row width. Quoted fields are not
supported: a comma inside quotes still splits the field.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from marklens.config import INVALID_MARK_POLICIES

logger = logging.getLogger("marklens.parser")

SAMPLE_DATA_DIR = Path(__file__).parent.parent / "sample_data"

RECORD_COLUMNS = [
    "id",
    "student_id",
    "student_name",
    "subject_name",
    "mark",
    "assessment_date",
]
TEXT_COLUMNS = ("student_id", "student_name", "subject_name")

# Positions 0..3 must exist for a row to become a record.
REQUIRED_FIELDS = 4


def parse_marks_csv(
    text: str,
    invalid_mark_policy: str = "reject",
    now: Optional[datetime] = None,
) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Parse raw CSV text into candidate mark records.

    Returns (records, report). Records are JSON-safe dicts keyed by
    RECORD_COLUMNS; the report counts every accepted, dropped and repaired row.
    """
    if invalid_mark_policy not in INVALID_MARK_POLICIES:
        raise ValueError(
            f"Unknown invalid_mark_policy '{invalid_mark_policy}'. "
            f"Expected one of: {list(INVALID_MARK_POLICIES)}"
        )

    ingested_at = (now or datetime.now(timezone.utc)).isoformat()
    lines = [
        (number, line)
        for number, line in enumerate(text.split("\n"), 1)
        if line.strip()
    ]

    report: Dict[str, Any] = {
        "total_lines": len(lines),
        "header_fields": 0,
        "data_rows": 0,
        "accepted": 0,
        "dropped_short_rows": 0,
        "invalid_marks": 0,
        "coerced_marks": 0,
        "defaulted_dates": 0,
        "invalid_mark_policy": invalid_mark_policy,
        "issues": [],
    }

    if not lines:
        report["issues"].append({
            "type": "empty_data",
            "severity": "critical",
            "line": None,
            "message": "The uploaded file contains no data rows.",
        })
        return [], report

    header_width = len(lines[0][1].split(","))
    min_width = max(header_width, REQUIRED_FIELDS)
    report["header_fields"] = header_width
    report["data_rows"] = len(lines) - 1

    records: List[Dict[str, Any]] = []
    for number, line in lines[1:]:
        values = [v.strip() for v in line.split(",")]

        if len(values) < min_width:
            report["dropped_short_rows"] += 1
            report["issues"].append({
                "type": "short_row",
                "severity": "warning",
                "line": number,
                "message": f"Row has {len(values)} fields, expected at least {min_width}.",
            })
            continue

        mark = _parse_mark(values[3])
        if mark is None:
            if invalid_mark_policy == "reject":
                report["invalid_marks"] += 1
                report["issues"].append({
                    "type": "invalid_mark",
                    "severity": "warning",
                    "line": number,
                    "message": f"Mark '{values[3]}' is not a number; row rejected.",
                })
                continue
            if invalid_mark_policy == "zero":
                mark = 0.0
                report["coerced_marks"] += 1
                report["issues"].append({
                    "type": "invalid_mark",
                    "severity": "info",
                    "line": number,
                    "message": f"Mark '{values[3]}' is not a number; treated as 0.",
                })
            else:
                report["invalid_marks"] += 1
                report["issues"].append({
                    "type": "invalid_mark",
                    "severity": "info",
                    "line": number,
                    "message": f"Mark '{values[3]}' is not a number; excluded from statistics.",
                })

        raw_date = values[4] if len(values) > 4 else ""
        assessment_date = _parse_date(raw_date)
        if assessment_date is None:
            assessment_date = ingested_at
            report["defaulted_dates"] += 1
            if raw_date:
                report["issues"].append({
                    "type": "invalid_date",
                    "severity": "info",
                    "line": number,
                    "message": f"Date '{raw_date}' could not be parsed; using ingestion time.",
                })

        records.append({
            "id": str(uuid.uuid4()),
            "student_id": values[0],
            "student_name": values[1],
            "subject_name": values[2],
            "mark": mark,
            "assessment_date": assessment_date,
        })

    report["accepted"] = len(records)
    logger.info(
        "Parsed %d data rows: %d accepted, %d short, %d invalid marks",
        report["data_rows"],
        report["accepted"],
        report["dropped_short_rows"],
        report["invalid_marks"],
    )
    return records, report


def records_to_frame(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    Normalize mark records into a DataFrame with the fixed record columns.

    Marks become numeric (non-finite values become NaN), dates become UTC
    timestamps, and blank text fields become missing.
    """
    df = pd.DataFrame(list(records), columns=RECORD_COLUMNS)

    for col in TEXT_COLUMNS:
        df[col] = df[col].map(_clean_text).astype(object)

    df["mark"] = pd.to_numeric(df["mark"], errors="coerce").astype(float)
    df.loc[~np.isfinite(df["mark"]), "mark"] = np.nan

    df["assessment_date"] = pd.to_datetime(
        df["assessment_date"].astype(object), errors="coerce", utc=True, format="ISO8601"
    )
    return df


# ── Helpers ─────────────────────────────────────────────────────────

def _parse_mark(value: str) -> Optional[float]:
    try:
        mark = float(value)
    except ValueError:
        return None
    return mark if math.isfinite(mark) else None


def _parse_date(value: str) -> Optional[str]:
    if not value:
        return None
    parsed = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(parsed):
        return None
    return parsed.isoformat()


def _clean_text(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    text = str(value)
    return text if text.strip() else None
