"""
advice.py — Template-based study advice for a single student.

Blocks are emitted in a fixed order:
  1. one overall-performance tier (excellent / good_progress / needs_focus)
  2. weakest subject (first weak subject only), if any
  3. strongest subject (first strong subject only), if any
  4. universal study tips, always last

Pure functions: every call builds fresh lists from the templates below.
"""

from typing import Any, Dict, List, Optional, Sequence

from marklens.aggregation import RecordData, compute_student_performance
from marklens.config import Thresholds


# ── Template Library ────────────────────────────────────────────────

TIER_TEMPLATES = {
    "excellent": {
        "title": "Excellent Performance",
        "description": (
            "Results are consistently strong. Keep the momentum going and "
            "take on more challenging material."
        ),
        "tips": [
            "Work through advanced problem-solving exercises",
            "Help classmates; explaining a topic reinforces it",
            "Explore topics beyond the curriculum",
            "Take part in academic competitions",
        ],
    },
    "good_progress": {
        "title": "Good Progress",
        "description": (
            "Performance is on the right track. Consistent practice will "
            "lift results further."
        ),
        "tips": [
            "Keep a regular study schedule",
            "Review weak topics every week",
            "Practise with past papers",
            "Join a study group with peers",
        ],
    },
    "needs_focus": {
        "title": "Time to Focus",
        "description": (
            "Results are below where they should be. A structured plan "
            "will help turn them around."
        ),
        "tips": [
            "Study for 30 minutes daily without distractions",
            "Go back to the fundamentals first",
            "Ask the subject teacher for help",
            "Use active learning techniques such as self-testing",
        ],
    },
}

UNIVERSAL_TIPS = [
    "Study in a quiet, organised environment",
    "Take a short break every 25-30 minutes",
    "Sleep well; rest helps memory consolidation",
    "Eat healthy snacks while studying",
    "Review notes within 24 hours of each lesson",
]


def _tier_for(overall_average: float, thresholds: Thresholds) -> str:
    if overall_average >= thresholds.excellent:
        return "excellent"
    if overall_average >= thresholds.good_progress:
        return "good_progress"
    return "needs_focus"


def _weak_subject_block(subject: str) -> Dict[str, Any]:
    return {
        "category": "weak_subject",
        "title": f"Improve {subject}",
        "description": f"{subject} needs attention. These steps will help turn it around.",
        "tips": [
            f"Set aside extra time for {subject} each week",
            "Break complex topics into smaller parts",
            "Use diagrams and other visual aids",
            "Practise problems daily",
            "Watch tutorial videos for difficult concepts",
        ],
        "subject": subject,
    }


def _strong_subject_block(subject: str) -> Dict[str, Any]:
    return {
        "category": "strong_subject",
        "title": f"Build on {subject}",
        "description": f"{subject} is a clear strength. Keep building on it.",
        "tips": [
            f"Keep up the current approach in {subject}",
            "Help others understand the subject",
            "Explore advanced topics",
            "Apply the concepts to real-world problems",
            "Consider the subject for future studies",
        ],
        "subject": subject,
    }


def generate_advice(
    overall_average: float,
    weak_subjects: Sequence[str],
    strong_subjects: Sequence[str],
    thresholds: Optional[Thresholds] = None,
) -> List[Dict[str, Any]]:
    """Build the ordered advice blocks for one student's aggregated numbers."""
    thresholds = thresholds or Thresholds()

    tier = _tier_for(overall_average, thresholds)
    template = TIER_TEMPLATES[tier]
    advice = [{
        "category": tier,
        "title": template["title"],
        "description": template["description"],
        "tips": list(template["tips"]),
    }]

    if weak_subjects:
        advice.append(_weak_subject_block(weak_subjects[0]))

    if strong_subjects:
        advice.append(_strong_subject_block(strong_subjects[0]))

    advice.append({
        "category": "universal",
        "title": "Universal Study Tips",
        "description": "These strategies work for any subject.",
        "tips": list(UNIVERSAL_TIPS),
    })
    return advice


def build_student_advice(
    data: RecordData,
    student_id: str,
    thresholds: Optional[Thresholds] = None,
) -> Optional[Dict[str, Any]]:
    """
    Advice bundle for one student, or None if the student is unknown.

    Weak and strong subjects are judged on the student's own subject
    averages, not on cohort averages.
    """
    thresholds = thresholds or Thresholds()
    profile = compute_student_performance(data, student_id, thresholds)
    if profile is None:
        return None

    bundle = {
        "student_id": profile["student_id"],
        "student_name": profile["student_name"],
        "status": profile["status"],
        "overall_average": profile["overall_average"],
        "weak_subjects": profile["weak_subjects"],
        "strong_subjects": profile["strong_subjects"],
        "advice": [],
    }
    if profile["overall_average"] is not None:
        bundle["advice"] = generate_advice(
            profile["overall_average"],
            profile["weak_subjects"],
            profile["strong_subjects"],
            thresholds,
        )
    return bundle
