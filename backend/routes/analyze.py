"""
Analyze routes — cohort statistics, student profiles and advice.

Each request aggregates over a fresh snapshot of the record store.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from marklens.advice import build_student_advice
from marklens.aggregation import analyze_cohort, compute_student_performance, list_students
from marklens.config import Settings, get_settings
from marklens.store import RecordStore, RecordStoreError, get_store

logger = logging.getLogger("marklens.routes.analyze")

router = APIRouter()


def _snapshot(store: RecordStore) -> List[Dict[str, Any]]:
    try:
        return store.list_all()
    except RecordStoreError as e:
        logger.exception("Could not fetch records")
        raise HTTPException(502, f"Record store unavailable: {str(e)}")


@router.get("/cohort")
def cohort(
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Subject statistics, student rankings and the at-risk list."""
    return analyze_cohort(_snapshot(store), settings.thresholds)


@router.get("/students")
def students(store: RecordStore = Depends(get_store)):
    """Distinct students, for the student selector."""
    return {"students": list_students(_snapshot(store))}


@router.get("/student/{student_id}")
def student_profile(
    student_id: str,
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Per-subject averages, latest marks and trends for one student."""
    result = compute_student_performance(_snapshot(store), student_id, settings.thresholds)
    if result is None:
        raise HTTPException(404, f"Student '{student_id}' not found.")
    return result


@router.get("/advice/{student_id}")
def student_advice(
    student_id: str,
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Personalised advice blocks for one student."""
    result = build_student_advice(_snapshot(store), student_id, settings.thresholds)
    if result is None:
        raise HTTPException(404, f"Student '{student_id}' not found.")
    return result
