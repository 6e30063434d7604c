"""
Report routes — Excel export of the current cohort analysis.
"""

import logging
import tempfile
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from marklens.config import Settings, get_settings
from marklens.export import generate_excel_export
from marklens.ingest import analyze_store
from marklens.store import RecordStore, RecordStoreError, get_store

logger = logging.getLogger("marklens.routes.reports")

router = APIRouter()

REPORTS_DIR = Path(tempfile.gettempdir()) / "marklens_reports"


def _safe_unlink(path: str):
    """Best-effort file deletion after response is sent."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not delete temporary report %s", path)


@router.get("/excel")
def excel_export(
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Export subject stats, rankings and at-risk students as an Excel workbook."""
    try:
        analysis = analyze_store(store, settings)
    except RecordStoreError as e:
        logger.exception("Could not fetch records for export")
        raise HTTPException(502, f"Record store unavailable: {str(e)}")

    if analysis["status"] == "no_records":
        raise HTTPException(404, "No records uploaded yet.")

    REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    report_id = str(uuid.uuid4())[:8]
    output_path = REPORTS_DIR / f"marklens_export_{report_id}.xlsx"

    generate_excel_export(str(output_path), analysis, app_name=settings.app_name)

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"{settings.app_name}_Export_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
