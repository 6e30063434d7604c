"""
Upload routes — CSV upload, parse preview, and ingestion into the record store.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from marklens.config import Settings, get_settings
from marklens.ingest import analyze_store, ingest_csv
from marklens.parser import parse_marks_csv
from marklens.store import RecordStore, RecordStoreError, get_store

logger = logging.getLogger("marklens.routes.upload")

router = APIRouter()

PREVIEW_ROWS = 10


async def _read_csv_text(file: UploadFile) -> str:
    ext = Path(file.filename or "").suffix.lower()
    if ext != ".csv":
        raise HTTPException(400, f"Unsupported file type: {ext or 'none'}. Upload a CSV file.")

    raw = await file.read()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(400, f"Could not decode '{file.filename}' as UTF-8 text.")


@router.post("/preview")
async def preview_upload(
    file: UploadFile = File(...),
    settings: Settings = Depends(get_settings),
):
    """Parse a CSV without storing it. Returns the parse report and first rows."""
    text = await _read_csv_text(file)
    records, report = await run_in_threadpool(
        parse_marks_csv, text, invalid_mark_policy=settings.invalid_mark_policy
    )
    return {
        "filename": file.filename,
        "parse_report": report,
        "preview": records[:PREVIEW_ROWS],
    }


@router.post("/file")
async def upload_file(
    file: UploadFile = File(...),
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """
    Upload a marks CSV: parse, store every accepted row, then re-run the
    cohort analysis over the full stored collection.
    """
    text = await _read_csv_text(file)

    try:
        result = await run_in_threadpool(ingest_csv, text, store, settings)
    except RecordStoreError as e:
        logger.exception("Upload of '%s' failed", file.filename)
        raise HTTPException(502, f"Record store unavailable: {str(e)}")

    if result["parse_report"]["data_rows"] == 0:
        raise HTTPException(400, "The uploaded file contains no data rows.")

    # Rows are already stored here, so the reports go back with the error.
    try:
        analysis = await run_in_threadpool(analyze_store, store, settings)
    except RecordStoreError as e:
        logger.exception("Analysis after upload of '%s' failed", file.filename)
        raise HTTPException(502, {
            "message": f"Records were stored but could not be re-read for analysis: {str(e)}",
            "filename": file.filename,
            "parse_report": result["parse_report"],
            "write_report": result["write_report"],
            "analysis": None,
        })

    return {
        "filename": file.filename,
        "parse_report": result["parse_report"],
        "write_report": result["write_report"],
        "analysis": analysis,
    }
