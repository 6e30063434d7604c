"""
ingest.py — Upload and analysis flows on top of a record store.
"""

import logging
import threading
from typing import Any, Dict, Optional

from marklens.aggregation import analyze_cohort
from marklens.config import Settings, get_settings
from marklens.parser import parse_marks_csv
from marklens.store import RecordStore

logger = logging.getLogger("marklens.ingest")

# One upload at a time.
_upload_lock = threading.Lock()


def ingest_csv(
    text: str, store: RecordStore, settings: Optional[Settings] = None
) -> Dict[str, Any]:
    """Parse CSV text and write the accepted records to the store as one batch."""
    settings = settings or get_settings()
    records, parse_report = parse_marks_csv(
        text, invalid_mark_policy=settings.invalid_mark_policy
    )

    with _upload_lock:
        write_report = store.create_many(records)

    if write_report["failed"]:
        logger.warning(
            "Upload stored %d of %d records (%d failed)",
            write_report["stored"],
            write_report["requested"],
            write_report["failed"],
        )
    else:
        logger.info("Upload stored %d records", write_report["stored"])

    return {"parse_report": parse_report, "write_report": write_report}


def analyze_store(store: RecordStore, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Aggregate over a fresh snapshot of the store."""
    settings = settings or get_settings()
    return analyze_cohort(store.list_all(), settings.thresholds)
