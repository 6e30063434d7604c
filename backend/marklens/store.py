"""
store.py — Record store adapters for persisted mark records.

The pipeline only needs two capabilities from a store:
- write a batch of records, reporting success/failure per record
- list the whole collection, paging past the per-request limit

InMemoryRecordStore backs local runs and tests. HttpRecordStore talks to a
hosted collection service over httpx, using camelCase field names on the wire.
"""

import logging
import threading
import uuid
from typing import Any, Dict, Iterable, List, Optional

import httpx

from marklens.config import Settings, get_settings

logger = logging.getLogger("marklens.store")

DEFAULT_PAGE_SIZE = 1000

# record key → wire field name
WIRE_FIELDS = {
    "id": "_id",
    "student_id": "studentId",
    "student_name": "studentName",
    "subject_name": "subjectName",
    "mark": "mark",
    "assessment_date": "assessmentDate",
}


class RecordStoreError(Exception):
    """Raised when the store cannot accept or return records."""


def to_wire(record: Dict[str, Any]) -> Dict[str, Any]:
    return {WIRE_FIELDS[k]: v for k, v in record.items() if k in WIRE_FIELDS}


def from_wire(item: Dict[str, Any]) -> Dict[str, Any]:
    return {key: item.get(wire) for key, wire in WIRE_FIELDS.items()}


def _matches(record: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(record.get(k) == v for k, v in filters.items())


class RecordStore:
    """Base adapter. Subclasses implement ``create`` and ``list_records``."""

    page_size = DEFAULT_PAGE_SIZE

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def list_records(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        skip: int = 0,
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def create_many(self, records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Store a batch of records. A failing record is reported and skipped;
        the rest of the batch is still written.
        """
        records = list(records)
        failures: List[Dict[str, Any]] = []
        for record in records:
            try:
                self.create(record)
            except RecordStoreError as exc:
                logger.warning("Failed to store record %s: %s", record.get("id"), exc)
                failures.append({"id": record.get("id"), "error": str(exc)})

        return {
            "requested": len(records),
            "stored": len(records) - len(failures),
            "failed": len(failures),
            "failures": failures,
        }

    def list_all(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch every matching record, one page at a time."""
        items: List[Dict[str, Any]] = []
        skip = 0
        while True:
            page = self.list_records(filters, limit=self.page_size, skip=skip)["items"]
            items.extend(page)
            if len(page) < self.page_size:
                break
            skip += len(page)
        return items


class InMemoryRecordStore(RecordStore):
    """Insertion-ordered, process-local store. Batches are written atomically."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        self.page_size = page_size
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            record_id = record.get("id") or str(uuid.uuid4())
            if record_id in self._records:
                raise RecordStoreError(f"Record '{record_id}' already exists.")
            stored = dict(record, id=record_id)
            self._records[record_id] = stored
            return dict(stored)

    def create_many(self, records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        # Hold the lock for the whole batch so concurrent uploads never interleave.
        with self._lock:
            return super().create_many(records)

    def list_records(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        skip: int = 0,
    ) -> Dict[str, Any]:
        with self._lock:
            matches = [dict(r) for r in self._records.values() if _matches(r, filters)]
        return {"items": matches[skip:skip + limit], "total": len(matches)}

    def clear(self):
        with self._lock:
            self._records.clear()


class HttpRecordStore(RecordStore):
    """Adapter for a hosted generic collection service."""

    def __init__(
        self,
        base_url: str,
        collection: str = "studentmarks",
        api_key: str = "",
        timeout: float = 20.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.page_size = page_size
        self.collection = collection
        self._items_path = f"/collections/{collection}/items"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = self._client.post(self._items_path, json=to_wire(record))
            res.raise_for_status()
            body = res.json() if res.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            raise RecordStoreError(
                f"Could not store record '{record.get('id')}' in '{self.collection}': {exc}"
            ) from exc

        item = body.get("item", body) if isinstance(body, dict) else {}
        return from_wire(item) if item else dict(record)

    def list_records(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        skip: int = 0,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit, "skip": skip}
        for key, value in (filters or {}).items():
            params[WIRE_FIELDS.get(key, key)] = value

        try:
            res = self._client.get(self._items_path, params=params)
            res.raise_for_status()
            body = res.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RecordStoreError(f"Could not list '{self.collection}': {exc}") from exc

        items = [from_wire(item) for item in body.get("items", [])]
        return {"items": items, "total": body.get("total", len(items))}

    def close(self):
        self._client.close()


# ── Process-wide store ──────────────────────────────────────────────

_store: Optional[RecordStore] = None
_store_lock = threading.Lock()


def build_store(settings: Settings) -> RecordStore:
    if settings.record_store_url:
        logger.info(
            "Using hosted record store at %s (collection '%s')",
            settings.record_store_url,
            settings.record_store_collection,
        )
        return HttpRecordStore(
            settings.record_store_url,
            collection=settings.record_store_collection,
            api_key=settings.record_store_api_key,
            timeout=settings.record_store_timeout,
            page_size=settings.page_size,
        )
    logger.info("RECORD_STORE_URL not set; using in-memory record store")
    return InMemoryRecordStore(page_size=settings.page_size)


def get_store() -> RecordStore:
    """Return the store shared by all requests, creating it on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = build_store(get_settings())
        return _store
