"""
Tests for marklens/store.py — in-memory store, hosted store over a mock transport.
"""

import json
import os
import sys
import threading

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from marklens.config import Settings
from marklens.store import (
    HttpRecordStore,
    InMemoryRecordStore,
    RecordStoreError,
    build_store,
    from_wire,
    to_wire,
)


def _record(record_id, student_id="S1", subject="Math", mark=70.0):
    return {
        "id": record_id,
        "student_id": student_id,
        "student_name": "Alice",
        "subject_name": subject,
        "mark": mark,
        "assessment_date": "2024-01-15T00:00:00+00:00",
    }


class TestWireFormat:
    def test_to_wire_uses_camel_case(self):
        wire = to_wire(_record("r1"))
        assert wire == {
            "_id": "r1",
            "studentId": "S1",
            "studentName": "Alice",
            "subjectName": "Math",
            "mark": 70.0,
            "assessmentDate": "2024-01-15T00:00:00+00:00",
        }

    def test_from_wire_ignores_service_fields(self):
        item = dict(to_wire(_record("r1")), _createdDate="2024-01-16", _owner="x")
        assert from_wire(item) == _record("r1")


class TestInMemoryRecordStore:
    """Tests for the process-local store."""

    def test_create_many_reports_counts(self):
        store = InMemoryRecordStore()
        report = store.create_many([_record("r1"), _record("r2")])
        assert report == {"requested": 2, "stored": 2, "failed": 0, "failures": []}

    def test_duplicate_id_fails_without_stopping_batch(self):
        store = InMemoryRecordStore()
        store.create(_record("r1"))
        report = store.create_many([_record("r1"), _record("r2")])
        assert report["stored"] == 1
        assert report["failed"] == 1
        assert report["failures"][0]["id"] == "r1"
        assert [r["id"] for r in store.list_all()] == ["r1", "r2"]

    def test_list_all_pages_past_page_size(self):
        store = InMemoryRecordStore(page_size=3)
        store.create_many([_record(f"r{i}") for i in range(10)])
        page = store.list_records(limit=3)
        assert len(page["items"]) == 3
        assert page["total"] == 10
        assert [r["id"] for r in store.list_all()] == [f"r{i}" for i in range(10)]

    def test_list_all_exact_multiple_of_page_size(self):
        store = InMemoryRecordStore(page_size=2)
        store.create_many([_record(f"r{i}") for i in range(4)])
        assert len(store.list_all()) == 4

    def test_filters(self):
        store = InMemoryRecordStore()
        store.create_many([_record("r1", "S1"), _record("r2", "S2"), _record("r3", "S1")])
        assert [r["id"] for r in store.list_all({"student_id": "S1"})] == ["r1", "r3"]

    def test_returned_records_are_copies(self):
        store = InMemoryRecordStore()
        store.create(_record("r1"))
        store.list_all()[0]["mark"] = 0
        assert store.list_all()[0]["mark"] == 70.0

    def test_concurrent_batches_do_not_interleave(self):
        store = InMemoryRecordStore()
        batches = [[_record(f"b{b}-{i}") for i in range(50)] for b in range(4)]
        threads = [threading.Thread(target=store.create_many, args=(batch,)) for batch in batches]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = [r["id"] for r in store.list_all()]
        assert len(ids) == 200
        for start in range(0, 200, 50):
            prefixes = {record_id.split("-")[0] for record_id in ids[start:start + 50]}
            assert len(prefixes) == 1


class FakeCollectionService:
    """Minimal in-process stand-in for the hosted collection API."""

    def __init__(self, fail_ids=()):
        self.items = []
        self.fail_ids = set(fail_ids)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            item = json.loads(request.content)
            if item["_id"] in self.fail_ids:
                return httpx.Response(500, json={"message": "insert failed"})
            self.items.append(item)
            return httpx.Response(200, json={"item": item})

        params = request.url.params
        limit = min(int(params["limit"]), 1000)
        skip = int(params["skip"])
        matches = [
            item for item in self.items
            if all(item.get(k) == v for k, v in params.items() if k not in ("limit", "skip"))
        ]
        return httpx.Response(200, json={"items": matches[skip:skip + limit], "total": len(matches)})


@pytest.fixture
def service():
    return FakeCollectionService()


@pytest.fixture
def http_store(service):
    store = HttpRecordStore(
        "https://records.test/api/",
        collection="studentmarks",
        api_key="secret",
        page_size=2,
        transport=httpx.MockTransport(service),
    )
    yield store
    store.close()


class TestHttpRecordStore:
    """Tests for the hosted-collection adapter."""

    def test_create_posts_wire_record(self, http_store, service):
        stored = http_store.create(_record("r1"))
        request = service.requests[0]
        assert request.url.path == "/api/collections/studentmarks/items"
        assert request.headers["Authorization"] == "Bearer secret"
        assert json.loads(request.content)["studentId"] == "S1"
        assert stored == _record("r1")

    def test_list_all_pages(self, http_store, service):
        http_store.create_many([_record(f"r{i}") for i in range(5)])
        records = http_store.list_all()
        assert [r["id"] for r in records] == [f"r{i}" for i in range(5)]
        gets = [r for r in service.requests if r.method == "GET"]
        assert [r.url.params["skip"] for r in gets] == ["0", "2", "4"]

    def test_filters_use_wire_names(self, http_store, service):
        http_store.create_many([_record("r1", "S1"), _record("r2", "S2")])
        records = http_store.list_all({"student_id": "S2"})
        assert [r["id"] for r in records] == ["r2"]
        assert service.requests[-1].url.params["studentId"] == "S2"

    def test_create_many_reports_failures(self):
        service = FakeCollectionService(fail_ids={"r2"})
        store = HttpRecordStore("https://records.test", transport=httpx.MockTransport(service))
        report = store.create_many([_record("r1"), _record("r2"), _record("r3")])
        assert report["stored"] == 2
        assert report["failed"] == 1
        assert report["failures"][0]["id"] == "r2"
        assert [item["_id"] for item in service.items] == ["r1", "r3"]

    def test_list_error_raises_store_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        store = HttpRecordStore("https://records.test", transport=transport)
        with pytest.raises(RecordStoreError):
            store.list_all()

    def test_connection_error_raises_store_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = HttpRecordStore("https://records.test", transport=httpx.MockTransport(refuse))
        with pytest.raises(RecordStoreError):
            store.create(_record("r1"))


class TestBuildStore:
    def test_in_memory_without_url(self):
        store = build_store(Settings(page_size=10))
        assert isinstance(store, InMemoryRecordStore)
        assert store.page_size == 10

    def test_hosted_with_url(self):
        store = build_store(Settings(record_store_url="https://records.test"))
        assert isinstance(store, HttpRecordStore)
        store.close()
