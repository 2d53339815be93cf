"""Document store behaviour: in-memory semantics and Firestore error mapping."""

from datetime import datetime, timezone

import pytest
from google.api_core import exceptions as google_exceptions

from tests.conftest import SteppingClock
from worktrack.core.errors import PersistenceFailed
from worktrack.storage.base import SERVER_TIMESTAMP, QueryFilter
from worktrack.storage.firestore import FirestoreDocumentStore
from worktrack.storage.memory import InMemoryDocumentStore


class TestInMemoryStore:

    async def test_server_timestamp_resolved(self):
        clock = SteppingClock(datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc))
        store = InMemoryDocumentStore(clock=clock)
        doc_id = await store.create_document("punch_in", {"submittedAt": SERVER_TIMESTAMP, "nested": [{"at": SERVER_TIMESTAMP}]})
        doc = await store.get_document("punch_in", doc_id)
        assert doc["submittedAt"] == clock.current
        assert doc["nested"][0]["at"] == clock.current

    async def test_documents_are_copied(self):
        store = InMemoryDocumentStore()
        payload = {"rows": [{"loss": 1}]}
        doc_id = await store.create_document("c", payload)
        payload["rows"][0]["loss"] = 99
        fetched = await store.get_document("c", doc_id)
        fetched["rows"].append({})
        assert await store.get_document("c", doc_id) == {"rows": [{"loss": 1}]}

    async def test_query_filter_order_limit(self):
        clock = SteppingClock()
        store = InMemoryDocumentStore(clock=clock)
        for status in ("pending", "completed", "pending"):
            clock.advance(60)
            await store.create_document("c", {"status": status, "submittedAt": SERVER_TIMESTAMP})
        await store.create_document("c", {"status": "pending"})

        docs = await store.query_documents(
            "c", [QueryFilter("status", "==", "pending")], order_by="submittedAt"
        )
        # Documents missing the ordering field are excluded
        assert len(docs) == 2
        assert docs[0].data["submittedAt"] > docs[1].data["submittedAt"]

        limited = await store.query_documents("c", limit=1)
        assert len(limited) == 1

    async def test_missing_document(self):
        assert await InMemoryDocumentStore().get_document("users", "nobody") is None


class _FailingCollection:

    def __init__(self, error):
        self.error = error

    async def add(self, data):
        raise self.error

    def document(self, doc_id):
        return self


class _FakeClient:

    def __init__(self, error):
        self.error = error

    def collection(self, name):
        return _FailingCollection(self.error)


class _RecordingCollection:

    def __init__(self):
        self.added = []

    async def add(self, data):
        self.added.append(data)

        class _Ref:
            id = "generated-id"

        return None, _Ref()


class _RecordingClient:

    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return self.collections.setdefault(name, _RecordingCollection())


class TestFirestoreStore:

    @pytest.mark.parametrize(
        "error",
        [
            google_exceptions.ServiceUnavailable("unavailable"),
            google_exceptions.DeadlineExceeded("deadline"),
            google_exceptions.TooManyRequests("throttled"),
            google_exceptions.InternalServerError("internal"),
        ],
    )
    async def test_transient_errors_are_retryable(self, error):
        store = FirestoreDocumentStore(client=_FakeClient(error))
        with pytest.raises(PersistenceFailed) as exc:
            await store.create_document("corrective_maintenance", {})
        assert exc.value.kind == "transient"
        assert exc.value.retryable

    @pytest.mark.parametrize(
        "error",
        [
            google_exceptions.PermissionDenied("rules"),
            google_exceptions.InvalidArgument("too large"),
        ],
    )
    async def test_other_errors_are_unknown(self, error):
        store = FirestoreDocumentStore(client=_FakeClient(error))
        with pytest.raises(PersistenceFailed) as exc:
            await store.create_document("corrective_maintenance", {})
        assert exc.value.kind == "unknown"
        assert not exc.value.retryable

    async def test_server_timestamp_translated(self):
        from google.cloud import firestore

        client = _RecordingClient()
        store = FirestoreDocumentStore(client=client)
        doc_id = await store.create_document("punch_in", {"submittedAt": SERVER_TIMESTAMP, "district": "Krishna"})
        assert doc_id == "generated-id"
        written = client.collections["punch_in"].added[0]
        assert written["submittedAt"] is firestore.SERVER_TIMESTAMP
        assert written["district"] == "Krishna"
