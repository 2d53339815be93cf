"""
WorkTrack - Submission Pipeline Tests

validate -> compose -> create_document -> reset | keep
"""

import asyncio
from datetime import datetime

import pytest

from tests.conftest import FailingStore, GatedStore, SlowPosition, make_evidence
from worktrack.capture.session import CaptureState
from worktrack.core.errors import SubmissionInFlight
from worktrack.forms.actions import AddRow, AppendEvidence, SetField, SetGate, UpdateRow
from worktrack.forms.state import initial_state
from worktrack.models.evidence import GeoLocation
from worktrack.models.record import SubmittedBy
from worktrack.services.form_sessions import FormSession, FormSessionManager
from worktrack.services.submission import SubmissionPipeline
from worktrack.storage.memory import InMemoryDocumentStore

WORKER = SubmittedBy(uid="worker-1", email="frt@worktrack.test")


def ready_session(schema) -> FormSession:
    return fill(FormSession(schema, WORKER))


def fill(session: FormSession) -> FormSession:
    """One evidence item and one sub-record row, otherwise valid."""
    session.dispatch(SetField(field="gpName", value="Kondapur"))
    session.dispatch(
        AppendEvidence(
            field="sitePhotos",
            evidence=make_evidence(location=GeoLocation(latitude=17.4, longitude=78.3)),
        )
    )
    session.dispatch(UpdateRow(field="readings", index=0, patch={"fiberNo": "2", "loss": "0.35"}))
    return session


class TestSubmit:

    async def test_reset_on_success(self, site_schema):
        store = InMemoryDocumentStore()
        session = ready_session(site_schema)

        outcome = await SubmissionPipeline(store).submit(session, WORKER)

        assert outcome.status == "succeeded"
        assert outcome.collection == "site_visits"
        fresh = initial_state(site_schema)
        assert session.state.evidence == fresh.evidence
        assert session.state.rows == fresh.rows
        assert session.state.values == fresh.values
        assert session.state.last_document_id == outcome.document_id
        assert store.count("site_visits") == 1

    async def test_persisted_record_shape(self, site_schema):
        store = InMemoryDocumentStore()
        session = ready_session(site_schema)
        session.dispatch(SetGate(field="damageFound", value=True))
        session.dispatch(SetField(field="damageNotes", value="stale"))
        session.dispatch(SetGate(field="damageFound", value=False))

        outcome = await SubmissionPipeline(store).submit(session, WORKER)
        record = await store.get_document("site_visits", outcome.document_id)

        assert record["activityType"] == "Site Visit"
        assert record["status"] == "pending"
        assert record["submittedBy"] == {"uid": "worker-1", "email": "frt@worktrack.test"}
        assert isinstance(record["submittedAt"], datetime)
        assert record["gpName"] == "Kondapur"
        assert record["damageFound"] is False
        assert "damageNotes" not in record
        assert "damagePhotos" not in record
        assert record["readings"] == [{"fiberNo": "2", "loss": 0.35}]
        photo = record["sitePhotos"][0]
        assert photo["location"] == {"latitude": 17.4, "longitude": 78.3}
        assert photo["imageData"].startswith("data:image/jpeg;base64,")

    async def test_reset_on_failure_keeps_work(self, site_schema):
        store = FailingStore(kind="transient")
        session = ready_session(site_schema)
        evidence_before = session.state.evidence
        rows_before = session.state.rows

        outcome = await SubmissionPipeline(store).submit(session, WORKER)

        assert outcome.status == "failed"
        assert outcome.retryable
        assert session.state.evidence == evidence_before
        assert session.state.rows == rows_before
        assert not session.state.submitting
        assert session.state.last_outcome == "failed"

        # Retry without recapturing
        retry = await SubmissionPipeline(InMemoryDocumentStore()).submit(session, WORKER)
        assert retry.status == "succeeded"

    async def test_unknown_failure_not_retryable(self, site_schema):
        outcome = await SubmissionPipeline(FailingStore(kind="unknown")).submit(ready_session(site_schema), WORKER)
        assert outcome.status == "failed"
        assert not outcome.retryable

    async def test_failures_are_not_retried_automatically(self, site_schema):
        store = FailingStore()
        await SubmissionPipeline(store).submit(ready_session(site_schema), WORKER)
        assert store.attempts == 1

    async def test_rejection_reports_every_field(self, site_schema):
        store = InMemoryDocumentStore()
        session = FormSession(site_schema, WORKER)
        session.dispatch(SetGate(field="damageFound", value=True))
        session.dispatch(AddRow(field="readings", defaults={"fiberNo": "7", "loss": 0}))

        outcome = await SubmissionPipeline(store).submit(session, WORKER)

        assert outcome.status == "rejected"
        assert set(outcome.errors) == {"gpName", "damageNotes", "damagePhotos", "sitePhotos", "readings"}
        assert outcome.row_errors["readings"][1] == {"fiberNo": ["Fiber No must be one of: 1, 2, 3"]}
        assert store.count("site_visits") == 0
        # Rejection reveals the inline errors
        assert set(session.state.errors) == set(outcome.errors)
        assert session.state.last_outcome == "rejected"


class TestInFlightGuard:

    async def test_no_double_submit(self, site_schema):
        """Two submits in one pending window -> exactly one create_document."""
        store = GatedStore()
        pipeline = SubmissionPipeline(store)
        session = ready_session(site_schema)

        first = asyncio.create_task(pipeline.submit(session, WORKER))
        await asyncio.sleep(0)
        assert session.state.submitting

        second = await pipeline.submit(session, WORKER)
        assert second.status == "in_flight"

        store.release.set()
        outcome = await first
        assert outcome.status == "succeeded"
        assert store.calls == 1

    async def test_edits_refused_while_in_flight(self, site_schema):
        store = GatedStore()
        session = ready_session(site_schema)
        task = asyncio.create_task(SubmissionPipeline(store).submit(session, WORKER))
        await asyncio.sleep(0)

        with pytest.raises(SubmissionInFlight):
            session.dispatch(SetField(field="gpName", value="changed"))

        store.release.set()
        await task
        session.dispatch(SetField(field="gpName", value="next record"))
        assert session.state.values["gpName"] == "next record"


class TestOpenCapture:

    @pytest.fixture
    def site_manager(self, site_registry, lock):
        return FormSessionManager(site_registry, frame_size=(64, 48), position_timeout_ms=100, lock=lock)

    async def test_submit_waits_for_pending_photo(self, site_manager, camera):
        session = fill(site_manager.create("site_visit", WORKER))
        assert (await site_manager.open_capture(session, "sitePhotos", camera, SlowPosition())).ok
        snapshot = asyncio.create_task(site_manager.snapshot(session))
        await asyncio.sleep(0.01)
        assert session.capture.state == CaptureState.SNAPSHOTTING

        store = InMemoryDocumentStore()
        outcome = await SubmissionPipeline(store).submit(session, WORKER)
        assert outcome.status == "in_flight"
        assert store.count("site_visits") == 0

        assert (await snapshot).ok
        assert len(session.state.evidence["sitePhotos"]) == 2

        retry = await SubmissionPipeline(store).submit(session, WORKER)
        assert retry.status == "succeeded"
        record = await store.get_document("site_visits", retry.document_id)
        assert len(record["sitePhotos"]) == 2

    async def test_open_preview_closed_on_submit(self, site_manager, camera, lock):
        session = fill(site_manager.create("site_visit", WORKER))
        assert (await site_manager.open_capture(session, "sitePhotos", camera)).ok

        outcome = await SubmissionPipeline(InMemoryDocumentStore()).submit(session, WORKER)

        assert outcome.status == "succeeded"
        assert session.capture is None
        assert camera.open_streams == 0
        assert len(lock) == 0

    async def test_preview_survives_rejection(self, site_manager, camera):
        session = site_manager.create("site_visit", WORKER)
        assert (await site_manager.open_capture(session, "sitePhotos", camera)).ok

        outcome = await SubmissionPipeline(InMemoryDocumentStore()).submit(session, WORKER)

        assert outcome.status == "rejected"
        assert session.capture.state == CaptureState.PREVIEWING
        session.cancel_capture()
