"""
WorkTrack - Submission Pipeline

validate -> compose MaintenanceRecord -> create_document -> reset | keep

Rules:
- All field errors are collected into one report; nothing is written on rejection
- The form is marked submitting before the first await, so a second submit
  in the same window is refused without touching storage
- submittedAt is the store's server timestamp, never the caller's clock
- Success resets the whole form; failure keeps every field and photo
- Failures are never retried automatically
- A photo still being taken blocks submit; an open preview is closed once
  the form validates
"""

import logging
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from worktrack.capture.session import CaptureState
from worktrack.core.errors import PersistenceFailed
from worktrack.forms.actions import SubmitFailed, SubmitStarted, SubmitSucceeded
from worktrack.forms.payload import build_record
from worktrack.forms.validation import validate_form
from worktrack.models.record import SubmittedBy
from worktrack.services.form_sessions import FormSession
from worktrack.storage.base import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger(__name__)


class SubmissionOutcome(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Literal["succeeded", "rejected", "failed", "in_flight"]
    document_id: Optional[str] = None
    collection: Optional[str] = None
    errors: dict[str, list[str]] = Field(default_factory=dict)
    row_errors: dict[str, list[dict[str, list[str]]]] = Field(default_factory=dict)
    retryable: bool = False
    message: Optional[str] = None


class SubmissionPipeline:

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def submit(self, session: FormSession, submitted_by: SubmittedBy) -> SubmissionOutcome:
        schema = session.schema

        if session.state.submitting:
            return SubmissionOutcome(
                status="in_flight",
                message="A submission for this form is already in progress",
            )

        capture = session.capture
        if capture is not None and capture.state == CaptureState.SNAPSHOTTING:
            return SubmissionOutcome(
                status="in_flight",
                message="A photo is still being captured for this form",
            )

        report = validate_form(schema, session.state)
        if not report.ok:
            logger.info(f"Submission of {schema.activity_id} rejected: {', '.join(sorted(report.errors))}")
            session.dispatch(SubmitFailed(reason="Please correct the highlighted fields", rejected=True))
            return SubmissionOutcome(
                status="rejected",
                errors=report.errors,
                row_errors=report.row_errors,
                message="Please correct the highlighted fields",
            )

        session.cancel_capture()
        record = build_record(schema, session.state, submitted_by, SERVER_TIMESTAMP)
        session.dispatch(SubmitStarted())

        try:
            document_id = await self.store.create_document(schema.collection, record.to_document())
        except PersistenceFailed as e:
            logger.error(f"Submission of {schema.activity_id} failed ({e.kind}): {e}")
            session.dispatch(SubmitFailed(reason=str(e)))
            return SubmissionOutcome(
                status="failed",
                collection=schema.collection,
                retryable=e.retryable,
                message=str(e),
            )
        except BaseException:
            session.dispatch(SubmitFailed(reason="Unexpected storage error"))
            raise

        session.dispatch(SubmitSucceeded(document_id=document_id))
        logger.info(f"Submitted {schema.activity_id} as {schema.collection}/{document_id}")
        return SubmissionOutcome(
            status="succeeded",
            document_id=document_id,
            collection=schema.collection,
            message=f"{schema.title} submitted successfully",
        )
