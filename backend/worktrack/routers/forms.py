"""Form sessions router.

A form session is one worker filling one activity form. Every change is
an action run through the form reducer; photos arrive only through a
capture session (server camera) or a one-shot evidence upload.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic.alias_generators import to_camel

from worktrack.capture.devices import Facing, ImagingDevice, ReportedPositionSource
from worktrack.core.config import settings
from worktrack.core.firebase_auth import FirebaseUser, get_current_user
from worktrack.core.types import Result
from worktrack.dependencies import get_imaging_device, get_session_manager, get_submission_pipeline
from worktrack.forms.actions import ClientAction
from worktrack.services.form_sessions import FormSession, FormSessionManager
from worktrack.services.submission import SubmissionOutcome, SubmissionPipeline

router = APIRouter(prefix="/forms", tags=["forms"])


# ============================================================================
# SCHEMAS
# ============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormSessionView(_CamelModel):
    session_id: str
    activity: str
    activity_type: str
    values: dict[str, Any]
    visible: list[str]
    evidence: dict[str, list[dict[str, Any]]]
    rows: dict[str, list[dict[str, Any]]]
    errors: dict[str, list[str]]
    row_errors: dict[str, list[dict[str, list[str]]]]
    submittable: bool
    submitting: bool
    last_outcome: Optional[str] = None
    last_document_id: Optional[str] = None
    last_error: Optional[str] = None
    capture_state: str = "idle"
    capture_field: Optional[str] = None


class ActionRequest(RootModel[ClientAction]):
    """One client action; the `type` key selects the variant."""


class OpenCaptureRequest(_CamelModel):
    field: str
    facing: Facing = Facing(settings.CAPTURE_FACING)
    # Position reported by the field device, if any
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class EvidenceUploadRequest(_CamelModel):
    image_data: str = Field(description="data:image/...;base64 or bare base64")
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SnapshotResponse(_CamelModel):
    evidence_id: str
    captured_at: str
    geotagged: bool
    session: FormSessionView


def _view(session: FormSession) -> FormSessionView:
    state = session.state
    schema = session.schema
    capture = session.capture
    return FormSessionView(
        session_id=session.session_id,
        activity=schema.activity_id,
        activity_type=schema.activity_type,
        values=dict(state.values),
        visible=[name for name in schema.fields if schema.is_visible(name, state.values)],
        evidence={name: collection.to_document() for name, collection in state.evidence.items()},
        rows={name: [dict(row) for row in rows.rows] for name, rows in state.rows.items()},
        errors={name: list(messages) for name, messages in state.errors.items()},
        row_errors={name: list(per_row) for name, per_row in state.row_errors.items()},
        submittable=state.submittable,
        submitting=state.submitting,
        last_outcome=state.last_outcome,
        last_document_id=state.last_document_id,
        last_error=state.last_error,
        capture_state=capture.state.value if capture else "idle",
        capture_field=capture.field if capture else None,
    )


def _unwrap(result: Result) -> Any:
    """Err results become domain exceptions, mapped to HTTP by the app."""
    if not result.ok:
        raise result.error
    return result.value


def _snapshot_response(session: FormSession, evidence) -> SnapshotResponse:
    return SnapshotResponse(
        evidence_id=evidence.evidence_id,
        captured_at=evidence.captured_at.isoformat(),
        geotagged=evidence.geotagged,
        session=_view(session),
    )


# ============================================================================
# SESSIONS
# ============================================================================

@router.post(
    "/{activity}/sessions",
    response_model=FormSessionView,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    activity: str,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """Open an empty form for one activity."""
    return _view(manager.create(activity, current_user.submitted_by))


@router.get("/sessions/{session_id}", response_model=FormSessionView, response_model_by_alias=True)
async def get_session(
    session_id: str,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    return _view(manager.get(session_id, current_user.uid))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    session_id: str,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """Discard the form; any open capture is cancelled and its device released."""
    manager.close(session_id, current_user.uid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sessions/{session_id}/actions",
    response_model=FormSessionView,
    response_model_by_alias=True,
)
async def dispatch_action(
    session_id: str,
    action: ActionRequest,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """Apply one form action (set_field, set_gate, add_row, ...)."""
    session = manager.get(session_id, current_user.uid)
    session.dispatch(action.root)
    return _view(session)


# ============================================================================
# CAPTURE
# ============================================================================

@router.post(
    "/sessions/{session_id}/capture",
    response_model=FormSessionView,
    response_model_by_alias=True,
)
async def open_capture(
    session_id: str,
    request: OpenCaptureRequest,
    manager: FormSessionManager = Depends(get_session_manager),
    device: ImagingDevice = Depends(get_imaging_device),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """Acquire the attached camera and start previewing for one photo field."""
    session = manager.get(session_id, current_user.uid)
    result = await manager.open_capture(
        session,
        request.field,
        device,
        ReportedPositionSource(request.latitude, request.longitude),
        request.facing,
    )
    _unwrap(result)
    return _view(session)


@router.get(
    "/sessions/{session_id}/capture/preview",
    response_class=Response,
    responses={200: {"content": {"image/jpeg": {}}}},
)
async def capture_preview(
    session_id: str,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """Current live frame as JPEG."""
    session = manager.get(session_id, current_user.uid)
    frame = _unwrap(manager.preview(session))
    return Response(content=frame, media_type="image/jpeg")


@router.post(
    "/sessions/{session_id}/capture/snapshot",
    response_model=SnapshotResponse,
    response_model_by_alias=True,
)
async def capture_snapshot(
    session_id: str,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """Take the photo; the device is released and the photo added to its field."""
    session = manager.get(session_id, current_user.uid)
    evidence = _unwrap(await manager.snapshot(session))
    return _snapshot_response(session, evidence)


@router.delete("/sessions/{session_id}/capture", response_model=FormSessionView, response_model_by_alias=True)
async def cancel_capture(
    session_id: str,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    session = manager.get(session_id, current_user.uid)
    session.cancel_capture()
    return _view(session)


@router.post(
    "/sessions/{session_id}/evidence/{field}",
    response_model=SnapshotResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def upload_evidence(
    session_id: str,
    field: str,
    request: EvidenceUploadRequest,
    manager: FormSessionManager = Depends(get_session_manager),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """Attach a photo captured on the field device."""
    session = manager.get(session_id, current_user.uid)
    result = await manager.capture_upload(
        session, field, request.image_data, request.latitude, request.longitude
    )
    return _snapshot_response(session, _unwrap(result))


# ============================================================================
# SUBMIT
# ============================================================================

_OUTCOME_STATUS = {
    "succeeded": status.HTTP_201_CREATED,
    "rejected": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "in_flight": status.HTTP_409_CONFLICT,
}


@router.post("/sessions/{session_id}/submit", response_model=SubmissionOutcome, response_model_by_alias=True)
async def submit_session(
    session_id: str,
    manager: FormSessionManager = Depends(get_session_manager),
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
    current_user: FirebaseUser = Depends(get_current_user),
):
    """
    Validate and persist the form.

    On success the form is reset for the next record. On failure every
    field and photo is kept so the worker can retry.
    """
    session = manager.get(session_id, current_user.uid)
    outcome = await pipeline.submit(session, current_user.submitted_by)
    if outcome.status == "failed":
        code = status.HTTP_502_BAD_GATEWAY if outcome.retryable else status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = _OUTCOME_STATUS[outcome.status]
    return JSONResponse(status_code=code, content=outcome.model_dump(mode="json", by_alias=True))
