"""
WorkTrack - Form Sessions

Live, in-memory form instances. One FormSession per worker filling one
activity form; each owns its FormState, a capture clock shared by all of
its captures, and at most one open CaptureSession.

Rules:
- All state changes go through the reducer (dispatch)
- Captured evidence enters the form only via the capture session callback
- Closing a form session cancels its capture and releases the device
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from worktrack.capture.devices import (
    Facing,
    ImagingDevice,
    NoPositionSource,
    PositionSource,
    ReportedPositionSource,
    UploadedFrameDevice,
)
from worktrack.capture.lock import DeviceLock, device_lock
from worktrack.capture.session import CaptureClock, CaptureError, CaptureSession
from worktrack.core.errors import DeviceUnavailable, SessionNotFound, SubmissionInFlight, UnknownField
from worktrack.core.types import Err, Result
from worktrack.forms.actions import AppendEvidence
from worktrack.forms.reducer import reduce
from worktrack.forms.schema import FormSchema, SchemaRegistry
from worktrack.forms.state import FormState, initial_state
from worktrack.models.evidence import CapturedEvidence
from worktrack.models.record import SubmittedBy

logger = logging.getLogger(__name__)


class FormSession:
    """One worker filling one activity form."""

    def __init__(self, schema: FormSchema, owner: SubmittedBy) -> None:
        self.session_id = f"form_{uuid.uuid4().hex[:16]}"
        self.schema = schema
        self.owner = owner
        self.state: FormState = initial_state(schema)
        self.clock = CaptureClock()
        self.capture: Optional[CaptureSession] = None
        self.created_at = datetime.now(timezone.utc)
        self.last_active = self.created_at

    def dispatch(self, action: Any) -> FormState:
        self.state = reduce(self.schema, self.state, action)
        return self.state

    def appender(self, field: str) -> Callable[[CapturedEvidence], None]:
        def _append(evidence: CapturedEvidence) -> None:
            self.dispatch(AppendEvidence(field=field, evidence=evidence))
        return _append

    def cancel_capture(self) -> None:
        if self.capture is not None:
            self.capture.cancel()
            self.capture = None


class FormSessionManager:
    """Registry of live form sessions, keyed by session id."""

    def __init__(
        self,
        registry: SchemaRegistry,
        *,
        frame_size: tuple[int, int] = (1280, 720),
        jpeg_quality: int = 80,
        position_timeout_ms: int = 10_000,
        lock: Optional[DeviceLock] = None,
        idle_timeout: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.registry = registry
        self.idle_timeout = idle_timeout
        self._now = clock or (lambda: datetime.now(timezone.utc))
        self.frame_size = frame_size
        self.jpeg_quality = jpeg_quality
        self.position_timeout_ms = position_timeout_ms
        self.lock = lock if lock is not None else device_lock
        self._sessions: dict[str, FormSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def create(self, activity_id: str, owner: SubmittedBy) -> FormSession:
        self.evict_idle()
        session = FormSession(self.registry.get(activity_id), owner)
        session.created_at = session.last_active = self._now()
        self._sessions[session.session_id] = session
        logger.info(f"Form session {session.session_id} opened for {activity_id} by {owner.uid}")
        return session

    def get(self, session_id: str, owner_uid: Optional[str] = None) -> FormSession:
        session = self._sessions.get(session_id)
        if session is None or (owner_uid is not None and session.owner.uid != owner_uid):
            raise SessionNotFound(f"Form session {session_id} not found")
        session.last_active = self._now()
        return session

    def close(self, session_id: str, owner_uid: Optional[str] = None) -> None:
        session = self.get(session_id, owner_uid)
        session.cancel_capture()
        del self._sessions[session_id]
        logger.info(f"Form session {session_id} closed")

    def close_all(self) -> None:
        for session in list(self._sessions.values()):
            session.cancel_capture()
        count = len(self._sessions)
        self._sessions.clear()
        if count:
            logger.info(f"Closed {count} form session(s)")

    def evict_idle(self) -> int:
        """Drop sessions untouched for longer than idle_timeout; their captures are cancelled."""
        if self.idle_timeout is None:
            return 0
        cutoff = self._now() - self.idle_timeout
        stale = [
            session
            for session in self._sessions.values()
            if session.last_active < cutoff and not session.state.submitting
        ]
        for session in stale:
            session.cancel_capture()
            del self._sessions[session.session_id]
            logger.info(f"Form session {session.session_id} evicted after {self.idle_timeout} idle")
        return len(stale)

    # =========================================================================
    # CAPTURE
    # =========================================================================

    def _capture_for(
        self,
        session: FormSession,
        field: str,
        device: ImagingDevice,
        position_source: PositionSource,
        facing: Facing,
    ) -> CaptureSession:
        spec = session.schema.field(field)
        if not spec.is_evidence:
            raise UnknownField(f"{field} does not accept photos")
        if session.state.submitting:
            raise SubmissionInFlight(f"{session.session_id}: submission in progress")

        return CaptureSession(
            device,
            position_source,
            field=field,
            facing=facing,
            frame_size=self.frame_size,
            jpeg_quality=self.jpeg_quality,
            position_timeout_ms=self.position_timeout_ms,
            clock=session.clock,
            lock=self.lock,
            on_capture=session.appender(field),
        )

    async def open_capture(
        self,
        session: FormSession,
        field: str,
        device: ImagingDevice,
        position_source: Optional[PositionSource] = None,
        facing: Facing = Facing.ENVIRONMENT,
    ) -> Result[None, CaptureError]:
        """Start previewing on a server-attached device for one evidence field."""
        capture = self._capture_for(session, field, device, position_source or NoPositionSource(), facing)
        session.cancel_capture()
        session.capture = capture
        result = await capture.open()
        if not result.ok and session.capture is capture:
            session.capture = None
        return result

    def preview(self, session: FormSession) -> Result[bytes, DeviceUnavailable]:
        if session.capture is None:
            return Err(DeviceUnavailable(f"{session.session_id} has no open capture"))
        return session.capture.preview_jpeg()

    async def snapshot(self, session: FormSession) -> Result[CapturedEvidence, CaptureError]:
        if session.capture is None:
            return Err(DeviceUnavailable(f"{session.session_id} has no open capture"))
        capture = session.capture
        try:
            return await capture.snapshot()
        finally:
            if session.capture is capture:
                session.capture = None

    async def capture_upload(
        self,
        session: FormSession,
        field: str,
        image: str | bytes,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Result[CapturedEvidence, CaptureError]:
        """Run a client-captured frame through a one-shot capture session."""
        capture = self._capture_for(
            session,
            field,
            UploadedFrameDevice(image),
            ReportedPositionSource(latitude, longitude),
            Facing.ENVIRONMENT,
        )
        async with capture:
            return await capture.capture_once()
