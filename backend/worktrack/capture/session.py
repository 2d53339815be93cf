"""
WorkTrack - Capture Session

Finite state machine owning one imaging device for one capture.

States:
    IDLE → No device held
    REQUESTING → Device acquisition in progress
    PREVIEWING → Live frames available, device held
    SNAPSHOTTING → Frame grabbed, encoding and geotagging in progress

Rules:
    - At most one session holds a device; a second open() gets DeviceBusy
    - The frame is grabbed before the position lookup starts
    - Position lookup is bounded; on failure or timeout evidence is still
      produced, without location
    - cancel() releases the device from any state and emits nothing
    - Device and position failures are returned as Err, never raised
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from worktrack.capture.devices import Facing, FrameStream, ImagingDevice, PositionSource
from worktrack.capture.encoding import encode_preview, encode_still
from worktrack.capture.lock import DeviceLock, device_lock
from worktrack.core.errors import (
    CaptureCancelled,
    DeviceBusy,
    DeviceUnavailable,
    PositionUnavailable,
)
from worktrack.core.types import Err, Ok, Result
from worktrack.models.evidence import CapturedEvidence, GeoLocation

logger = logging.getLogger(__name__)

CaptureError = Union[DeviceUnavailable, DeviceBusy, CaptureCancelled]


class CaptureState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    PREVIEWING = "previewing"
    SNAPSHOTTING = "snapshotting"


@dataclass(frozen=True)
class CaptureTransition:
    previous: CaptureState
    current: CaptureState
    trigger: str
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CaptureClock:
    """
    Wall clock that never goes backwards.

    One clock is shared by every capture in a form session so capturedAt
    values are non-decreasing in capture order.
    """

    def __init__(self, source: Optional[Callable[[], datetime]] = None) -> None:
        self._source = source or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = self._source()
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current


class CaptureSession:
    """Acquire, preview, snapshot and release for one evidence field."""

    VALID_TRANSITIONS: dict[CaptureState, set[CaptureState]] = {
        CaptureState.IDLE: {CaptureState.REQUESTING},
        CaptureState.REQUESTING: {CaptureState.IDLE, CaptureState.PREVIEWING},
        CaptureState.PREVIEWING: {CaptureState.IDLE, CaptureState.SNAPSHOTTING},
        CaptureState.SNAPSHOTTING: {CaptureState.IDLE},
    }

    def __init__(
        self,
        device: ImagingDevice,
        position_source: PositionSource,
        *,
        field: str,
        facing: Facing = Facing.ENVIRONMENT,
        frame_size: tuple[int, int] = (1280, 720),
        jpeg_quality: int = 80,
        position_timeout_ms: int = 10_000,
        clock: Optional[CaptureClock] = None,
        lock: Optional[DeviceLock] = None,
        on_capture: Optional[Callable[[CapturedEvidence], None]] = None,
    ) -> None:
        self.session_id = f"capture_{uuid.uuid4().hex[:12]}"
        self.device = device
        self.position_source = position_source
        self.field = field
        self.facing = facing
        self.frame_size = frame_size
        self.jpeg_quality = jpeg_quality
        self.position_timeout_ms = position_timeout_ms
        self.clock = clock or CaptureClock()
        self.lock = lock if lock is not None else device_lock
        self.on_capture = on_capture

        self._state = CaptureState.IDLE
        self._stream: Optional[FrameStream] = None
        self._resource: Optional[str] = None
        self._generation = 0
        self._transition_log: list[CaptureTransition] = []

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def transitions(self) -> list[CaptureTransition]:
        return list(self._transition_log)

    @property
    def holds_device(self) -> bool:
        return self._resource is not None

    def _transition(self, target: CaptureState, trigger: str) -> None:
        if target == self._state:
            return
        if target not in self.VALID_TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid capture transition {self._state.value} -> {target.value}")
        self._transition_log.append(CaptureTransition(self._state, target, trigger))
        logger.debug(f"{self.session_id}: {self._state.value} -> {target.value} ({trigger})")
        self._state = target

    def _release(self) -> None:
        if self._stream is not None:
            self._stream.release()
            self._stream = None
        if self._resource is not None:
            self.lock.release(self._resource, self.session_id)
            self._resource = None

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def open(self) -> Result[None, CaptureError]:
        """Acquire the device and start previewing."""
        if self._state == CaptureState.PREVIEWING:
            return Ok(None)
        if self._state != CaptureState.IDLE:
            return Err(DeviceBusy(self.device.resource_id(self.facing), self.session_id))

        self._transition(CaptureState.REQUESTING, "OPEN")
        generation = self._generation
        resource = self.device.resource_id(self.facing)

        try:
            self.lock.claim(resource, self.session_id)
        except DeviceBusy as e:
            logger.warning(f"{self.session_id}: {e}")
            self._transition(CaptureState.IDLE, "DEVICE_BUSY")
            return Err(e)
        self._resource = resource

        try:
            stream = await self.device.acquire(self.facing)
        except DeviceUnavailable as e:
            logger.warning(f"{self.session_id}: device unavailable: {e}")
            self._release()
            self._transition(CaptureState.IDLE, "DEVICE_UNAVAILABLE")
            return Err(e)
        except asyncio.CancelledError:
            self._release()
            self._transition(CaptureState.IDLE, "CANCELLED")
            raise

        if generation != self._generation:
            # cancel() ran while the device was being acquired
            stream.release()
            return Err(CaptureCancelled(f"{self.session_id} cancelled during acquisition"))

        self._stream = stream
        self._transition(CaptureState.PREVIEWING, "DEVICE_READY")
        return Ok(None)

    def preview_jpeg(self) -> Result[bytes, DeviceUnavailable]:
        """Current live frame as JPEG bytes."""
        if self._state != CaptureState.PREVIEWING or self._stream is None:
            return Err(DeviceUnavailable(f"{self.session_id} is not previewing"))
        try:
            return Ok(encode_preview(self._stream.read_frame()))
        except DeviceUnavailable as e:
            logger.warning(f"{self.session_id}: preview failed: {e}")
            self._release()
            self._transition(CaptureState.IDLE, "DEVICE_LOST")
            return Err(e)

    async def snapshot(self) -> Result[CapturedEvidence, CaptureError]:
        """
        Grab the current frame, geotag it best-effort and emit it.

        The device is released as soon as the frame is encoded; the session
        is back in IDLE when this returns, whatever the outcome.
        """
        if self._state != CaptureState.PREVIEWING or self._stream is None:
            return Err(DeviceUnavailable(f"{self.session_id} has no live preview"))

        self._transition(CaptureState.SNAPSHOTTING, "SNAPSHOT")
        generation = self._generation

        try:
            frame = self._stream.read_frame()
        except DeviceUnavailable as e:
            logger.warning(f"{self.session_id}: snapshot failed: {e}")
            self._release()
            self._transition(CaptureState.IDLE, "DEVICE_LOST")
            return Err(e)

        captured_at = self.clock.now()
        image_data = encode_still(frame, self.frame_size, self.jpeg_quality)
        self._release()

        location = await self._locate()

        if generation != self._generation:
            return Err(CaptureCancelled(f"{self.session_id} cancelled before evidence was emitted"))

        evidence = CapturedEvidence(
            captured_at=captured_at,
            location=location,
            image_data=image_data,
        )
        self._transition(CaptureState.IDLE, "EVIDENCE_EMITTED")
        logger.info(
            f"Evidence {evidence.evidence_id} captured for {self.field} "
            f"(geotagged={evidence.geotagged})"
        )
        if self.on_capture is not None:
            self.on_capture(evidence)
        return Ok(evidence)

    async def capture_once(self) -> Result[CapturedEvidence, CaptureError]:
        """open() then snapshot(), for sources that deliver a single frame."""
        opened = await self.open()
        if not opened.ok:
            return opened
        return await self.snapshot()

    def cancel(self) -> None:
        """Release the device from any state; nothing is emitted."""
        self._generation += 1
        self._release()
        if self._state != CaptureState.IDLE:
            self._transition_log.append(
                CaptureTransition(self._state, CaptureState.IDLE, "CANCEL")
            )
            logger.debug(f"{self.session_id}: {self._state.value} -> idle (CANCEL)")
            self._state = CaptureState.IDLE

    async def _locate(self) -> Optional[GeoLocation]:
        timeout_ms = self.position_timeout_ms
        try:
            return await asyncio.wait_for(
                self.position_source.get_current_position(timeout_ms),
                timeout=timeout_ms / 1000,
            )
        except PositionUnavailable as e:
            logger.info(f"{self.session_id}: capturing without location: {e}")
        except asyncio.TimeoutError:
            logger.info(f"{self.session_id}: capturing without location: timed out after {timeout_ms}ms")
        return None

    async def __aenter__(self) -> "CaptureSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()
