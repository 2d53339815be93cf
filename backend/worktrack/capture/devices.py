"""
WorkTrack - Capture Devices

Abstractions over the imaging device and the position source.

A FrameStream is the live handle obtained from an ImagingDevice; reading a
frame is synchronous, releasing is idempotent. Position sources are async
and may be slow; callers bound them with a timeout.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import numpy as np
from pydantic import ValidationError

from worktrack.capture.encoding import decode_image
from worktrack.core.errors import DeviceUnavailable, PositionUnavailable
from worktrack.models.evidence import GeoLocation

logger = logging.getLogger(__name__)


class Facing(str, Enum):
    ENVIRONMENT = "environment"
    USER = "user"


class FrameStream(ABC):
    """Live frame source held by exactly one capture session."""

    @abstractmethod
    def read_frame(self) -> np.ndarray:
        """Current frame as an HxWx3 RGB array. Raises DeviceUnavailable."""
        ...

    @abstractmethod
    def release(self) -> None:
        ...


class ImagingDevice(ABC):

    @abstractmethod
    def resource_id(self, facing: Facing) -> str:
        """Identity of the physical resource used for exclusivity."""
        ...

    @abstractmethod
    async def acquire(self, facing: Facing) -> FrameStream:
        """Open a live stream. Raises DeviceUnavailable."""
        ...


class PositionSource(ABC):

    @abstractmethod
    async def get_current_position(self, timeout_ms: int) -> GeoLocation:
        """Single position fix. Raises PositionUnavailable."""
        ...


# =============================================================================
# CLIENT-SIDE CAPTURE
# =============================================================================

class _StillFrameStream(FrameStream):

    def __init__(self, frame: np.ndarray) -> None:
        self._frame: Optional[np.ndarray] = frame

    def read_frame(self) -> np.ndarray:
        if self._frame is None:
            raise DeviceUnavailable("Frame stream already released")
        return self._frame

    def release(self) -> None:
        self._frame = None


class UploadedFrameDevice(ImagingDevice):
    """
    A frame captured on the field device and uploaded with the request.

    Used when the camera lives in the browser: the server still runs the
    frame through the capture session so timestamps, encoding and
    geotagging follow the same rules as a server-attached camera.
    """

    def __init__(self, image: str | bytes) -> None:
        self._image = image
        self._resource = f"upload:{uuid.uuid4().hex}"

    def resource_id(self, facing: Facing) -> str:
        return self._resource

    async def acquire(self, facing: Facing) -> FrameStream:
        try:
            frame = decode_image(self._image)
        except ValueError as e:
            raise DeviceUnavailable(str(e))
        return _StillFrameStream(frame)


class ReportedPositionSource(PositionSource):
    """Position reported by the field device alongside an upload."""

    def __init__(self, latitude: Optional[float], longitude: Optional[float]) -> None:
        self.latitude = latitude
        self.longitude = longitude

    async def get_current_position(self, timeout_ms: int) -> GeoLocation:
        if self.latitude is None or self.longitude is None:
            raise PositionUnavailable("No position reported by device")
        try:
            return GeoLocation(latitude=self.latitude, longitude=self.longitude)
        except ValidationError as e:
            raise PositionUnavailable(f"Invalid reported position: {e.errors()[0]['msg']}")


class NoPositionSource(PositionSource):
    """Host without positioning hardware."""

    async def get_current_position(self, timeout_ms: int) -> GeoLocation:
        raise PositionUnavailable("No position source configured")
