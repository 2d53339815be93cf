"""
WorkTrack - Evidence Capture

Device acquisition, live preview, still capture and best-effort geotagging.
"""

from worktrack.capture.devices import (
    Facing,
    FrameStream,
    ImagingDevice,
    NoPositionSource,
    PositionSource,
    ReportedPositionSource,
    UploadedFrameDevice,
)
from worktrack.capture.lock import DeviceLock, device_lock
from worktrack.capture.session import CaptureClock, CaptureSession, CaptureState

__all__ = [
    "Facing",
    "FrameStream",
    "ImagingDevice",
    "NoPositionSource",
    "PositionSource",
    "ReportedPositionSource",
    "UploadedFrameDevice",
    "DeviceLock",
    "device_lock",
    "CaptureClock",
    "CaptureSession",
    "CaptureState",
]
