"""Server-attached camera via OpenCV."""

import asyncio
import logging

import cv2
import numpy as np

from worktrack.capture.devices import Facing, FrameStream, ImagingDevice
from worktrack.core.errors import DeviceUnavailable

logger = logging.getLogger(__name__)


class _OpenCVStream(FrameStream):

    def __init__(self, capture: "cv2.VideoCapture", index: int) -> None:
        self._capture = capture
        self._index = index

    def read_frame(self) -> np.ndarray:
        if self._capture is None:
            raise DeviceUnavailable(f"Camera {self._index} already released")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise DeviceUnavailable(f"Camera {self._index} stopped delivering frames")
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug(f"Camera {self._index} released")


class OpenCVCamera(ImagingDevice):
    """Maps the requested facing to a camera index."""

    def __init__(
        self,
        index_by_facing: dict[Facing, int],
        width: int = 1280,
        height: int = 720,
    ) -> None:
        self.index_by_facing = index_by_facing
        self.width = width
        self.height = height

    def _index(self, facing: Facing) -> int:
        try:
            return self.index_by_facing[facing]
        except KeyError:
            raise DeviceUnavailable(f"No camera configured for facing '{facing.value}'")

    def resource_id(self, facing: Facing) -> str:
        return f"opencv:{self.index_by_facing.get(facing, -1)}"

    def _open(self, index: int) -> "cv2.VideoCapture":
        capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            capture.release()
            raise DeviceUnavailable(f"Camera {index} could not be opened")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        return capture

    async def acquire(self, facing: Facing) -> FrameStream:
        index = self._index(facing)
        capture = await asyncio.to_thread(self._open, index)
        logger.info(f"Camera {index} opened ({facing.value})")
        return _OpenCVStream(capture, index)
