"""Exclusive device ownership across capture sessions."""

import logging
from typing import Optional

from worktrack.core.errors import DeviceBusy

logger = logging.getLogger(__name__)


class DeviceLock:
    """
    At most one capture session holds a physical device at a time.

    Acquisition fails fast with DeviceBusy; there is no waiting queue.
    """

    def __init__(self) -> None:
        self._holders: dict[str, str] = {}

    def claim(self, resource_id: str, holder: str) -> None:
        current = self._holders.get(resource_id)
        if current is not None and current != holder:
            raise DeviceBusy(resource_id, current)
        self._holders[resource_id] = holder

    def release(self, resource_id: str, holder: str) -> None:
        if self._holders.get(resource_id) == holder:
            del self._holders[resource_id]

    def holder(self, resource_id: str) -> Optional[str]:
        return self._holders.get(resource_id)

    def __len__(self) -> int:
        return len(self._holders)


# Singleton
device_lock = DeviceLock()
