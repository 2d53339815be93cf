"""Shared fixtures: schemas, fake devices, in-memory storage and an API client."""

import asyncio
import base64
import io
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from worktrack.capture.devices import Facing, FrameStream, ImagingDevice, PositionSource
from worktrack.capture.lock import DeviceLock
from worktrack.core.errors import DeviceUnavailable, PersistenceFailed, PositionUnavailable
from worktrack.core.firebase_auth import FirebaseUser, get_current_user
from worktrack.forms.schema import SchemaRegistry
from worktrack.models.evidence import CapturedEvidence, GeoLocation
from worktrack.services.form_sessions import FormSessionManager
from worktrack.storage.memory import InMemoryDocumentStore


# =============================================================================
# FAKE DEVICES
# =============================================================================

class FakeStream(FrameStream):

    def __init__(self, frame: np.ndarray) -> None:
        self.frame = frame
        self.released = False
        self.reads = 0

    def read_frame(self) -> np.ndarray:
        if self.released:
            raise DeviceUnavailable("released")
        self.reads += 1
        return self.frame

    def release(self) -> None:
        self.released = True


class FakeCamera(ImagingDevice):
    """Hands out solid-colour frames; remembers every stream it opened."""

    def __init__(self, resource: str = "fake:0", shape: tuple[int, int] = (48, 64)) -> None:
        self.resource = resource
        self.shape = shape
        self.streams: list[FakeStream] = []

    def resource_id(self, facing: Facing) -> str:
        return self.resource

    async def acquire(self, facing: Facing) -> FrameStream:
        frame = np.full((*self.shape, 3), 127, dtype=np.uint8)
        stream = FakeStream(frame)
        self.streams.append(stream)
        return stream

    @property
    def open_streams(self) -> int:
        return sum(1 for s in self.streams if not s.released)


class SlowCamera(FakeCamera):
    """Yields to the loop while acquiring, so two opens can overlap."""

    async def acquire(self, facing: Facing) -> FrameStream:
        await asyncio.sleep(0.01)
        return await super().acquire(facing)


class DeniedCamera(ImagingDevice):

    def resource_id(self, facing: Facing) -> str:
        return "denied:0"

    async def acquire(self, facing: Facing) -> FrameStream:
        raise DeviceUnavailable("Permission denied")


class FixedPosition(PositionSource):

    def __init__(self, latitude: float = 17.385, longitude: float = 78.4867) -> None:
        self.latitude = latitude
        self.longitude = longitude

    async def get_current_position(self, timeout_ms: int) -> GeoLocation:
        return GeoLocation(latitude=self.latitude, longitude=self.longitude)


class SlowPosition(PositionSource):
    """Never answers within any reasonable timeout."""

    async def get_current_position(self, timeout_ms: int) -> GeoLocation:
        await asyncio.sleep(30)
        return GeoLocation(latitude=0, longitude=0)


class DeniedPosition(PositionSource):

    async def get_current_position(self, timeout_ms: int) -> GeoLocation:
        raise PositionUnavailable("User denied Geolocation")


# =============================================================================
# FAKE STORES
# =============================================================================

class FailingStore(InMemoryDocumentStore):
    """Rejects every write; counts attempts."""

    def __init__(self, kind: str = "transient") -> None:
        super().__init__()
        self.kind = kind
        self.attempts = 0

    async def create_document(self, collection: str, data: dict[str, Any]) -> str:
        self.attempts += 1
        raise PersistenceFailed("Service unavailable", kind=self.kind)


class GatedStore(InMemoryDocumentStore):
    """Holds every write until `release` is set; counts calls."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.calls = 0

    async def create_document(self, collection: str, data: dict[str, Any]) -> str:
        self.calls += 1
        await self.release.wait()
        return await super().create_document(collection, data)


# =============================================================================
# HELPERS
# =============================================================================

def make_evidence(
    location: Optional[GeoLocation] = None,
    captured_at: Optional[datetime] = None,
) -> CapturedEvidence:
    return CapturedEvidence(
        captured_at=captured_at or datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        location=location,
        image_data="data:image/jpeg;base64,/9j/4AAQ",
    )


def make_image_data_url(size: tuple[int, int] = (64, 48), fmt: str = "PNG") -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    mime = "image/png" if fmt == "PNG" else "image/jpeg"
    return f"data:{mime};base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


class SteppingClock:
    """Deterministic clock source; can be told to jump backwards."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.current = start or datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def registry() -> SchemaRegistry:
    registry = SchemaRegistry()
    registry.load()
    return registry


SITE_VISIT_YAML = """
activities:
  site_visit:
    title: "Site Visit"
    description: "Test activity with every field kind"
    collection: site_visits
    activity_type: "Site Visit"
    fields:
      - {name: gpName, label: "GP Name"}
      - {name: damageFound, kind: gate, label: "Damage Found", dependents: [damageNotes, damagePhotos]}
      - {name: damageNotes, label: "Damage Notes"}
      - {name: damagePhotos, kind: evidence, label: "Damage Photos"}
      - {name: sitePhotos, kind: evidence, label: "Site Photos"}
      - name: readings
        kind: repeatable
        label: "Readings"
        min_rows: 1
        default_row: {fiberNo: "1", loss: 0}
        row_fields:
          - {name: fiberNo, label: "Fiber No", type: choice, choices: ["1", "2", "3"]}
          - {name: loss, label: "Loss (dB)", type: number, min: 0}
"""


@pytest.fixture
def site_registry(tmp_path) -> SchemaRegistry:
    path = tmp_path / "site_visit.yaml"
    path.write_text(SITE_VISIT_YAML, encoding="utf-8")
    registry = SchemaRegistry(str(path))
    registry.load()
    return registry


@pytest.fixture
def site_schema(site_registry):
    return site_registry.get("site_visit")


@pytest.fixture
def lock() -> DeviceLock:
    return DeviceLock()


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def manager(registry, lock) -> FormSessionManager:
    return FormSessionManager(
        registry,
        frame_size=(64, 48),
        jpeg_quality=70,
        position_timeout_ms=50,
        lock=lock,
    )


WORKER = FirebaseUser(uid="worker-1", email="frt@worktrack.test", email_verified=True, role="user")
ADMIN = FirebaseUser(uid="admin-1", email="admin@worktrack.test", email_verified=True, role="admin")


@pytest.fixture
def api(registry, store, manager, camera):
    """TestClient wired to in-memory collaborators; `api.user` switches identity."""
    from worktrack import dependencies
    from worktrack.main import app
    from worktrack.services.records import RecordsService
    from worktrack.services.submission import SubmissionPipeline

    class _Api:
        user = WORKER

    state = _Api()

    app.dependency_overrides[get_current_user] = lambda: state.user
    app.dependency_overrides[dependencies.get_store] = lambda: store
    app.dependency_overrides[dependencies.get_schema_registry] = lambda: registry
    app.dependency_overrides[dependencies.get_session_manager] = lambda: manager
    app.dependency_overrides[dependencies.get_imaging_device] = lambda: camera
    app.dependency_overrides[dependencies.get_submission_pipeline] = lambda: SubmissionPipeline(store)
    app.dependency_overrides[dependencies.get_records_service] = lambda: RecordsService(store, registry)

    state.client = TestClient(app)
    state.store = store
    state.manager = manager
    state.camera = camera
    yield state
    app.dependency_overrides.clear()
