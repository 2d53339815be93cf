"""Dependency injection helpers for FastAPI."""

from datetime import timedelta
from functools import lru_cache

from worktrack.capture.devices import Facing, ImagingDevice
from worktrack.core.config import settings
from worktrack.core.errors import DeviceUnavailable
from worktrack.forms.schema import SchemaRegistry, get_registry
from worktrack.services.form_sessions import FormSessionManager
from worktrack.services.records import RecordsService
from worktrack.services.submission import SubmissionPipeline
from worktrack.storage.base import DocumentStore
from worktrack.storage.memory import InMemoryDocumentStore


@lru_cache()
def get_store() -> DocumentStore:
    if settings.STORAGE_BACKEND == "firestore":
        from worktrack.storage.firestore import FirestoreDocumentStore
        return FirestoreDocumentStore()
    return InMemoryDocumentStore()


def get_schema_registry() -> SchemaRegistry:
    return get_registry()


@lru_cache()
def get_session_manager() -> FormSessionManager:
    return FormSessionManager(
        get_registry(),
        frame_size=(settings.CAPTURE_FRAME_WIDTH, settings.CAPTURE_FRAME_HEIGHT),
        jpeg_quality=settings.CAPTURE_JPEG_QUALITY,
        position_timeout_ms=settings.POSITION_TIMEOUT_MS,
        idle_timeout=timedelta(minutes=settings.FORM_SESSION_IDLE_MINUTES),
    )


def get_submission_pipeline() -> SubmissionPipeline:
    return SubmissionPipeline(get_store())


def get_records_service() -> RecordsService:
    return RecordsService(get_store(), get_registry())


@lru_cache()
def get_imaging_device() -> ImagingDevice:
    """Server-attached camera; raises DeviceUnavailable when none is configured."""
    if settings.CAPTURE_DEVICE == "none":
        raise DeviceUnavailable("No camera is attached to this server")
    from worktrack.capture.opencv_camera import OpenCVCamera
    return OpenCVCamera(
        {
            Facing.ENVIRONMENT: settings.CAPTURE_CAMERA_INDEX_ENVIRONMENT,
            Facing.USER: settings.CAPTURE_CAMERA_INDEX_USER,
        },
        width=settings.CAPTURE_FRAME_WIDTH,
        height=settings.CAPTURE_FRAME_HEIGHT,
    )
