"""WorkTrack - FastAPI Application.

Field maintenance data collection: activity forms, photo evidence,
submission and the admin dashboard.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from worktrack import __version__
from worktrack.core.config import settings
from worktrack.core.errors import (
    CaptureCancelled,
    DeviceBusy,
    DeviceUnavailable,
    IndexOutOfRange,
    InvalidValue,
    PersistenceFailed,
    SessionNotFound,
    SubmissionInFlight,
    UnknownActivity,
    UnknownField,
    ValidationFailed,
    WorkTrackError,
)
from worktrack.core.logging import configure_logging
from worktrack.dependencies import get_session_manager, get_store
from worktrack.routers import activities, admin, auth, forms

logger = logging.getLogger(__name__)

# Most specific class first
ERROR_STATUS: list[tuple[type[WorkTrackError], int]] = [
    (SessionNotFound, 404),
    (UnknownActivity, 404),
    (IndexOutOfRange, 422),
    (UnknownField, 422),
    (InvalidValue, 422),
    (ValidationFailed, 422),
    (DeviceBusy, 409),
    (CaptureCancelled, 409),
    (SubmissionInFlight, 409),
    (DeviceUnavailable, 503),
]


def status_for(exc: WorkTrackError) -> int:
    if isinstance(exc, PersistenceFailed):
        return 502 if exc.retryable else 500
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"{settings.APP_NAME} {__version__} starting (storage={settings.STORAGE_BACKEND})")
    yield
    get_session_manager().close_all()
    await get_store().close()


app = FastAPI(
    title=settings.APP_NAME,
    description="WorkTrack - Field maintenance data collection",
    version=__version__,
    debug=settings.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(activities.router)
app.include_router(forms.router)
app.include_router(admin.router)


@app.exception_handler(WorkTrackError)
async def worktrack_error_handler(request: Request, exc: WorkTrackError) -> JSONResponse:
    code = status_for(exc)
    content = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ValidationFailed):
        content["errors"] = exc.report.errors
        content["rowErrors"] = exc.report.row_errors
    if isinstance(exc, PersistenceFailed):
        content["retryable"] = exc.retryable
    if code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=code, content=content)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": settings.APP_NAME,
        "version": __version__,
        "status": "operational",
    }


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "storage": settings.STORAGE_BACKEND,
        "activeForms": len(get_session_manager()),
    }
