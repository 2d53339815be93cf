from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "WorkTrack"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Storage
    STORAGE_BACKEND: Literal["memory", "firestore"] = "memory"
    FIREBASE_PROJECT_ID: Optional[str] = None
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None

    # Roles (stored on users/{uid}.role)
    ADMIN_ROLE: str = "admin"
    DEFAULT_ROLE: str = "user"

    # Capture
    CAPTURE_DEVICE: Literal["opencv", "none"] = "opencv"
    CAPTURE_CAMERA_INDEX_ENVIRONMENT: int = 0
    CAPTURE_CAMERA_INDEX_USER: int = 1
    CAPTURE_FACING: Literal["environment", "user"] = "environment"
    CAPTURE_FRAME_WIDTH: int = 1280
    CAPTURE_FRAME_HEIGHT: int = 720
    CAPTURE_JPEG_QUALITY: int = 80
    POSITION_TIMEOUT_MS: int = 10_000

    # Forms
    ACTIVITY_SCHEMA_PATH: Optional[str] = None
    FORM_SESSION_IDLE_MINUTES: int = 240

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
