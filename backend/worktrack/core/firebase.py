"""Firebase Admin SDK bootstrap shared by auth and Firestore storage."""

import logging
import os

import firebase_admin
from firebase_admin import credentials

from worktrack.core.config import settings

logger = logging.getLogger(__name__)


def init_firebase() -> bool:
    """Initialize Firebase Admin SDK if not already initialized."""
    try:
        firebase_admin.get_app()
        return True
    except ValueError:
        # Not initialized yet
        pass

    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    cred_path = settings.GOOGLE_APPLICATION_CREDENTIALS
    try:
        if cred_path and os.path.exists(cred_path):
            firebase_admin.initialize_app(credentials.Certificate(cred_path), options)
        else:
            # Default credentials (Cloud Run / Cloud Functions)
            firebase_admin.initialize_app(options=options)
    except (ValueError, OSError) as e:
        logger.error(f"Firebase initialization failed: {e}")
        return False

    logger.info("Firebase Admin SDK initialized")
    return True
