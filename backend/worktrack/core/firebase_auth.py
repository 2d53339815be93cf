"""Firebase Authentication

Field workers and admins sign in on the client; every request carries the
Firebase ID token as `Authorization: Bearer <token>`. The API never mints
tokens. Roles live on the `users/{uid}` document; a user without one gets
the default role.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from worktrack.core.config import settings
from worktrack.core.firebase import init_firebase
from worktrack.dependencies import get_store
from worktrack.models.record import SubmittedBy
from worktrack.storage.base import DocumentStore

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

bearer = HTTPBearer(auto_error=False)


@dataclass
class FirebaseUser:
    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    claims: dict[str, Any] = field(default_factory=dict)
    role: Optional[str] = None

    @property
    def submitted_by(self) -> SubmittedBy:
        """Identity stamped on every record this user submits."""
        return SubmittedBy(uid=self.uid, email=self.email)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def verify_firebase_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[FirebaseUser]:
    """
    Decode the bearer token, if any.

    No header -> None. A header that does not verify -> 401; the worker
    has to sign in again.
    """
    if credentials is None:
        return None

    if not init_firebase():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sign-in is unavailable: Firebase is not configured",
        )

    # ExpiredIdTokenError subclasses InvalidIdTokenError; check it first
    try:
        token = firebase_auth.verify_id_token(credentials.credentials)
    except firebase_auth.ExpiredIdTokenError:
        raise _unauthorized("Session expired, sign in again")
    except firebase_auth.InvalidIdTokenError:
        raise _unauthorized("Invalid ID token")
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning(f"ID token rejected: {e}")
        raise _unauthorized(f"Could not verify ID token: {e}")

    return FirebaseUser(
        uid=token["uid"],
        email=token.get("email"),
        email_verified=token.get("email_verified", False),
        claims=token,
    )


async def require_firebase_auth(
    user: Optional[FirebaseUser] = Depends(verify_firebase_token),
) -> FirebaseUser:
    if user is None:
        raise _unauthorized("Sign in required")
    return user


async def get_current_user(
    user: FirebaseUser = Depends(require_firebase_auth),
    store: DocumentStore = Depends(get_store),
) -> FirebaseUser:
    """Signed-in user with their role resolved from users/{uid}."""
    profile = await store.get_document(USERS_COLLECTION, user.uid) or {}
    return replace(user, role=profile.get("role") or settings.DEFAULT_ROLE)


def require_role(*roles: str):
    """Dependency factory: 403 unless the current user holds one of `roles`."""

    async def check_role(user: FirebaseUser = Depends(get_current_user)) -> FirebaseUser:
        if user.role not in roles:
            logger.info(f"User {user.uid} with role {user.role} refused; needs {', '.join(roles)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}",
            )
        return user

    return check_role
