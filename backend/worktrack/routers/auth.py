"""Authentication router.

Field workers and admins authenticate with Firebase on the client.
The API verifies Firebase JWTs - it never mints them.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from worktrack.core.config import settings
from worktrack.core.firebase_auth import FirebaseUser, get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


class UserProfile(BaseModel):
    """User profile response."""
    uid: str
    email: Optional[str] = None
    email_verified: bool
    role: str
    is_admin: bool


@router.get("/me", response_model=UserProfile)
async def get_my_profile(
    current_user: FirebaseUser = Depends(get_current_user),
):
    """
    Get current user's identity and role.

    Requires valid Firebase JWT in Authorization header.
    """
    return UserProfile(
        uid=current_user.uid,
        email=current_user.email,
        email_verified=current_user.email_verified,
        role=current_user.role,
        is_admin=current_user.role == settings.ADMIN_ROLE,
    )
