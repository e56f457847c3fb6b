"""
Profile Router - read and update the signed-in user's account
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, set_session_cookie
from auth_utils import hash_password, verify_password
from crud.user import UserRepository
from database import get_db
from database_models import User
from utils.responses import ApiError
from utils.security_utils import validate_email, validate_password_strength

logger = logging.getLogger(__name__)

profile_router = APIRouter(prefix="/api/user", tags=["profile"])


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


def serialize_profile(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }


@profile_router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return serialize_profile(user)


@profile_router.put("/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Update name, email and/or password.

    Changing the password requires the current password. Changing the email
    re-issues the session cookie, since sessions carry the email claim.
    """
    if request.name is None and not request.email and not request.newPassword:
        raise ApiError("At least one field must be provided", status=400)

    user_repo = UserRepository(db)
    updates = {}

    if request.name is not None:
        updates["name"] = request.name.strip() or None

    email_changed = False
    if request.email and request.email.lower() != user.email:
        if not validate_email(request.email):
            raise ApiError("Please provide a valid email address", status=400)
        existing_user = await user_repo.get_user_by_email(request.email)
        if existing_user and existing_user.id != user.id:
            raise ApiError("Email is already taken", status=409)
        updates["email"] = request.email.lower()
        email_changed = True

    if request.newPassword:
        if not request.currentPassword:
            raise ApiError("Current password is required to change password", status=400)
        if not verify_password(request.currentPassword, user.hashed_password):
            raise ApiError("Current password is incorrect", status=400)
        try:
            validate_password_strength(request.newPassword)
        except ValueError as e:
            raise ApiError(str(e), status=400)
        updates["hashed_password"] = hash_password(request.newPassword)

    user = await user_repo.update_user(user, updates)
    await db.commit()
    logger.info(f"Profile updated for user {user.id}")

    response = JSONResponse(content={
        "message": "Profile updated successfully",
        "user": serialize_profile(user),
    })
    if email_changed:
        set_session_cookie(response, user)
    return response
