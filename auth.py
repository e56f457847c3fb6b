"""
Authentication routes and dependencies
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Header, Depends, Cookie
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from database import get_db
from database_models import User
from crud.user import UserRepository
from auth_utils import hash_password, verify_password, create_jwt, resolve_identity, SESSION_MAX_AGE
from services.entitlement_service import has_active_subscription
from utils.responses import ApiError
from utils.security_utils import validate_email, validate_password_strength

logger = logging.getLogger(__name__)

SESSION_COOKIE = "auth_token"

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


# Request models
class SignupRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def set_session_cookie(response: JSONResponse, user: User) -> JSONResponse:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=create_jwt(user.id, user.email),
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=SESSION_MAX_AGE,
    )
    return response


@auth_router.post("/signup")
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account"""
    try:
        if not request.email or not request.password:
            raise HTTPException(status_code=400, detail="Email and password are required")

        if not validate_email(request.email):
            raise HTTPException(status_code=400, detail="Please provide a valid email address")

        try:
            validate_password_strength(request.password)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        user_repo = UserRepository(db)

        existing_user = await user_repo.get_user_by_email(request.email)
        if existing_user:
            raise HTTPException(status_code=409, detail="User with this email already exists")

        try:
            user = await user_repo.create_user({
                "email": request.email,
                "hashed_password": hash_password(request.password),
                "name": (request.name or "").strip() or None,
            })
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            await db.rollback()
            raise HTTPException(status_code=409, detail="User with this email already exists")

        logger.info(f"Account created for {user.email}")

        response = JSONResponse(
            status_code=201,
            content={
                "message": "Account created successfully",
                "user": serialize_user(user),
            }
        )
        return set_session_cookie(response, user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Signup error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@auth_router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login and set the session cookie"""
    try:
        user_repo = UserRepository(db)

        user = await user_repo.get_user_by_email(request.email)
        if not user or not verify_password(request.password, user.hashed_password):
            raise HTTPException(status_code=401, detail="Invalid email or password")

        response = JSONResponse(
            content={
                "ok": True,
                "user": serialize_user(user),
            }
        )
        return set_session_cookie(response, user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Authentication failed")


@auth_router.post("/logout")
async def logout():
    """Logout and clear auth token cookie"""
    response = JSONResponse(
        content={
            "ok": True,
            "message": "Logged out successfully"
        }
    )
    response.set_cookie(
        key=SESSION_COOKIE,
        value="",
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=0
    )
    return response


def get_session_token(
    auth_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[str]:
    """
    Extract the session token from the request.

    Priority:
    1. auth_token cookie (httpOnly cookie set by login/signup)
    2. Authorization: Bearer header (API consumers)
    """
    if auth_token:
        return auth_token
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return None


# Dependency for protected routes
async def get_current_user(
    token: Optional[str] = Depends(get_session_token),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency returning the signed-in User row.

    Raises:
        ApiError 401: no valid session
        ApiError 404: session is valid but the account row is gone
    """
    identity = resolve_identity(token)
    if identity is None:
        raise ApiError("Unauthorized", status=401)

    user = await UserRepository(db).get_user_by_id(identity.user_id)
    if user is None:
        raise ApiError("User not found", status=404)

    return user


@auth_router.get("/me")
async def get_current_user_info(user: User = Depends(get_current_user)):
    """Get current user information"""
    return {
        "ok": True,
        "user": serialize_user(user),
        "isSubscribed": has_active_subscription(user),
    }
