"""
Authentication utilities: Password hashing and JWT session tokens
"""

import jwt
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
from typing import Optional
from config import settings

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# JWT configuration
ALGORITHM = "HS256"

# Sessions last 30 days
SESSION_MAX_AGE = 30 * 24 * 60 * 60


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify a password against its hash. Accounts without a password never match."""
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_jwt(user_id: str, email: str) -> str:
    """Create a session token for a user"""
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create JWT token.")

    payload = {
        "sub": user_id,
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=SESSION_MAX_AGE)
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def decode_jwt(token: str):
    """Decode a JWT token. Returns None if invalid."""
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot decode JWT token.")

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def create_expired_jwt(user_id: str, email: str, expired_seconds_ago: int = 1) -> str:
    """
    Create an expired JWT token for testing purposes.

    Args:
        user_id: User ID to include in token
        email: Email claim to include in token
        expired_seconds_ago: How many seconds ago the token should have expired (default: 1)

    Returns:
        Expired JWT token string

    Raises:
        ValueError: If JWT_SECRET_KEY is not set
    """
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create JWT token.")

    payload = {
        "sub": user_id,
        "email": email,
        "exp": datetime.now(timezone.utc) - timedelta(seconds=expired_seconds_ago)
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str


def resolve_identity(token: Optional[str]) -> Optional[Identity]:
    """
    Map a session token to the identity it was issued for.

    Returns:
        Identity, or None when the token is missing, invalid, expired or
        lacks the user id / email claims
    """
    if not token:
        return None

    payload = decode_jwt(token)
    if not payload:
        return None

    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        return None

    return Identity(user_id=str(user_id), email=str(email))
