"""
Authentication utilities: Password hashing and JWT token management
"""

import jwt
from datetime import datetime, timedelta
from passlib.context import CryptContext
from typing import Optional

from config.settings import settings, ROLE_ADMIN, ROLE_USER

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# JWT configuration
ALGORITHM = "HS256"
ADMIN_SCOPE = "admin"


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(password, password_hash)


def _secret() -> str:
    if not settings.jwt_secret:
        raise ValueError("JWT_SECRET is not set. Cannot sign or verify JWT tokens.")
    return settings.jwt_secret


def create_jwt(user_id, role: str = ROLE_USER, expires_delta: Optional[timedelta] = None) -> str:
    """Create a user JWT (7 days by default)"""
    now = datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "userId": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + (expires_delta or timedelta(days=settings.user_token_days)),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def create_admin_jwt(user_id, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create an admin-console JWT (1 day by default)"""
    now = datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "id": str(user_id),
        "email": email,
        "role": ROLE_ADMIN,
        "scope": ADMIN_SCOPE,
        "loginTime": int(now.timestamp() * 1000),
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=settings.admin_token_hours)),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_jwt(token: str):
    """Decode a JWT token. Returns None if invalid."""
    secret = _secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def token_user_id(payload: dict) -> Optional[int]:
    """User id from any of the claims tokens have carried: sub, userId, id."""
    raw = payload.get("sub") or payload.get("userId") or payload.get("id")
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def create_expired_jwt(user_id, expired_seconds_ago: int = 1) -> str:
    """
    Create an expired JWT token for testing purposes.

    Args:
        user_id: User ID to include in token
        expired_seconds_ago: How many seconds ago the token should have expired (default: 1)

    Returns:
        Expired JWT token string

    Raises:
        ValueError: If JWT_SECRET is not set
    """
    return create_jwt(user_id, expires_delta=timedelta(seconds=-expired_seconds_ago))
