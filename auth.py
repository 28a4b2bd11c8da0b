"""
Authentication routes and dependencies
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import ADMIN_SCOPE, create_jwt, decode_jwt, hash_password, token_user_id, verify_password
from config.settings import ROLE_USER
from crud.user import UserRepository
from database import get_db
from database_models import User
from dependencies import get_login_rate_limiter
from models.user import LoginRequest, RegisterRequest, user_to_dict
from services.access_policy import MANAGE_USERS, has_capability
from services.trial_service import TrialService
from utils.errors import AuthError, AuthorizationError, RateLimitError, ValidationError
from utils.rate_limit import RateLimiter
from utils.security_utils import validate_email, validate_name, validate_password_strength, validate_phone
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


def validate_registration(request: RegisterRequest) -> dict:
    """
    Normalize registration fields, collecting every problem at once.

    Raises:
        ValidationError: With an ``errors`` list of ``{field, message}``
    """
    errors = []
    cleaned = {}

    for field, value in (("firstName", request.firstName), ("lastName", request.lastName)):
        try:
            cleaned[field] = validate_name(value, "First name" if field == "firstName" else "Last name")
        except ValueError as e:
            errors.append({"field": field, "message": str(e)})

    email = (request.email or "").strip().lower()
    if not validate_email(email):
        errors.append({"field": "email", "message": "Please provide a valid email"})
    if not validate_phone(request.phone):
        errors.append({"field": "phone", "message": "Please provide a valid phone number"})
    try:
        validate_password_strength(request.password)
    except ValueError as e:
        errors.append({"field": "password", "message": str(e)})

    if errors:
        raise ValidationError("Validation failed", errors=errors)

    cleaned["email"] = email
    cleaned["phone"] = request.phone.strip()
    cleaned["company"] = (request.company or "").strip()
    return cleaned


@auth_router.post("/register", status_code=201)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account and start the free trial"""
    fields = validate_registration(request)
    user_repo = UserRepository(db)

    if await user_repo.find_by_email_or_phone(fields["email"], fields["phone"]):
        raise ValidationError("User with this email or phone already exists", code="USER_EXISTS")

    user = await user_repo.create_user({
        "email": fields["email"],
        "hashed_password": hash_password(request.password),
        "first_name": fields["firstName"],
        "last_name": fields["lastName"],
        "phone": fields["phone"],
        "company": fields["company"],
        "role": ROLE_USER,
        "is_active": True,
    })
    await TrialService(db, user_repo).start_trial(user)

    log_endpoint_event("/auth/register", user.id, "success")
    return {
        "message": "User registered successfully",
        "token": create_jwt(user.id, user.role),
        "user": user_to_dict(user),
    }


@auth_router.post("/login")
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    limiter: RateLimiter = Depends(get_login_rate_limiter),
):
    """Login and get a JWT"""
    email = (request.email or "").strip().lower()
    if not validate_email(email) or not request.password:
        raise ValidationError("Validation failed", errors=[{"field": "email", "message": "Email and password are required"}])

    throttle = await limiter.hit(f"login:{email}")
    if not throttle.allowed:
        log_endpoint_event("/auth/login", None, "throttled", {"email": email})
        raise RateLimitError("Too many login attempts. Please try again later.", retryAfter=int(throttle.retry_after) + 1)

    user_repo = UserRepository(db)
    user = await user_repo.get_user_by_email(email)
    if not user or not verify_password(request.password, user.hashed_password):
        raise AuthError("Invalid email or password", code="INVALID_CREDENTIALS")
    if not user.is_active:
        raise AuthError("Account is deactivated", code="ACCOUNT_INACTIVE")

    user = await user_repo.update_user(user, {"last_login": datetime.utcnow()})

    log_endpoint_event("/auth/login", user.id, "success")
    return {
        "message": "Login successful",
        "token": create_jwt(user.id, user.role),
        "user": user_to_dict(user),
    }


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("No token, authorization denied", code="MISSING_TOKEN")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("No token, authorization denied", code="MISSING_TOKEN")
    return token


async def _authenticate(authorization: Optional[str], db: AsyncSession):
    payload = decode_jwt(_bearer_token(authorization))
    if not payload:
        raise AuthError("Token is not valid", code="INVALID_TOKEN")

    user_id = token_user_id(payload)
    if user_id is None:
        raise AuthError("Invalid token payload", code="INVALID_TOKEN")

    user = await UserRepository(db).get_user_by_id(user_id)
    if not user:
        raise AuthError("User not found", code="INVALID_TOKEN")
    if not user.is_active:
        raise AuthError("Account is deactivated", code="ACCOUNT_INACTIVE")
    return payload, user


# Dependency for protected routes
async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency function to get the current authenticated user.

    Accepts a Bearer token in the Authorization header. The user row is
    re-read on every request, so deactivation takes effect immediately.
    """
    _, user = await _authenticate(authorization, db)
    return user


def require_admin(capability: str):
    """
    Build a dependency for admin console routes: requires an admin-scoped
    token whose user's role still grants ``capability``.
    """
    async def dependency(
        authorization: Optional[str] = Header(None, alias="Authorization"),
        db: AsyncSession = Depends(get_db)
    ) -> User:
        payload, user = await _authenticate(authorization, db)
        if payload.get("scope") != ADMIN_SCOPE or not has_capability(user.role, capability):
            raise AuthorizationError("Access denied. Admin only.", code="ADMIN_REQUIRED")
        return user

    return dependency


get_admin_user = require_admin(MANAGE_USERS)


@auth_router.get("/me")
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information from the JWT"""
    return {"user": user_to_dict(current_user)}


@auth_router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy"""
    log_endpoint_event("/auth/logout", current_user.id, "success")
    return {"message": "Logout successful"}
