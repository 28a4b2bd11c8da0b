"""
Admin Router - admin console API: users, subscriptions, analytics, settings
"""
import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_admin_user, require_admin
from auth_utils import create_admin_jwt, verify_password
from config.settings import PLANS, ROLE_ADMIN, STATUS_ACTIVE, STATUS_TRIAL, SUBSCRIPTION_STATUSES, settings
from crud.settings import SettingsRepository, settings_to_dict
from crud.user import UserRepository
from database import get_db
from database_models import User
from dependencies import get_ledger_stats
from models.user import AdminUserUpdateRequest, LoginRequest, SettingsUpdateRequest, user_to_dict
from services.access_policy import MANAGE_SETTINGS, VIEW_PLATFORM_STATS
from services.analytics_service import AnalyticsService
from services.usage_ledger import LedgerStats
from utils.errors import AuthError, AuthorizationError, NotFoundError, ValidationError
from utils.security_utils import validate_email, validate_name
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/api/admin", tags=["admin"])

get_stats_admin = require_admin(VIEW_PLATFORM_STATS)
get_settings_admin = require_admin(MANAGE_SETTINGS)


async def _get_user_or_404(user_repo: UserRepository, user_id: int) -> User:
    user = await user_repo.get_user_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@admin_router.post("/login")
async def admin_login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Admin console login; issues an admin-scoped token"""
    if not request.email or not request.password:
        raise ValidationError("Email and password are required")

    user = await UserRepository(db).get_user_by_email(request.email)
    if not user:
        raise AuthError("Invalid credentials", code="INVALID_CREDENTIALS")
    if user.role != ROLE_ADMIN:
        raise AuthorizationError("Access denied. Admin only.", code="ADMIN_REQUIRED")
    if not verify_password(request.password, user.hashed_password):
        raise AuthError("Invalid credentials", code="INVALID_CREDENTIALS")
    if not user.is_active:
        raise AuthError("Account is deactivated", code="ACCOUNT_INACTIVE")

    log_endpoint_event("/admin/login", user.id, "success")
    return {
        "message": "Admin login successful",
        "token": create_admin_jwt(user.id, user.email),
        "user": {
            "id": user.id,
            "email": user.email,
            "role": user.role,
            "firstName": user.first_name,
            "lastName": user.last_name,
        },
    }


@admin_router.get("/dashboard-stats")
async def dashboard_stats(admin: User = Depends(get_stats_admin), db: AsyncSession = Depends(get_db)):
    return await AnalyticsService(db).get_dashboard_stats()


@admin_router.get("/users")
async def list_users(admin: User = Depends(get_admin_user), db: AsyncSession = Depends(get_db)):
    users = await UserRepository(db).list_users()
    return {"users": [user_to_dict(u) for u in users], "total": len(users)}


@admin_router.get("/users/{user_id}")
async def get_user(user_id: int, admin: User = Depends(get_admin_user), db: AsyncSession = Depends(get_db)):
    user = await _get_user_or_404(UserRepository(db), user_id)
    return {"user": user_to_dict(user)}


@admin_router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    request: AdminUserUpdateRequest,
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update profile fields and, optionally, the subscription plan/status.

    Moving to ``active`` stamps the subscription start date; moving to
    ``trial`` opens a trial window if the account never had one.
    """
    user_repo = UserRepository(db)
    user = await _get_user_or_404(user_repo, user_id)

    updates = {}
    try:
        if request.firstName:
            updates["first_name"] = validate_name(request.firstName, "First name")
        if request.lastName:
            updates["last_name"] = validate_name(request.lastName, "Last name")
    except ValueError as e:
        raise ValidationError(str(e))

    if request.email:
        email = request.email.strip().lower()
        if not validate_email(email):
            raise ValidationError("Please provide a valid email")
        existing = await user_repo.get_user_by_email(email)
        if existing is not None and existing.id != user.id:
            raise ValidationError("Email already in use", code="USER_EXISTS")
        updates["email"] = email
    if request.company is not None:
        updates["company"] = request.company.strip()

    subscription = request.subscription
    if subscription is not None:
        if subscription.plan is not None:
            if subscription.plan not in PLANS:
                raise ValidationError(f"Unknown plan '{subscription.plan}'")
            updates["plan"] = subscription.plan
        if subscription.status is not None:
            if subscription.status not in SUBSCRIPTION_STATUSES:
                raise ValidationError(f"Unknown subscription status '{subscription.status}'")
            updates["subscription_status"] = subscription.status
            now = datetime.utcnow()
            if subscription.status == STATUS_ACTIVE and user.subscription_status != STATUS_ACTIVE:
                updates["subscription_start_date"] = now
            if subscription.status == STATUS_TRIAL and user.trial_end_date is None:
                updates["trial_start_date"] = now
                updates["trial_end_date"] = now + timedelta(days=settings.trial_days)

    user = await user_repo.update_user(user, updates)
    log_endpoint_event("/admin/users/{id}", admin.id, "success", {"target": user.id, "fields": sorted(updates)})
    return {"message": "User updated successfully", "user": user_to_dict(user)}


@admin_router.post("/users/{user_id}/toggle-suspension")
async def toggle_suspension(user_id: int, admin: User = Depends(get_admin_user), db: AsyncSession = Depends(get_db)):
    user_repo = UserRepository(db)
    user = await _get_user_or_404(user_repo, user_id)
    if user.id == admin.id:
        raise ValidationError("Admins cannot suspend their own account")

    user = await user_repo.update_user(user, {"is_suspended": not user.is_suspended})
    action = "suspended" if user.is_suspended else "activated"
    log_endpoint_event("/admin/users/{id}/toggle-suspension", admin.id, "success", {"target": user.id, "action": action})
    return {"message": f"User account {action} successfully", "isSuspended": user.is_suspended}


@admin_router.delete("/users/{user_id}")
async def delete_user(user_id: int, admin: User = Depends(get_admin_user), db: AsyncSession = Depends(get_db)):
    """Hard-delete a user with their ledger entries and tool counters"""
    user_repo = UserRepository(db)
    user = await _get_user_or_404(user_repo, user_id)
    if user.id == admin.id:
        raise ValidationError("Admins cannot delete their own account")

    await user_repo.delete_user(user)
    log_endpoint_event("/admin/users/{id}", admin.id, "success", {"deleted": user_id})
    return {"message": "User account deleted successfully"}


@admin_router.get("/subscriptions/overview")
async def subscriptions_overview(admin: User = Depends(get_stats_admin), db: AsyncSession = Depends(get_db)):
    return await AnalyticsService(db).get_subscription_overview()


@admin_router.get("/analytics")
async def platform_analytics(
    admin: User = Depends(get_stats_admin),
    db: AsyncSession = Depends(get_db),
    ledger_stats: LedgerStats = Depends(get_ledger_stats),
):
    return await AnalyticsService(db).get_platform_analytics(ledger_stats)


@admin_router.get("/settings")
async def get_settings(admin: User = Depends(get_settings_admin), db: AsyncSession = Depends(get_db)):
    return settings_to_dict(await SettingsRepository(db).get())


@admin_router.put("/settings")
async def update_settings(
    request: SettingsUpdateRequest,
    admin: User = Depends(get_settings_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace platform settings; every section must be a JSON object"""
    for field in ("platform", "userManagement", "aiTools"):
        if not isinstance(getattr(request, field), dict):
            raise ValidationError(f"Invalid or missing {field} settings")

    row = await SettingsRepository(db).upsert(request.platform, request.userManagement, request.aiTools)
    log_endpoint_event("/admin/settings", admin.id, "success")
    return settings_to_dict(row)
