"""
Users Router - profile, usage statistics and password management
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from auth_utils import hash_password, verify_password
from crud.usage import UsageRepository
from crud.user import UserRepository
from database import get_db
from database_models import User
from models.user import ChangePasswordRequest, ProfileUpdateRequest, user_to_dict
from services import access_policy
from services.access_policy import SubscriptionState
from services.analytics_service import AnalyticsService
from services.trial_service import TrialService
from utils.errors import ValidationError
from utils.security_utils import validate_name, validate_password_strength, validate_phone
from utils.shared_utils import log_endpoint_event

users_router = APIRouter(prefix="/api/users", tags=["users"])

RECENT_ACTIVITY_LIMIT = 10


@users_router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Profile, trial status, available tools and the ten latest ledger entries"""
    now = datetime.utcnow()
    recent, _ = await UsageRepository(db).page(0, RECENT_ACTIVITY_LIMIT, user_id=current_user.id)
    return {
        "user": {
            **user_to_dict(current_user),
            "trialDaysRemaining": TrialService.trial_days_remaining(current_user, now),
            "availableTools": access_policy.available_tools(SubscriptionState.from_user(current_user), now),
        },
        "recentActivity": [
            {
                "toolName": record.tool_name,
                "createdAt": record.created_at.isoformat() if record.created_at else None,
                "status": record.status,
            }
            for record in recent
        ],
    }


@users_router.put("/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update first/last name, phone and company"""
    updates = {}
    errors = []
    for field, column, label in (("firstName", "first_name", "First name"), ("lastName", "last_name", "Last name")):
        value = getattr(request, field)
        if value is None:
            continue
        try:
            updates[column] = validate_name(value, label)
        except ValueError as e:
            errors.append({"field": field, "message": str(e)})
    if request.phone is not None:
        if validate_phone(request.phone):
            updates["phone"] = request.phone.strip()
        else:
            errors.append({"field": "phone", "message": "Please provide a valid phone number"})
    if request.company is not None:
        updates["company"] = request.company.strip()

    if errors:
        raise ValidationError("Validation failed", errors=errors)

    user = await UserRepository(db).update_user(current_user, updates)
    log_endpoint_event("/users/profile", user.id, "success", {"fields": sorted(updates)})
    return {"message": "Profile updated successfully", "user": user_to_dict(user)}


@users_router.get("/usage-stats")
async def usage_stats(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await AnalyticsService(db).get_user_usage_stats(current_user)


@users_router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change password after verifying the current one"""
    if not request.currentPassword:
        raise ValidationError("Validation failed", errors=[{"field": "currentPassword", "message": "Current password is required"}])
    try:
        validate_password_strength(request.newPassword)
    except ValueError as e:
        raise ValidationError("Validation failed", errors=[{"field": "newPassword", "message": str(e)}])

    if not verify_password(request.currentPassword, current_user.hashed_password):
        raise ValidationError("Current password is incorrect", code="INVALID_PASSWORD")

    await UserRepository(db).update_user(current_user, {"hashed_password": hash_password(request.newPassword)})
    log_endpoint_event("/users/change-password", current_user.id, "success")
    return {"message": "Password changed successfully"}


@users_router.get("/analytics")
async def user_analytics(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await AnalyticsService(db).get_user_analytics(current_user)
