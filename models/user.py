"""
User request models and API representation
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    firstName: str
    lastName: str
    email: str
    phone: str
    password: str
    company: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdateRequest(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    currentPassword: str
    newPassword: str


class SubscriptionUpdate(BaseModel):
    plan: Optional[str] = None
    status: Optional[str] = None


class AdminUserUpdateRequest(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    subscription: Optional[SubscriptionUpdate] = None


class SettingsUpdateRequest(BaseModel):
    platform: Any = None
    userManagement: Any = None
    aiTools: Any = None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def usage_snapshot(user) -> Dict[str, Any]:
    return {
        "totalGenerations": user.total_generations or 0,
        "monthlyGenerations": user.monthly_generations or 0,
    }


def user_to_dict(user) -> Dict[str, Any]:
    """API representation of a User row, without the password hash."""
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
        "phone": user.phone,
        "company": user.company or "",
        "role": user.role,
        "isActive": user.is_active,
        "isSuspended": user.is_suspended,
        "subscription": {
            "plan": user.plan,
            "status": user.subscription_status,
            "trialStartDate": _iso(user.trial_start_date),
            "trialEndDate": _iso(user.trial_end_date),
            "subscriptionStartDate": _iso(user.subscription_start_date),
        },
        "usage": {
            **usage_snapshot(user),
            "lastResetDate": _iso(user.usage_last_reset),
            "toolsUsed": [
                {
                    "toolId": stat.tool_id,
                    "toolName": stat.tool_name,
                    "usageCount": stat.usage_count,
                    "lastUsed": _iso(stat.last_used),
                }
                for stat in user.tool_stats
            ],
        },
        "lastLogin": _iso(user.last_login),
        "createdAt": _iso(user.created_at),
    }
