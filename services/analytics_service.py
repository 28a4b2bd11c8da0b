"""
Analytics Service - Business logic for usage and platform metrics
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import (
    PLANS,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    STATUS_TRIAL,
    SUBSCRIPTION_STATUSES,
)
from crud.usage import UsageRepository
from crud.user import UserRepository
from database_models import User
from services.trial_service import TrialService
from services.usage_ledger import STATUS_ERROR, STATUS_SUCCESS, LedgerStats

logger = logging.getLogger(__name__)

POPULAR_TOOLS_LIMIT = 5
DAILY_USAGE_DAYS = 30


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class AnalyticsService:
    """Service class for analytics business logic"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.usage = UsageRepository(db)

    async def get_user_usage_stats(self, user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Per-user usage statistics.

        ``monthlyGenerations`` counts successful ledger entries since the first
        of the current month; ``toolUsageStats`` and ``dailyUsage`` count every
        recorded attempt.
        """
        now = now or datetime.utcnow()
        monthly = await self.usage.count(user_id=user.id, status=STATUS_SUCCESS, start_date=start_of_month(now))
        return {
            "totalGenerations": user.total_generations or 0,
            "monthlyGenerations": monthly,
            "toolUsageStats": await self.usage.tool_breakdown(user_id=user.id),
            "dailyUsage": await self.usage.daily_counts(
                user_id=user.id, start_date=now - timedelta(days=DAILY_USAGE_DAYS)
            ),
            "subscription": {
                "plan": user.plan,
                "status": user.subscription_status,
                "trialDaysRemaining": TrialService.trial_days_remaining(user, now),
            },
        }

    async def get_user_analytics(self, user: User) -> Dict[str, Any]:
        latest = await self.usage.latest(user.id)
        return {
            "generations": await self.usage.count(user_id=user.id),
            "lastActivity": latest.created_at.isoformat() if latest else None,
        }

    async def get_dashboard_stats(self) -> Dict[str, Any]:
        return {
            "totalUsers": await self.users.count_users(),
            "activeSubscriptions": await self.users.count_users(subscription_status=STATUS_ACTIVE),
            "trialUsers": await self.users.count_users(subscription_status=STATUS_TRIAL),
            "inactiveUsers": await self.users.count_users(subscription_status=STATUS_INACTIVE),
            "suspendedUsers": await self.users.count_users(is_suspended=True),
            "apiUsage": await self.usage.count(),
        }

    async def get_subscription_overview(self) -> Dict[str, Any]:
        by_plan = await self.users.count_by_plan()
        by_status = {}
        for status in SUBSCRIPTION_STATUSES:
            by_status[status] = await self.users.count_users(subscription_status=status)
        return {
            "plans": {plan: by_plan.get(plan, 0) for plan in PLANS},
            "statuses": by_status,
        }

    async def get_platform_analytics(self, ledger_stats: LedgerStats) -> Dict[str, Any]:
        """
        Platform-wide generation metrics for the admin console.
        ``avgResponseTime`` is in seconds, computed from recorded processing times.
        """
        total = await self.usage.count()
        errors = await self.usage.count(status=STATUS_ERROR)
        avg_ms = await self.usage.average_processing_time()
        return {
            "totalGenerations": total,
            "successfulGenerations": total - errors,
            "failedGenerations": errors,
            "successRate": round((total - errors) / total * 100, 1) if total else 100.0,
            "avgResponseTime": round(avg_ms / 1000, 2),
            "mostPopularTools": await self.usage.popular_tools(limit=POPULAR_TOOLS_LIMIT),
            "ledgerWriteFailures": ledger_stats.failed_writes,
        }

    async def get_public_analytics(self) -> Dict[str, Any]:
        return {
            "totalGenerations": await self.usage.count(),
            "mostPopularTools": await self.usage.popular_tools(limit=POPULAR_TOOLS_LIMIT),
        }
