"""
Trial Service for managing the free-trial window of new accounts
"""
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings, PLAN_FREE_TRIAL, STATUS_TRIAL
from crud.user import UserRepository
from database_models import User


class TrialService:
    """
    Service for managing user trial periods.
    Handles trial start and validation logic.
    """

    def __init__(self, db: AsyncSession, user_repo: UserRepository, trial_days: Optional[int] = None):
        """
        Initialize the trial service with database session and user repository.

        Args:
            db: AsyncSession instance for database operations
            user_repo: UserRepository instance for user operations
            trial_days: Length of the trial window, defaults to TRIAL_DAYS
        """
        self.db = db
        self.user_repo = user_repo
        self.trial_days = trial_days if trial_days is not None else settings.trial_days

    async def start_trial(self, user: User, now: Optional[datetime] = None) -> None:
        """
        Start a trial period for a user.
        Only sets the window if trial_start_date is currently None (hasn't started yet).

        Args:
            user: User object to start trial for
            now: Trial start time, defaults to the current UTC time
        """
        if user.trial_start_date is not None:
            return
        start = now or datetime.utcnow()
        await self.user_repo.update_user(user, {
            "plan": PLAN_FREE_TRIAL,
            "subscription_status": STATUS_TRIAL,
            "trial_start_date": start,
            "trial_end_date": start + timedelta(days=self.trial_days),
        })

    @staticmethod
    def is_trial_active(user: User, now: Optional[datetime] = None) -> bool:
        """
        A trial is active while the account is in trial status and the
        trial end date lies in the future.
        """
        if user.subscription_status != STATUS_TRIAL:
            return False
        return not user.is_trial_expired(now or datetime.utcnow())

    @staticmethod
    def trial_days_remaining(user: User, now: Optional[datetime] = None) -> int:
        """
        Whole days left in the trial, rounded up; 0 for non-trial or expired accounts.
        """
        if user.subscription_status != STATUS_TRIAL or user.trial_end_date is None:
            return 0
        remaining = (user.trial_end_date - (now or datetime.utcnow())).total_seconds() / 86400
        return max(0, math.ceil(remaining))
