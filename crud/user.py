"""
UserRepository for database operations on User model
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import ToolUsageStat, UsageRecord, User


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        """
        Retrieve a user by ID.

        Args:
            user_id: User's ID

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def find_by_email_or_phone(self, email: str, phone: Optional[str]) -> Optional[User]:
        clauses = [User.email == email.strip().lower()]
        if phone:
            clauses.append(User.phone == phone)
        result = await self.db.execute(select(User).where(or_(*clauses)).limit(1))
        return result.scalar_one_or_none()

    async def list_users(self) -> List[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
        return list(result.scalars().all())

    async def count_users(self, **filters) -> int:
        query = select(func.count(User.id))
        for key, value in filters.items():
            query = query.where(getattr(User, key) == value)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def count_by_plan(self) -> dict:
        result = await self.db.execute(select(User.plan, func.count(User.id)).group_by(User.plan))
        return {plan: count for plan, count in result.all()}

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - email: str
                - hashed_password: str
                - first_name: str
                - last_name: str
                Optional:
                - phone, company: str
                - role: str (defaults to "user")
                - is_active: bool (defaults to True)

        Returns:
            Created User object
        """
        user = User(
            email=user_data["email"].strip().lower(),
            hashed_password=user_data["hashed_password"],
            first_name=user_data["first_name"],
            last_name=user_data["last_name"],
            phone=user_data.get("phone"),
            company=user_data.get("company") or "",
            role=user_data.get("role", "user"),
            is_active=user_data.get("is_active", True),
        )
        self.db.add(user)
        await self.db.flush()  # Flush to get the ID without committing
        await self.db.refresh(user)  # Refresh to get the generated ID and empty tool_stats
        return user

    async def update_user(self, user: User, updates: dict) -> User:
        """
        Update user fields.

        Args:
            user: User object to update
            updates: Dictionary of fields to update (e.g., {"is_suspended": True})

        Returns:
            Updated User object
        """
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        return user

    def apply_successful_generation(self, user: User, tool_id: str, tool_name: str, now: datetime) -> ToolUsageStat:
        """
        Bump the aggregate usage counters in the session without flushing.
        The caller commits them together with the matching ledger entry.
        """
        last_reset = user.usage_last_reset
        if last_reset is None or (last_reset.year, last_reset.month) != (now.year, now.month):
            user.monthly_generations = 0
            user.usage_last_reset = now

        user.total_generations = (user.total_generations or 0) + 1
        user.monthly_generations = (user.monthly_generations or 0) + 1

        stat = next((s for s in user.tool_stats if s.tool_id == tool_id), None)
        if stat is None:
            stat = ToolUsageStat(tool_id=tool_id, tool_name=tool_name, usage_count=0)
            user.tool_stats.append(stat)
        stat.usage_count = (stat.usage_count or 0) + 1
        stat.last_used = now
        return stat

    async def delete_user(self, user: User) -> None:
        """
        Hard-delete a user together with their ledger entries and tool counters.
        """
        await self.db.execute(delete(UsageRecord).where(UsageRecord.user_id == user.id))
        await self.db.delete(user)
        await self.db.flush()
