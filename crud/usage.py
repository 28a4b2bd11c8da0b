"""
UsageRepository for the append-only tool usage ledger
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from database_models import UsageRecord


class UsageRepository:
    """
    Repository class for UsageRecord database operations.
    Ledger rows are only ever inserted; there is no update method.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def add(self, record: UsageRecord) -> UsageRecord:
        self.db.add(record)
        return record

    @staticmethod
    def _filtered(
        query: Select,
        user_id: Optional[int] = None,
        tool_id: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Select:
        if user_id is not None:
            query = query.where(UsageRecord.user_id == user_id)
        if tool_id:
            query = query.where(UsageRecord.tool_id == tool_id)
        if status:
            query = query.where(UsageRecord.status == status)
        if start_date is not None:
            query = query.where(UsageRecord.created_at >= start_date)
        if end_date is not None:
            query = query.where(UsageRecord.created_at <= end_date)
        return query

    async def page(self, offset: int, limit: int, **filters) -> Tuple[List[UsageRecord], int]:
        """
        Newest-first page of ledger entries and the total matching count.
        """
        query = self._filtered(select(UsageRecord), **filters)
        query = query.order_by(UsageRecord.created_at.desc(), UsageRecord.id.desc())
        result = await self.db.execute(query.offset(offset).limit(limit))
        items = list(result.scalars().all())

        total = await self.count(**filters)
        return items, total

    async def all(self, **filters) -> List[UsageRecord]:
        query = self._filtered(select(UsageRecord), **filters)
        query = query.order_by(UsageRecord.created_at.desc(), UsageRecord.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, **filters) -> int:
        query = self._filtered(select(func.count(UsageRecord.id)), **filters)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def get(self, record_id: int, user_id: Optional[int] = None) -> Optional[UsageRecord]:
        query = select(UsageRecord).where(UsageRecord.id == record_id)
        if user_id is not None:
            query = query.where(UsageRecord.user_id == user_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def latest(self, user_id: int) -> Optional[UsageRecord]:
        items, _ = await self.page(0, 1, user_id=user_id)
        return items[0] if items else None

    async def popular_tools(self, limit: int = 5, **filters) -> List[dict]:
        uses = func.count(UsageRecord.id).label("uses")
        query = self._filtered(select(UsageRecord.tool_name, uses), **filters)
        query = query.group_by(UsageRecord.tool_name).order_by(uses.desc(), UsageRecord.tool_name).limit(limit)
        result = await self.db.execute(query)
        return [{"name": name, "uses": count} for name, count in result.all()]

    async def tool_breakdown(self, **filters) -> List[dict]:
        count = func.count(UsageRecord.id).label("count")
        last_used = func.max(UsageRecord.created_at).label("last_used")
        query = self._filtered(select(UsageRecord.tool_id, UsageRecord.tool_name, count, last_used), **filters)
        query = query.group_by(UsageRecord.tool_id, UsageRecord.tool_name).order_by(count.desc())
        result = await self.db.execute(query)
        return [
            {"toolId": tool_id, "toolName": tool_name, "count": total, "lastUsed": _iso(last)}
            for tool_id, tool_name, total, last in result.all()
        ]

    async def daily_counts(self, **filters) -> List[dict]:
        day = func.date(UsageRecord.created_at).label("day")
        query = self._filtered(select(day, func.count(UsageRecord.id)), **filters)
        query = query.group_by(day).order_by(day)
        result = await self.db.execute(query)
        return [{"date": str(d), "count": total} for d, total in result.all()]

    async def average_processing_time(self, **filters) -> float:
        query = self._filtered(select(func.avg(UsageRecord.processing_time)), **filters)
        result = await self.db.execute(query)
        value = result.scalar_one()
        return float(value or 0.0)


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.isoformat()
