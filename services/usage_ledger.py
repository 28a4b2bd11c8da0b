"""
Usage Ledger - append-only record of tool invocation attempts
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crud.usage import UsageRepository
from database_models import UsageRecord

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

MAX_PAGE_SIZE = 100


@dataclass
class LedgerStats:
    """Process-wide counters for ledger writes that could not be persisted."""
    failed_writes: int = 0
    last_error: Optional[str] = None
    last_failure_at: Optional[datetime] = None

    def note_failure(self, error: Exception) -> None:
        self.failed_writes += 1
        self.last_error = str(error)
        self.last_failure_at = datetime.utcnow()


@dataclass(frozen=True)
class UsageAttempt:
    user_id: int
    tool_id: str
    tool_name: str
    input: Any
    output: Any
    processing_time: int
    status: str
    error_message: Optional[str] = None


@dataclass
class LedgerPage:
    items: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    pages: int = field(init=False)

    def __post_init__(self):
        self.pages = math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> dict:
        return {
            "usage": self.items,
            "pagination": {
                "current": self.page,
                "pages": self.pages,
                "total": self.total,
                "limit": self.limit,
            },
        }


def record_to_dict(record: UsageRecord, include_payload: bool = False) -> Dict[str, Any]:
    data = {
        "id": record.id,
        "userId": record.user_id,
        "toolId": record.tool_id,
        "toolName": record.tool_name,
        "processingTime": record.processing_time,
        "status": record.status,
        "errorMessage": record.error_message,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
    }
    if include_payload:
        data["input"] = record.input
        data["output"] = record.output
    return data


class UsageLedger:
    """
    Appends immutable usage entries and answers history queries.

    A failed append never propagates: it is logged and counted in LedgerStats
    and record() returns None.
    """

    def __init__(self, db: AsyncSession, stats: LedgerStats):
        self.db = db
        self.stats = stats
        self.repo = UsageRepository(db)

    async def record(self, attempt: UsageAttempt) -> Optional[int]:
        """
        Append one entry and commit the session.

        Pending changes already staged in the session (aggregate counters)
        are committed in the same transaction.
        """
        record = self.repo.add(UsageRecord(
            user_id=attempt.user_id,
            tool_id=attempt.tool_id,
            tool_name=attempt.tool_name,
            input=attempt.input,
            output=attempt.output,
            processing_time=attempt.processing_time,
            status=attempt.status,
            error_message=attempt.error_message,
            created_at=datetime.utcnow(),
        ))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.stats.note_failure(e)
            logger.error(
                f"Usage ledger append failed (user={attempt.user_id}, tool={attempt.tool_id}, "
                f"status={attempt.status}): {e}",
                exc_info=True,
            )
            return None
        return record.id

    async def query(
        self,
        user_id: int,
        tool_id: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> LedgerPage:
        """
        Newest-first page of a user's entries. Input and output payloads are
        excluded; use get() or export() for full entries.
        """
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)
        items, total = await self.repo.page(
            (page - 1) * limit,
            limit,
            user_id=user_id,
            tool_id=tool_id,
            status=status,
            start_date=start_date,
            end_date=end_date,
        )
        return LedgerPage(items=[record_to_dict(r) for r in items], total=total, page=page, limit=limit)

    async def get(self, record_id: int, user_id: int) -> Optional[Dict[str, Any]]:
        record = await self.repo.get(record_id, user_id=user_id)
        return record_to_dict(record, include_payload=True) if record else None

    async def export(self, user_id: int, **filters) -> List[Dict[str, Any]]:
        records = await self.repo.all(user_id=user_id, **filters)
        return [record_to_dict(r, include_payload=True) for r in records]
