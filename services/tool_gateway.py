"""
Tool Invocation Gateway

RECEIVED -> RATE_CHECK -> ACCESS_CHECK -> GENERATE -> RECORD -> RESPOND

Rate-limit, access and input rejections happen before generation and are
never written to the ledger. Once generation starts, exactly one ledger
entry is written, whether it succeeds or fails.
"""
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crud.user import UserRepository
from database_models import User
from models.user import usage_snapshot
from services import access_policy
from services.access_policy import AccessDecision, SubscriptionState
from services.generation_service import GenerationService
from services.tool_registry import ToolDefinition, get_tool
from services.usage_ledger import (
    STATUS_ERROR,
    STATUS_SUCCESS,
    LedgerStats,
    UsageAttempt,
    UsageLedger,
)
from utils.errors import (
    AuthorizationError,
    InternalError,
    NotFoundError,
    RateLimitError,
    UpstreamGenerationError,
    ValidationError,
)
from utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class InvocationResult:
    output: Dict[str, Any]
    processing_time: int
    usage: Dict[str, Any]
    record_id: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "output": self.output,
            "processingTime": self.processing_time,
            "usage": self.usage,
        }


def denial_error(decision: AccessDecision):
    """Map a DENY decision to the error raised at the HTTP boundary."""
    if decision.reason == access_policy.UNKNOWN_TOOL:
        return NotFoundError(decision.message, code=decision.reason, reason=decision.reason)
    if decision.reason == access_policy.TRIAL_EXPIRED:
        return AuthorizationError(decision.message, code=decision.reason, reason=decision.reason, trialExpired=True)
    if decision.reason == access_policy.TOOL_NOT_IN_PLAN:
        return AuthorizationError(
            decision.message,
            code=decision.reason,
            reason=decision.reason,
            availableTools=list(decision.available_tools),
            requiredPlan=decision.required_plan,
        )
    return AuthorizationError(decision.message, code=decision.reason, reason=decision.reason)


class ToolInvocationGateway:

    def __init__(
        self,
        db: AsyncSession,
        rate_limiter: RateLimiter,
        generator: GenerationService,
        ledger_stats: LedgerStats,
        clock: Callable[[], datetime] = datetime.utcnow,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.db = db
        self.rate_limiter = rate_limiter
        self.generator = generator
        self.user_repo = UserRepository(db)
        self.ledger = UsageLedger(db, ledger_stats)
        self.clock = clock
        self.timer = timer

    async def invoke(self, user: User, tool_id: str, payload: Optional[Dict[str, Any]]) -> InvocationResult:
        await self._rate_check(user)
        tool = self._access_check(user, tool_id)
        if not payload:
            raise ValidationError("Input data is required")

        started = self.timer()
        try:
            output = await self.generator.generate(tool, payload)
        except UpstreamGenerationError as e:
            await self._record_failure(user, tool, payload, started, e.message)
            raise
        except Exception as e:
            logger.error(f"AI tool generation error for {tool.id} (user={user.id}): {e}", exc_info=True)
            message = str(e) or e.__class__.__name__
            await self._record_failure(user, tool, payload, started, message)
            raise InternalError(message, public_message="AI generation failed", code="GENERATION_FAILED") from e

        return await self._record_success(user, tool, payload, output, self._elapsed_ms(started))

    async def _rate_check(self, user: User) -> None:
        result = await self.rate_limiter.hit(f"user:{user.id}")
        if not result.allowed:
            raise RateLimitError(
                "Too many requests, please try again later.",
                retryAfter=math.ceil(result.retry_after),
            )

    def _access_check(self, user: User, tool_id: str) -> ToolDefinition:
        decision = access_policy.evaluate(SubscriptionState.from_user(user), tool_id, self.clock())
        if not decision.allowed:
            logger.info(f"Tool access denied: user={user.id} tool={tool_id} reason={decision.reason}")
            raise denial_error(decision)
        return get_tool(tool_id)

    def _elapsed_ms(self, started: float) -> int:
        return int(round((self.timer() - started) * 1000))

    async def _record_success(
        self,
        user: User,
        tool: ToolDefinition,
        payload: Dict[str, Any],
        output: Dict[str, Any],
        processing_time: int,
    ) -> InvocationResult:
        previous = usage_snapshot(user)
        previous["toolUsageCount"] = next((s.usage_count for s in user.tool_stats if s.tool_id == tool.id), 0)

        # Counters and ledger entry are committed in the same transaction
        stat = self.user_repo.apply_successful_generation(user, tool.id, tool.name, self.clock())
        updated = usage_snapshot(user)
        updated["toolUsageCount"] = stat.usage_count

        record_id = await self.ledger.record(UsageAttempt(
            user_id=user.id,
            tool_id=tool.id,
            tool_name=tool.name,
            input=payload,
            output=output,
            processing_time=processing_time,
            status=STATUS_SUCCESS,
        ))
        return InvocationResult(
            output=output,
            processing_time=processing_time,
            usage=updated if record_id is not None else previous,
            record_id=record_id,
        )

    async def _record_failure(
        self,
        user: User,
        tool: ToolDefinition,
        payload: Dict[str, Any],
        started: float,
        message: str,
    ) -> None:
        await self.ledger.record(UsageAttempt(
            user_id=user.id,
            tool_id=tool.id,
            tool_name=tool.name,
            input=payload,
            output=None,
            processing_time=self._elapsed_ms(started),
            status=STATUS_ERROR,
            error_message=message or "Unknown generation error",
        ))
