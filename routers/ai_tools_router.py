"""
AI Tools Router - tool catalog, invocation and usage history
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from config.settings import STATUS_TRIAL
from database import get_db
from database_models import User
from dependencies import get_generation_service, get_ledger_stats, get_tool_rate_limiter
from services import access_policy
from services.access_policy import SubscriptionState
from services.generation_service import GenerationService
from services.tool_gateway import ToolInvocationGateway
from services.tool_registry import list_tools
from services.trial_service import TrialService
from services.usage_ledger import STATUS_ERROR, STATUS_SUCCESS, LedgerStats, UsageLedger
from utils.errors import NotFoundError, ValidationError
from utils.rate_limit import RateLimiter
from utils.shared_utils import log_endpoint_event, parse_date

ai_tools_router = APIRouter(prefix="/api/ai-tools", tags=["ai-tools"])


class GenerateRequest(BaseModel):
    input: Optional[Dict[str, Any]] = None


def tool_catalog(user: User, now: datetime) -> Dict[str, Any]:
    """Every registered tool annotated with the user's access to it."""
    state = SubscriptionState.from_user(user)
    allowed = set(access_policy.available_tools(state, now))
    tools = [
        {
            **tool.to_dict(),
            "hasAccess": tool.id in allowed,
            "isTrialTool": tool.free_in_trial,
            "requiredPlan": access_policy.required_plan_for(tool.id),
        }
        for tool in list_tools()
    ]
    return {
        "tools": tools,
        "subscription": {
            "plan": user.plan,
            "status": user.subscription_status,
            "trialDaysRemaining": TrialService.trial_days_remaining(user, now),
            "isTrialExpired": user.subscription_status == STATUS_TRIAL and user.is_trial_expired(now),
        },
    }


def _history_filters(tool_id: Optional[str], status: Optional[str], start_date: Optional[str], end_date: Optional[str]) -> dict:
    if status and status not in (STATUS_SUCCESS, STATUS_ERROR):
        raise ValidationError(f"status must be '{STATUS_SUCCESS}' or '{STATUS_ERROR}'")
    try:
        return {
            "tool_id": tool_id,
            "status": status,
            "start_date": parse_date(start_date, "startDate"),
            "end_date": parse_date(end_date, "endDate"),
        }
    except ValueError as e:
        raise ValidationError(str(e))


@ai_tools_router.get("")
async def get_tools(current_user: User = Depends(get_current_user)):
    """List all AI tools with the caller's access to each"""
    return tool_catalog(current_user, datetime.utcnow())


@ai_tools_router.post("/{tool_id}/generate")
async def generate(
    tool_id: str,
    request: GenerateRequest = Body(default=None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    limiter: RateLimiter = Depends(get_tool_rate_limiter),
    generator: GenerationService = Depends(get_generation_service),
    ledger_stats: LedgerStats = Depends(get_ledger_stats),
):
    """Run an AI tool and record the attempt in the usage ledger"""
    user_id = current_user.id
    gateway = ToolInvocationGateway(db, limiter, generator, ledger_stats)
    try:
        result = await gateway.invoke(current_user, tool_id, request.input if request else None)
    except Exception as e:
        log_endpoint_event(f"/ai-tools/{tool_id}/generate", user_id, "error", {"error": str(e)})
        raise

    log_endpoint_event(f"/ai-tools/{tool_id}/generate", user_id, "success", {"processing_time": result.processing_time})
    return result.to_dict()


@ai_tools_router.get("/usage-history")
async def usage_history(
    page: int = Query(1),
    limit: int = Query(20),
    toolId: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ledger_stats: LedgerStats = Depends(get_ledger_stats),
):
    """Paginated, newest-first usage history without input/output payloads"""
    filters = _history_filters(toolId, status, startDate, endDate)
    result = await UsageLedger(db, ledger_stats).query(current_user.id, page=page, limit=limit, **filters)
    return result.to_dict()


@ai_tools_router.get("/usage-history/export")
async def export_usage_history(
    toolId: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ledger_stats: LedgerStats = Depends(get_ledger_stats),
):
    """Full usage history including input/output payloads"""
    filters = _history_filters(toolId, status, startDate, endDate)
    usage = await UsageLedger(db, ledger_stats).export(current_user.id, **filters)
    log_endpoint_event("/ai-tools/usage-history/export", current_user.id, "success", {"entries": len(usage)})
    return {"usage": usage, "total": len(usage), "exportedAt": datetime.utcnow().isoformat()}


@ai_tools_router.get("/usage-history/{record_id}")
async def usage_detail(
    record_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ledger_stats: LedgerStats = Depends(get_ledger_stats),
):
    """One ledger entry of the caller, with payloads"""
    entry = await UsageLedger(db, ledger_stats).get(record_id, current_user.id)
    if entry is None:
        raise NotFoundError("Usage record not found")
    return {"usage": entry}
