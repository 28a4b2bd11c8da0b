"""
Access Policy Evaluator - decides whether a subscription may use a tool.

The policy is data: PLAN_TOOLS maps plans to tool sets and ROLE_CAPABILITIES
maps roles to capabilities. evaluate() is a pure function over the supplied
state and never touches storage or the clock.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from config.settings import (
    PLAN_AGENCY,
    PLAN_FREE_TRIAL,
    PLAN_PRO,
    PLAN_STARTER,
    PLANS,
    ROLE_ADMIN,
    ROLE_USER,
    STATUS_TRIAL,
)
from services.tool_registry import AI_TOOLS, trial_tool_ids

# Decision reasons
ALLOW = "ALLOW"
ACCOUNT_SUSPENDED = "ACCOUNT_SUSPENDED"
UNKNOWN_TOOL = "UNKNOWN_TOOL"
TRIAL_EXPIRED = "TRIAL_EXPIRED"
TOOL_NOT_IN_PLAN = "TOOL_NOT_IN_PLAN"

_ALL_TOOLS = frozenset(AI_TOOLS)

PLAN_TOOLS: Dict[str, FrozenSet[str]] = {
    PLAN_FREE_TRIAL: trial_tool_ids(),
    PLAN_STARTER: frozenset({"seo-audit", "social-media", "blog-writing", "email-marketing", "ad-copy"}),
    PLAN_PRO: _ALL_TOOLS,
    PLAN_AGENCY: _ALL_TOOLS,
}

# Capabilities
USE_TOOLS = "use_tools"
VIEW_OWN_USAGE = "view_own_usage"
MANAGE_USERS = "manage_users"
MANAGE_SETTINGS = "manage_settings"
VIEW_PLATFORM_STATS = "view_platform_stats"

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    ROLE_USER: frozenset({USE_TOOLS, VIEW_OWN_USAGE}),
    ROLE_ADMIN: frozenset({USE_TOOLS, VIEW_OWN_USAGE, MANAGE_USERS, MANAGE_SETTINGS, VIEW_PLATFORM_STATS}),
}

_MESSAGES = {
    ALLOW: "Access granted",
    ACCOUNT_SUSPENDED: "Your account is suspended. Please contact support.",
    UNKNOWN_TOOL: "AI tool not found",
    TRIAL_EXPIRED: "Free trial has expired. Please upgrade to continue using AI tools.",
    TOOL_NOT_IN_PLAN: "Tool not available in your current plan",
}


@dataclass(frozen=True)
class SubscriptionState:
    plan: str
    status: str
    trial_end_date: Optional[datetime] = None
    is_suspended: bool = False

    @classmethod
    def from_user(cls, user) -> "SubscriptionState":
        return cls(
            plan=user.plan,
            status=user.subscription_status,
            trial_end_date=user.trial_end_date,
            is_suspended=bool(user.is_suspended),
        )


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str
    message: str
    available_tools: Tuple[str, ...] = field(default_factory=tuple)
    required_plan: Optional[str] = None

    @property
    def trial_expired(self) -> bool:
        return self.reason == TRIAL_EXPIRED


def required_plan_for(tool_id: str) -> Optional[str]:
    """Cheapest plan whose tool set contains the tool."""
    for plan in PLANS:
        if tool_id in PLAN_TOOLS[plan]:
            return plan
    return None


def available_tools(state: SubscriptionState, now: datetime) -> List[str]:
    """Tool ids the subscription may use right now, in registry order."""
    if state.is_suspended:
        return []
    if state.status == STATUS_TRIAL:
        if state.trial_end_date is None or now >= state.trial_end_date:
            return []
        allowed = PLAN_TOOLS[PLAN_FREE_TRIAL]
    else:
        allowed = PLAN_TOOLS.get(state.plan, frozenset())
    return [tool_id for tool_id in AI_TOOLS if tool_id in allowed]


def _deny(reason: str, state: SubscriptionState, tool_id: str, now: datetime) -> AccessDecision:
    return AccessDecision(
        allowed=False,
        reason=reason,
        message=_MESSAGES[reason],
        available_tools=tuple(available_tools(state, now)),
        required_plan=required_plan_for(tool_id),
    )


def evaluate(state: SubscriptionState, tool_id: str, now: datetime) -> AccessDecision:
    if state.is_suspended:
        return _deny(ACCOUNT_SUSPENDED, state, tool_id, now)

    if tool_id not in AI_TOOLS:
        return _deny(UNKNOWN_TOOL, state, tool_id, now)

    if state.status == STATUS_TRIAL:
        # A trial without an end date is treated as already expired
        if state.trial_end_date is None or now >= state.trial_end_date:
            return _deny(TRIAL_EXPIRED, state, tool_id, now)
        tool_set = PLAN_TOOLS[PLAN_FREE_TRIAL]
    else:
        tool_set = PLAN_TOOLS.get(state.plan, frozenset())

    if tool_id not in tool_set:
        return _deny(TOOL_NOT_IN_PLAN, state, tool_id, now)

    return AccessDecision(
        allowed=True,
        reason=ALLOW,
        message=_MESSAGES[ALLOW],
        available_tools=tuple(available_tools(state, now)),
        required_plan=required_plan_for(tool_id),
    )


def has_capability(role: str, capability: str) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())
