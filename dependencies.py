"""
Process-wide services exposed to routes as FastAPI dependencies.

main.py builds them once and stores them on ``app.state``; tests replace
them through ``app.dependency_overrides``.
"""
from fastapi import Request

from services.generation_service import GenerationService
from services.usage_ledger import LedgerStats
from utils.rate_limit import RateLimiter


def get_tool_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.tool_rate_limiter


def get_login_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.login_rate_limiter


def get_generation_service(request: Request) -> GenerationService:
    return request.app.state.generation_service


def get_ledger_stats(request: Request) -> LedgerStats:
    return request.app.state.ledger_stats
