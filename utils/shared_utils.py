"""
Shared utility functions for routers and services
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def log_endpoint_event(endpoint: str, user_id: Optional[Any] = None, result: str = "success", details: Optional[dict] = None):
    """Log endpoint execution to app.log"""
    level = logging.INFO if result == "success" else logging.WARNING
    logger.log(level, f"{endpoint} | user={user_id or 'none'} | {result} | {json.dumps(details or {}, default=str)}")


def parse_date(value: Optional[str], field: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime query parameter.

    Raises:
        ValueError: If the value is not a valid ISO date
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"{field} must be an ISO-8601 date")
    # Stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
