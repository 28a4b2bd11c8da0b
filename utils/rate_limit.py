import logging
import time
import uuid
from collections import deque
from typing import Callable, Deque, Dict, NamedTuple, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int
    retry_after: float


class RateLimiter:
    """
    Sliding-window limiter interface: at most ``limit`` hits per key within
    any ``window_seconds`` span.
    """

    def __init__(self, limit: int, window_seconds: float):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.window_seconds = float(window_seconds)

    async def hit(self, key: str) -> RateLimitResult:
        raise NotImplementedError

    async def reset(self, key: Optional[str] = None) -> None:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    """
    Per-process sliding window log.

    Idle keys are dropped by a sweep that runs at most once per
    ``sweep_interval`` seconds, piggybacked on hit().
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: Optional[float] = None,
    ):
        super().__init__(limit, window_seconds)
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self.sweep_interval = sweep_interval if sweep_interval is not None else self.window_seconds
        self._next_sweep = clock() + self.sweep_interval

    def __len__(self) -> int:
        return len(self._hits)

    def _sweep(self, now: float) -> None:
        cutoff = now - self.window_seconds
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
        self._next_sweep = now + self.sweep_interval

    async def hit(self, key: str) -> RateLimitResult:
        # No await between read and write: each hit is atomic on the event loop
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)

        hits = self._hits.setdefault(key, deque())
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

        if len(hits) >= self.limit:
            return RateLimitResult(False, 0, max(0.0, hits[0] + self.window_seconds - now))

        hits.append(now)
        return RateLimitResult(True, self.limit - len(hits), 0.0)

    async def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


class RedisRateLimiter(RateLimiter):
    """
    Sliding window stored in a Redis sorted set per key, shared by every
    process that points at the same Redis. Falls back to an in-memory
    window when Redis is unreachable.
    """

    def __init__(self, client: "redis.Redis", limit: int, window_seconds: float, prefix: str = "rate_limit"):
        super().__init__(limit, window_seconds)
        self.client = client
        self.prefix = prefix
        self._fallback = InMemoryRateLimiter(limit, window_seconds)

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def hit(self, key: str) -> RateLimitResult:
        redis_key = self._key(key)
        now = time.time()
        member = f"{now}:{uuid.uuid4().hex}"
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(redis_key, 0, now - self.window_seconds)
                pipe.zadd(redis_key, {member: now})
                pipe.zcard(redis_key)
                pipe.expire(redis_key, int(self.window_seconds) + 1)
                _, _, count, _ = await pipe.execute()

            if count > self.limit:
                await self.client.zrem(redis_key, member)
                oldest = await self.client.zrange(redis_key, 0, 0, withscores=True)
                retry_after = oldest[0][1] + self.window_seconds - now if oldest else self.window_seconds
                return RateLimitResult(False, 0, max(0.0, retry_after))
            return RateLimitResult(True, self.limit - count, 0.0)
        except RedisError as e:
            logger.warning(f"Redis rate limit check failed: {e}. Falling back to in-memory.")
            return await self._fallback.hit(key)

    async def reset(self, key: Optional[str] = None) -> None:
        await self._fallback.reset(key)
        if key is not None:
            await self.client.delete(self._key(key))
            return
        async for redis_key in self.client.scan_iter(match=f"{self.prefix}:*"):
            await self.client.delete(redis_key)


def build_rate_limiter(limit: int, window_seconds: float, prefix: str, redis_url: Optional[str] = None) -> RateLimiter:
    """Redis-backed limiter when REDIS_URL is configured, in-memory otherwise."""
    if redis_url:
        logger.info(f"Using Redis rate limiting for '{prefix}'")
        client = redis.from_url(redis_url, decode_responses=True)
        return RedisRateLimiter(client, limit, window_seconds, prefix=prefix)
    logger.info(f"REDIS_URL not set. Using in-memory rate limiting for '{prefix}'.")
    return InMemoryRateLimiter(limit, window_seconds)


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """
    Per-IP limiter for every request under ``path_prefix``.
    Default: 100 requests per 15 minutes per IP.
    """

    def __init__(self, app, limiter: Optional[RateLimiter] = None, path_prefix: str = "/api/"):
        super().__init__(app)
        self.limiter = limiter or InMemoryRateLimiter(100, 900)
        self.path_prefix = path_prefix

    def _get_client_ip(self, request: Request) -> str:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            # Take first IP in the list
            return xff.split(",")[0].strip()
        client = request.client
        return client.host if client else "unknown"

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        result = await self.limiter.hit(self._get_client_ip(request))
        if not result.allowed:
            return JSONResponse(
                status_code=429,
                content={
                    "message": "Too many requests, please try again later.",
                    "error": "RATE_LIMITED",
                },
                headers={"Retry-After": str(int(result.retry_after) + 1)},
            )

        return await call_next(request)
