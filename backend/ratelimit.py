"""
Fixed-window request limits keyed by client, used on the auth routes.

RedisRateLimiter shares counters across processes through INCR/EXPIRE;
InMemoryRateLimiter keeps them per process when Redis is not available.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

import redis
from fastapi import HTTPException, Request, Response
from redis import exceptions as redis_exceptions

from backend.cache import CacheError

logger = logging.getLogger(__name__)

AUTH_RATE_LIMIT_PREFIX = "rate:auth"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_after))


class RateLimiter(Protocol):
    def hit(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it may proceed."""
        ...


def _result(limit: int, count: int, reset_after: float) -> RateLimitResult:
    return RateLimitResult(
        allowed=count <= limit,
        limit=limit,
        remaining=max(0, limit - count),
        reset_after=max(0.0, reset_after),
    )


@dataclass
class InMemoryRateLimiter:
    requests: int
    window: float
    clock: Callable[[], float] = time.monotonic
    windows: dict[str, tuple[int, float]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def hit(self, key: str) -> RateLimitResult:
        now = self.clock()
        with self._lock:
            count, expires_at = self.windows.get(key, (0, 0.0))
            if now >= expires_at:
                count, expires_at = 0, now + self.window
            count += 1
            self.windows[key] = (count, expires_at)
        return _result(self.requests, count, expires_at - now)


class RedisRateLimiter:
    def __init__(self, client: redis.Redis, requests: int, window: float):
        self.client = client
        self.requests = requests
        self.window = window

    def hit(self, key: str) -> RateLimitResult:
        window_ms = max(1, int(self.window * 1000))
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.pttl(key)
            count, ttl_ms = pipe.execute()
            if ttl_ms < 0:
                # First hit in this window, or the key lost its expiry.
                self.client.pexpire(key, window_ms)
                ttl_ms = window_ms
        except redis_exceptions.RedisError as exc:
            raise CacheError(f"rate limit check failed: {exc}") from exc
        return _result(self.requests, int(count), ttl_ms / 1000)


def enforce_auth_rate_limit(request: Request, response: Response) -> None:
    """
    Route dependency: answer 429 once a client exceeds the auth limit.

    A failing limiter lets the request through.
    """
    limiter: RateLimiter = request.app.state.auth_rate_limiter
    client_host = request.client.host if request.client else "unknown"
    try:
        result = limiter.hit(f"{AUTH_RATE_LIMIT_PREFIX}:{client_host}")
    except CacheError as exc:
        logger.warning("Rate limiter unavailable, allowing request: %s", exc)
        return

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(time.time() + result.reset_after)),
    }
    if not result.allowed:
        logger.info("Auth rate limit exceeded for %s", client_host)
        headers["Retry-After"] = str(result.retry_after)
        raise HTTPException(status_code=429, detail="too many requests", headers=headers)
    for name, value in headers.items():
        response.headers[name] = value
