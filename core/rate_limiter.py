"""
Fixed-window rate limiter

Counters are bucketed by ``(client key, window index)``. Previous windows
expire on their own, and the table never holds more than ``max_keys``
buckets: when full, the oldest buckets are evicted first.

The counter is approximate. Concurrent requests on different worker
processes keep separate tables, so a client can exceed the budget by up to
``workers - 1`` windows' worth of requests. It exists to slow down abuse,
not to enforce correctness.
"""

import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from fastapi import Request

from core.config import RateLimitConfig
from core.errors import RateLimitedError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_after: int


class FixedWindowRateLimiter:
    """In-process fixed-window counter with bounded memory"""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: int = 60,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._buckets: "OrderedDict[Tuple[str, int], int]" = OrderedDict()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "FixedWindowRateLimiter":
        return cls(
            max_requests=config.max_requests,
            window_seconds=config.window_seconds,
            max_keys=config.max_keys,
        )

    def _window(self, now: float) -> int:
        return int(now // self.window_seconds)

    def _expire(self, current_window: int) -> None:
        # Buckets are inserted in window order, so stale ones sit at the front
        while self._buckets:
            (_, window) = next(iter(self._buckets))
            if window >= current_window:
                break
            self._buckets.popitem(last=False)

    def hit(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed"""
        now = self._clock()
        window = self._window(now)
        self._expire(window)

        bucket = (key, window)
        count = self._buckets.get(bucket, 0) + 1
        self._buckets[bucket] = count

        while len(self._buckets) > self.max_keys:
            self._buckets.popitem(last=False)

        reset_after = max(1, math.ceil((window + 1) * self.window_seconds - now))
        if count > self.max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_after=reset_after)
        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - count,
            reset_after=reset_after,
        )

    def reset(self) -> None:
        self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)


def get_client_identity(request: Request) -> str:
    """Best-effort client address, preferring proxy headers"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value
    return request.client.host if request.client else "unknown"


def rate_limit(limiter: Optional[FixedWindowRateLimiter], scope: str = "default"):
    """
    Build a FastAPI dependency enforcing ``limiter`` per client

    Usage:
        @app.post("/api/v1/payments/create-order",
                  dependencies=[Depends(rate_limit(limiter, "create-order"))])
    """
    async def dependency(request: Request) -> None:
        if limiter is None:
            return
        client = get_client_identity(request)
        result = limiter.hit(f"{scope}:{client}")
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {client} on {scope}")
            raise RateLimitedError(
                "Too many requests. Please try again later.",
                retry_after=result.reset_after,
            )

    return dependency


__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitResult",
    "get_client_identity",
    "rate_limit",
]
