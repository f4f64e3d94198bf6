"""Fixed-window attempt limiting for login and registration.

Call sites depend only on ``RateLimiter.check``. Two backends:

- ``InMemoryRateLimiter``: per-process dict, lock-guarded, lazily garbage-collected.
  Counters reset when the process restarts, and each instance of a horizontally
  scaled deployment keeps its own counters, so the effective limit is multiplied by
  the number of instances.
- ``RedisRateLimiter``: one shared counter per key in Redis, for multi-instance
  deployments.
"""

from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
from redis.asyncio import Redis
from starlette.requests import Request

from finalexam.config import Settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after: int = 0


@dataclass(frozen=True)
class RateLimitPolicy:
    """How many attempts a key gets per window."""

    max_attempts: int
    window_seconds: int


def login_policy(settings: Settings) -> RateLimitPolicy:
    return RateLimitPolicy(settings.rate_limit_login_attempts, settings.rate_limit_login_window_seconds)


def register_policy(settings: Settings) -> RateLimitPolicy:
    return RateLimitPolicy(settings.rate_limit_register_attempts, settings.rate_limit_register_window_seconds)


def client_ip(request: Request) -> str:
    """Best-effort client address: proxy headers first, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip
    return request.client.host if request.client else "unknown"


class RateLimiter(ABC):
    """Counts attempts per key inside a fixed window."""

    @abstractmethod
    async def check(self, key: str, max_attempts: int, window_seconds: float) -> RateLimitResult:
        """Record one attempt for ``key`` and report whether it is allowed."""

    async def aclose(self) -> None:
        """Release backend resources."""


class InMemoryRateLimiter(RateLimiter):
    """Process-local limiter. See the module docstring for its multi-instance caveat."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[int, float]] = {}  # key -> (count, reset_at)
        self._lock = threading.Lock()

    async def check(self, key: str, max_attempts: int, window_seconds: float) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, reset_at) in self._entries.items() if reset_at <= now]
            for k in expired:
                del self._entries[k]

            entry = self._entries.get(key)
            if entry is None:
                self._entries[key] = (1, now + window_seconds)
                return RateLimitResult(allowed=True)

            count, reset_at = entry
            count += 1
            self._entries[key] = (count, reset_at)
            if count > max_attempts:
                return RateLimitResult(allowed=False, retry_after=max(1, math.ceil(reset_at - now)))
            return RateLimitResult(allowed=True)


class RedisRateLimiter(RateLimiter):
    """Shared-counter limiter backed by Redis.

    The first attempt creates the key with the window as its TTL; later attempts only
    increment it, so the window is anchored at the first attempt like the in-memory one.
    """

    def __init__(self, redis: Redis, prefix: str = "ratelimit") -> None:
        self._redis = redis
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> RedisRateLimiter:
        return cls(Redis.from_url(url, encoding="utf-8", decode_responses=True, max_connections=50))

    async def check(self, key: str, max_attempts: int, window_seconds: float) -> RateLimitResult:
        rate_key = f"{self.prefix}:{key}"
        window = max(1, math.ceil(window_seconds))

        pipe = self._redis.pipeline()
        pipe.set(rate_key, 0, ex=window, nx=True)
        pipe.incr(rate_key)
        pipe.ttl(rate_key)
        results: list[Any] = await pipe.execute()

        count = int(results[1])
        ttl = int(results[2])
        if count > max_attempts:
            return RateLimitResult(allowed=False, retry_after=ttl if ttl > 0 else window)
        return RateLimitResult(allowed=True)

    async def aclose(self) -> None:
        await self._redis.aclose()


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Create the limiter selected by ``FINALEXAM_RATE_LIMIT_BACKEND``."""
    if settings.rate_limit_backend == "redis":
        logger.info("rate_limiter_configured", backend="redis")
        return RedisRateLimiter.from_url(settings.redis_url)
    logger.info("rate_limiter_configured", backend="memory")
    return InMemoryRateLimiter()
