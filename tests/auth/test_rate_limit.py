"""Tests for the fixed-window rate limiters."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.requests import Request

from finalexam.auth.rate_limit import (
    InMemoryRateLimiter,
    RateLimitResult,
    RedisRateLimiter,
    build_rate_limiter,
    client_ip,
    login_policy,
    register_policy,
)
from finalexam.config import Settings


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/game",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestInMemoryRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_up_to_max_then_denies(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())
        results = [await limiter.check("login:1.2.3.4", 10, 900) for _ in range(11)]
        assert all(r.allowed for r in results[:10])
        assert results[10] == RateLimitResult(allowed=False, retry_after=900)

    @pytest.mark.asyncio
    async def test_retry_after_counts_down(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        await limiter.check("k", 1, 60)
        clock.advance(30.5)
        result = await limiter.check("k", 1, 60)
        assert result == RateLimitResult(allowed=False, retry_after=30)

    @pytest.mark.asyncio
    async def test_retry_after_is_at_least_one(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        await limiter.check("k", 1, 60)
        clock.advance(59.99)
        assert (await limiter.check("k", 1, 60)).retry_after == 1

    @pytest.mark.asyncio
    async def test_window_reset_allows_again(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        for _ in range(3):
            await limiter.check("k", 2, 60)
        assert (await limiter.check("k", 2, 60)).allowed is False
        clock.advance(60)
        assert (await limiter.check("k", 2, 60)).allowed is True

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())
        await limiter.check("login:a", 1, 60)
        assert (await limiter.check("login:a", 1, 60)).allowed is False
        assert (await limiter.check("login:b", 1, 60)).allowed is True
        assert (await limiter.check("register:a", 1, 60)).allowed is True

    @pytest.mark.asyncio
    async def test_expired_entries_are_evicted(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        for i in range(50):
            await limiter.check(f"k{i}", 5, 10)
        assert len(limiter._entries) == 50
        clock.advance(11)
        await limiter.check("fresh", 5, 10)
        assert len(limiter._entries) == 1

    @pytest.mark.asyncio
    async def test_concurrent_checks_count_every_attempt(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())
        results = await asyncio.gather(*(limiter.check("k", 5, 60) for _ in range(20)))
        assert sum(r.allowed for r in results) == 5


class TestPolicies:
    def test_defaults(self):
        settings = Settings()
        assert login_policy(settings).max_attempts == 10
        assert login_policy(settings).window_seconds == 15 * 60
        assert register_policy(settings).max_attempts == 5
        assert register_policy(settings).window_seconds == 60 * 60

    def test_memory_backend_by_default(self):
        assert isinstance(build_rate_limiter(Settings(rate_limit_backend="memory")), InMemoryRateLimiter)

    def test_redis_backend_selected(self):
        limiter = build_rate_limiter(Settings(rate_limit_backend="redis", redis_url="redis://localhost:6399/0"))
        assert isinstance(limiter, RedisRateLimiter)


class TestClientIp:
    def test_first_forwarded_for_entry(self):
        assert client_ip(_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})) == "203.0.113.7"

    def test_cf_connecting_ip(self):
        assert client_ip(_request({"CF-Connecting-IP": "198.51.100.4"})) == "198.51.100.4"

    def test_socket_peer(self):
        assert client_ip(_request()) == "10.0.0.9"

    def test_unknown(self):
        assert client_ip(_request(client=None)) == "unknown"


def _mock_redis(count: int, ttl: int) -> tuple[MagicMock, MagicMock]:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[True, count, ttl])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    redis.aclose = AsyncMock()
    return redis, pipe


class TestRedisRateLimiter:
    @pytest.mark.asyncio
    async def test_allowed_under_limit(self):
        redis, pipe = _mock_redis(count=3, ttl=850)
        limiter = RedisRateLimiter(redis)
        assert await limiter.check("login:1.2.3.4", 10, 900) == RateLimitResult(allowed=True)
        pipe.set.assert_called_once_with("ratelimit:login:1.2.3.4", 0, ex=900, nx=True)
        pipe.incr.assert_called_once_with("ratelimit:login:1.2.3.4")
        pipe.ttl.assert_called_once_with("ratelimit:login:1.2.3.4")

    @pytest.mark.asyncio
    async def test_denied_over_limit_uses_ttl(self):
        redis, _ = _mock_redis(count=11, ttl=420)
        result = await RedisRateLimiter(redis).check("login:1.2.3.4", 10, 900)
        assert result == RateLimitResult(allowed=False, retry_after=420)

    @pytest.mark.asyncio
    async def test_missing_ttl_falls_back_to_window(self):
        redis, _ = _mock_redis(count=11, ttl=-1)
        result = await RedisRateLimiter(redis).check("k", 10, 900)
        assert result == RateLimitResult(allowed=False, retry_after=900)

    @pytest.mark.asyncio
    async def test_aclose_closes_client(self):
        redis, _ = _mock_redis(count=1, ttl=10)
        await RedisRateLimiter(redis).aclose()
        redis.aclose.assert_awaited_once()
