"""Tests for the async token bucket RPC throttle."""

from __future__ import annotations

import asyncio
import time

import pytest

from core.rate_limiter import RateLimiter


@pytest.fixture
def limiter():
    return RateLimiter(rate=10.0, burst=5)


class TestRateLimiterBasic:
    @pytest.mark.asyncio
    async def test_initial_burst_does_not_wait(self, limiter):
        """Burst capacity should allow immediate calls without delay."""
        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()
        elapsed = time.monotonic() - start
        assert elapsed < 0.1

    @pytest.mark.asyncio
    async def test_exceeding_burst_causes_wait(self):
        limiter = RateLimiter(rate=10.0, burst=2)
        start = time.monotonic()
        for _ in range(4):
            await limiter.acquire()
        elapsed = time.monotonic() - start
        assert elapsed >= 0.05

    @pytest.mark.asyncio
    async def test_stats_count_calls(self, limiter):
        for _ in range(3):
            await limiter.acquire()
        assert limiter.stats["rpc_calls"] == 3

    @pytest.mark.asyncio
    async def test_no_throttle_within_burst(self, limiter):
        for _ in range(5):
            await limiter.acquire()
        assert limiter.stats["throttled"] == 0

    @pytest.mark.asyncio
    async def test_throttled_when_bucket_empty(self):
        limiter = RateLimiter(rate=10.0, burst=1)
        for _ in range(3):
            await limiter.acquire()
        assert limiter.stats["throttled"] >= 1
        assert limiter.stats["wait_time_s"] > 0

    @pytest.mark.asyncio
    async def test_properties(self, limiter):
        assert limiter.rate == 10.0
        assert limiter.burst == 5


class TestRateLimiterCost:
    @pytest.mark.asyncio
    async def test_cost_takes_several_tokens(self):
        limiter = RateLimiter(rate=10.0, burst=4)
        await limiter.acquire(cost=4)
        assert limiter.stats["rpc_calls"] == 4
        assert limiter.stats["throttled"] == 0
        await limiter.acquire()
        assert limiter.stats["throttled"] == 1

    @pytest.mark.asyncio
    async def test_cost_clamped_to_burst(self):
        """A cost above capacity would otherwise wait forever."""
        limiter = RateLimiter(rate=100.0, burst=2)
        await asyncio.wait_for(limiter.acquire(cost=50), timeout=1.0)
        assert limiter.stats["rpc_calls"] == 2


class TestRateLimiterRefill:
    @pytest.mark.asyncio
    async def test_tokens_refill_after_wait(self):
        limiter = RateLimiter(rate=100.0, burst=2)
        await limiter.acquire()
        await limiter.acquire()
        await asyncio.sleep(0.05)
        start = time.monotonic()
        await limiter.acquire()
        elapsed = time.monotonic() - start
        assert elapsed < 0.05

    @pytest.mark.asyncio
    async def test_concurrent_acquires_all_served(self):
        limiter = RateLimiter(rate=20.0, burst=2)
        await asyncio.gather(*(limiter.acquire() for _ in range(6)))
        assert limiter.stats["rpc_calls"] == 6


class TestRateLimiterValidation:
    def test_rejects_zero_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(rate=0.0, burst=1)

    def test_rejects_zero_burst(self):
        with pytest.raises(ValueError):
            RateLimiter(rate=1.0, burst=0)

    def test_stats_format(self):
        stats = RateLimiter().stats
        assert stats == {"rpc_calls": 0, "throttled": 0, "wait_time_s": 0.0}
