"""
Async token bucket throttle for JSON-RPC traffic.

Public Arbitrum/Base endpoints ban clients that burst too hard. Every
ledger read and every transaction submission takes tokens from one shared
bucket; a log scan that fans out over many block chunks pays per chunk.
"""

from __future__ import annotations

import asyncio
import logging
import time

log = logging.getLogger("riparena.rate_limiter")


class RateLimiter:
    """
    Args:
        rate: Tokens refilled per second (e.g. 5.0 = 5 RPC calls/sec)
        burst: Bucket capacity
    """

    def __init__(self, rate: float = 5.0, burst: int = 10) -> None:
        if rate <= 0 or burst < 1:
            raise ValueError(f"Invalid limiter settings rate={rate} burst={burst}")
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()
        self._calls = 0
        self._throttled = 0
        self._wait_total = 0.0

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def stats(self) -> dict:
        return {
            "rpc_calls": self._calls,
            "throttled": self._throttled,
            "wait_time_s": round(self._wait_total, 3),
        }

    async def acquire(self, cost: int = 1) -> None:
        """Wait until ``cost`` tokens are available, then take them."""
        cost = min(max(cost, 1), self._burst)
        async with self._lock:
            self._refill()
            if self._tokens >= cost:
                self._tokens -= cost
                self._calls += cost
                return
            wait_time = (cost - self._tokens) / self._rate

        log.debug("RPC THROTTLE  waiting %.3fs for %d token(s)", wait_time, cost)
        self._throttled += 1
        self._wait_total += wait_time
        await asyncio.sleep(wait_time)

        async with self._lock:
            self._refill()
            self._tokens = max(0.0, self._tokens - cost)
            self._calls += cost

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(
            float(self._burst),
            self._tokens + (now - self._last_refill) * self._rate,
        )
        self._last_refill = now
