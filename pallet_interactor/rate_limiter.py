"""In-memory token-bucket limiting keyed by route or category (per process)."""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional


class TokenBucket:
    def __init__(self, rate: float, capacity: float) -> None:
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self.timestamp = time.monotonic()

    def consume(self, amount: float = 1.0) -> bool:
        now = time.monotonic()
        elapsed = now - self.timestamp
        self.timestamp = now
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        if self.tokens >= amount:
            self.tokens -= amount
            return True
        return False


class PerKeyRateLimiter:
    """One bucket per key; keys listed in ``overrides`` get their own rate."""

    def __init__(
        self,
        rate_per_sec: float,
        burst: Optional[float] = None,
        overrides: Optional[Dict[str, float]] = None,
    ) -> None:
        self.rate = rate_per_sec
        self.burst = burst if burst is not None else rate_per_sec
        self.overrides = dict(overrides or {})
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = asyncio.Lock()

    def _new_bucket(self, key: str) -> TokenBucket:
        rate = self.overrides.get(key, self.rate)
        # Overridden keys burst at their own rate, never below one request.
        capacity = max(1.0, rate) if key in self.overrides else self.burst
        return TokenBucket(rate, capacity)

    async def allow(self, key: str) -> bool:
        async with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._new_bucket(key)
                self._buckets[key] = bucket
            return bucket.consume()
