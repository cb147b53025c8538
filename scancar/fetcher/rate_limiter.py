"""Per-host token bucket rate limiter."""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class RateLimiter:
    """Token bucket keyed by upstream host.

    Provider adapters share one HTTP client, so the limit applies per host
    across every refresh and detail fetch that targets it. Callers that find
    the bucket empty sleep exactly long enough for one token to refill.
    """

    def __init__(
        self,
        max_tokens: int = 5,
        refill_rate: float = 5.0,
        now: Callable[[], float] = time.monotonic,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize rate limiter.

        Args:
            max_tokens: Bucket capacity (burst size)
            refill_rate: Tokens added per second
            now: Clock function (default: time.monotonic)
            sleeper: Async sleep function (default: asyncio.sleep)
        """
        if max_tokens <= 0 or refill_rate <= 0:
            raise ValueError("max_tokens and refill_rate must be positive")
        self.max_tokens = max_tokens
        self.refill_rate = refill_rate
        self._now = now
        self._sleep = sleeper
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = asyncio.Lock()

    async def acquire(self, key: str) -> float:
        """Take one token for ``key``, waiting for a refill if needed.

        Returns:
            Total seconds spent waiting
        """
        waited = 0.0
        while True:
            async with self._lock:
                bucket = self._refill(key)
                if bucket.tokens >= 1.0:
                    bucket.tokens -= 1.0
                    return waited
                delay = (1.0 - bucket.tokens) / self.refill_rate
            await self._sleep(delay)
            waited += delay

    def tokens_available(self, key: str) -> int:
        """Whole tokens currently available for ``key``."""
        return int(self._refill(key).tokens)

    def _refill(self, key: str) -> _Bucket:
        current = self._now()
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket(tokens=float(self.max_tokens), updated_at=current)
            self._buckets[key] = bucket
            return bucket

        elapsed = max(0.0, current - bucket.updated_at)
        bucket.tokens = min(float(self.max_tokens), bucket.tokens + elapsed * self.refill_rate)
        bucket.updated_at = current
        return bucket
