"""
Data Collection - Rate Limiter.

============================================================
RESPONSIBILITY
============================================================
Token buckets keyed by source.

- Capacity is the source's requests-per-hour allowance
- Tokens refill continuously at capacity / 3600 per second
- Waiting for a token is bounded by a maximum wait; past it the
  call fails with RateLimitError instead of blocking

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from core.clock import ClockProtocol, SystemClock
from core.constants import DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS
from data_sources.exceptions import RateLimitError


logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class TokenBucket:
    """Continuous-refill token bucket."""

    def __init__(
        self,
        capacity_per_hour: int,
        clock: Optional[ClockProtocol] = None,
        sleep: SleepFunc = asyncio.sleep,
        name: str = "",
    ) -> None:
        if capacity_per_hour <= 0:
            raise ValueError(f"capacity_per_hour must be positive, got {capacity_per_hour}")
        self._capacity = float(capacity_per_hour)
        self._refill_per_second = self._capacity / 3600.0
        self._clock = clock or SystemClock()
        self._sleep = sleep
        self._name = name
        self._tokens = self._capacity
        self._last_refill = self._clock.monotonic()
        self._lock = asyncio.Lock()

    @property
    def capacity(self) -> float:
        return self._capacity

    @property
    def available_tokens(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock.monotonic()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._refill_per_second)
        self._last_refill = now

    def time_until_available(self) -> float:
        """Seconds until one token is available."""
        self._refill()
        if self._tokens >= 1.0:
            return 0.0
        return (1.0 - self._tokens) / self._refill_per_second

    def try_acquire(self) -> bool:
        """Take a token if one is available right now."""
        self._refill()
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    async def acquire(self, max_wait: float = DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS) -> float:
        """
        Take a token, waiting up to `max_wait` seconds.

        Returns:
            Seconds spent waiting

        Raises:
            RateLimitError: no token within `max_wait`
        """
        async with self._lock:
            wait = self.time_until_available()
            if wait == 0.0:
                self._tokens -= 1.0
                return 0.0

            if wait > max_wait:
                raise RateLimitError(
                    message=f"No token within {max_wait:.1f}s (next in {wait:.1f}s)",
                    source_name=self._name or None,
                    retry_after_seconds=wait,
                )

            logger.debug(f"[{self._name}] Rate limited, waiting {wait:.2f}s for a token")
            await self._sleep(wait)
            self._refill()
            self._tokens = max(0.0, self._tokens - 1.0)
            return wait


class RateLimiter:
    """Token buckets keyed by source name, created on first use."""

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        sleep: SleepFunc = asyncio.sleep,
        max_wait: float = DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS,
    ) -> None:
        self._clock = clock or SystemClock()
        self._sleep = sleep
        self._max_wait = max_wait
        self._buckets: Dict[str, TokenBucket] = {}

    def bucket_for(self, source: str, capacity_per_hour: Optional[int]) -> Optional[TokenBucket]:
        """Bucket of a source; None when the source is unlimited."""
        if not capacity_per_hour:
            return None
        bucket = self._buckets.get(source)
        if bucket is None or bucket.capacity != float(capacity_per_hour):
            bucket = TokenBucket(capacity_per_hour, self._clock, self._sleep, name=source)
            self._buckets[source] = bucket
        return bucket

    async def acquire(
        self,
        source: str,
        capacity_per_hour: Optional[int],
        max_wait: Optional[float] = None,
    ) -> float:
        """Take a token for `source`; no-op for unlimited sources."""
        bucket = self.bucket_for(source, capacity_per_hour)
        if bucket is None:
            return 0.0
        limit = self._max_wait if max_wait is None else min(max_wait, self._max_wait)
        return await bucket.acquire(max_wait=max(0.0, limit))
