"""
Data Collection - Timed Cache.

Shared cache of collector results keyed by (source, query parameters).
Reads are lock-free dictionary lookups; writes are serialized per key
and the last writer wins.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from core.clock import ClockProtocol, SystemClock
from data_sources.models import DataPoint


logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


@dataclass(frozen=True)
class CacheEntry:
    points: Tuple[DataPoint, ...]
    stored_at: datetime


class TimedCache:
    """Age-checked cache of per-source results."""

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._write_locks: Dict[CacheKey, asyncio.Lock] = {}

    @staticmethod
    def make_key(source: str, params: Optional[Dict[str, Any]] = None) -> CacheKey:
        """Canonical key: parameter order does not matter."""
        return source, json.dumps(params or {}, sort_keys=True, default=str)

    def get(self, key: CacheKey, max_age_seconds: float) -> Optional[Tuple[DataPoint, ...]]:
        """Cached points younger than `max_age_seconds`, else None. Expired entries are dropped."""
        if max_age_seconds <= 0:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        age = (self._clock.now() - entry.stored_at).total_seconds()
        if age >= max_age_seconds:
            self._drop(key)
            return None
        return entry.points

    async def put(self, key: CacheKey, points: Iterable[DataPoint]) -> None:
        lock = self._write_locks.setdefault(key, asyncio.Lock())
        async with lock:
            self._entries[key] = CacheEntry(points=tuple(points), stored_at=self._clock.now())
        logger.debug(f"[{key[0]}] Cached {len(self._entries[key].points)} points")

    def prune(self, max_age_seconds: float) -> int:
        """Drop every entry older than `max_age_seconds`; returns how many."""
        now = self._clock.now()
        expired = [
            key for key, entry in self._entries.items()
            if (now - entry.stored_at).total_seconds() >= max_age_seconds
        ]
        for key in expired:
            self._drop(key)
        return len(expired)

    def invalidate(self, key: CacheKey) -> None:
        self._drop(key)

    def clear(self) -> None:
        self._entries.clear()
        self._write_locks = {k: lock for k, lock in self._write_locks.items() if lock.locked()}

    def _drop(self, key: CacheKey) -> None:
        self._entries.pop(key, None)
        lock = self._write_locks.get(key)
        if lock is not None and not lock.locked():
            del self._write_locks[key]

    def __len__(self) -> int:
        return len(self._entries)
