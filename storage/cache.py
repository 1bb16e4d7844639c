"""
In-Memory Asset Cache

Holds recent aggregation results so HTTP readers do not trigger a full
fetch-match-fold cycle on every request.

Each value is wrapped in a CacheEntry that records when it was stored and
when it expires. Expired entries are treated as missing and dropped on
access.

Invalidation also bumps a generation counter. A load that was already running
when invalidate() was called still returns its value to its own caller, but
that value is not cached.

Usage:
    cache = AssetCache(ttl=300)
    report = await cache.get_or_load("assets", aggregator.aggregate_with_report)
    cache.invalidate("assets")   # e.g. after exchange rates change
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from core.logging import get_logger
from core.utils.time import current_utc_datetime


T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and its validity window."""

    value: T
    stored_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class AssetCache:
    """
    TTL cache keyed by string.

    Args:
        ttl: Entry lifetime in seconds (0 disables caching)
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(self, ttl: int = 300, clock: Callable[[], datetime] = current_utc_datetime):
        if ttl < 0:
            raise ValueError(f"ttl cannot be negative, got {ttl}")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._generation = 0
        self._load_lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    def get_entry(self, key: str) -> Optional[CacheEntry[Any]]:
        """Fresh entry for `key`, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._logger.debug(f"Cache entry '{key}' expired")
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    @property
    def generation(self) -> int:
        """Bumped by every invalidate() and clear()."""
        return self._generation

    def set(self, key: str, value: Any, generation: Optional[int] = None) -> Optional[CacheEntry[Any]]:
        """
        Store `value` under `key`.

        Args:
            key: Cache key
            value: Value to store
            generation: If given, the value is only stored when no invalidation
                        happened since that generation was read

        Returns:
            The stored entry, or None if the value was discarded as stale
        """
        if generation is not None and generation != self._generation:
            self._logger.debug(f"Discarding stale value for '{key}' (invalidated while loading)")
            return None

        now = self._clock()
        entry = CacheEntry(value=value, stored_at=now, expires_at=now + timedelta(seconds=self.ttl))
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> bool:
        """
        Drop `key` and mark in-flight loads as stale.

        Returns True if an entry was removed.
        """
        self._generation += 1
        removed = self._entries.pop(key, None) is not None
        if removed:
            self._logger.debug(f"Cache entry '{key}' invalidated")
        return removed

    def clear(self) -> None:
        self._generation += 1
        self._entries.clear()

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for `key`, loading it on a miss.

        Concurrent misses wait on one lock, so the loader runs once and the
        waiters reuse its result. Loader exceptions propagate and nothing is
        cached. A value whose load overlapped an invalidate() is returned to
        its caller but not cached.
        """
        entry = self.get_entry(key)
        if entry is not None:
            return entry.value

        async with self._load_lock:
            # Another waiter may have filled the entry while we waited
            entry = self.get_entry(key)
            if entry is not None:
                return entry.value

            self._logger.debug(f"Cache miss for '{key}', loading")
            generation = self._generation
            value = await loader()
            if self.ttl > 0:
                self.set(key, value, generation=generation)
            return value

    def __len__(self) -> int:
        return len(self._entries)
