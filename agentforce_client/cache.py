"""
Short-lived memoization for credentials and sessions.

Entries are keyed, so credentials for different auth modes and sessions for
different (mode, agent) pairs never share a slot. Each entry is replaced as
a whole value; readers never see a partially written entry.

No lock guards resolution: coroutines that miss the same key concurrently
each run the resolver, and the last result to settle is the one kept.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """
    Single cached value.

    Attributes:
        value: The resolved value
        expires_at: Clock reading after which the entry is stale
    """

    value: Any
    expires_at: float


class TTLCache:
    """
    Keyed cache with a per-entry validity window.

    Example:
        >>> cache = TTLCache()
        >>> creds = await cache.get_or_resolve(("credentials", mode), 300.0, fetch)
        >>> cache.invalidate(("credentials", mode))
    """

    __slots__ = ("_entries", "_clock")

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[Hashable, CacheEntry] = {}
        self._clock = clock

    def get(self, key: Hashable) -> Any | None:
        """Return the cached value for key, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            logger.debug(f"[CACHE] Expired: {key}")
            return None
        return entry.value

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def get_or_resolve(
        self,
        key: Hashable,
        ttl: float,
        resolver: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached value for key, resolving and storing it on a miss.

        A resolver that raises stores nothing; the next call resolves again.

        Args:
            key: Cache key
            ttl: Validity window in seconds for a freshly resolved value
            resolver: Zero-argument coroutine function producing the value

        Returns:
            Cached or freshly resolved value
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"[CACHE] Hit: {key}")
            return cached

        logger.debug(f"[CACHE] Miss: {key}")
        value = await resolver()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: Hashable) -> bool:
        """Remove key. Returns True if an entry was removed."""
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"[CACHE] Invalidated: {key}")
        return removed

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"[CACHE] Cleared {count} entries")

    def stats(self) -> dict[str, int]:
        """Count of total, still-valid and expired entries."""
        now = self._clock()
        valid = sum(1 for e in self._entries.values() if now < e.expires_at)
        return {
            "total_entries": len(self._entries),
            "valid_entries": valid,
            "expired_entries": len(self._entries) - valid,
        }

    def __len__(self) -> int:
        return len(self._entries)
