"""
In-memory calendar cache with TTL.

Calendar projections are pure functions of a property snapshot, so results
are cached under a key that includes the property's ``version``. Every
inventory edit or reservation write bumps the version, which makes older
entries unreachable. Storing a new entry evicts expired entries and any
entry for an older version of the same property, so the cache holds at most
the current version's views plus unexpired views of other properties.

For deployments with multiple instances each process keeps its own cache,
which is safe because keys are versioned.
"""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta
from typing import Any, Hashable

from bed_booking.config import CALENDAR_CACHE_TTL_SECONDS
from bed_booking.utils.datetime import utc_now

CacheKey = tuple[str, int, date, int]


class CalendarCache:
    """
    In-memory cache with time-to-live (TTL) expiration.

    Attributes:
        ttl: Time-to-live for cached entries
        _cache: Internal storage mapping key to (value, expires_at) tuples

    Example:
        >>> cache = CalendarCache(ttl_seconds=300)
        >>> key = calendar_key(prop.id, prop.version, date(2024, 6, 1), 3)
        >>> cache.set(key, months)
        >>> cache.get(key)
    """

    def __init__(self, ttl_seconds: int = 300):
        """
        Initialize cache with specified TTL.

        Args:
            ttl_seconds: Time-to-live in seconds for cached entries
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self._cache: dict[Hashable, tuple[Any, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        """
        Get cached value if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """
        with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if utc_now() < expires_at:
                    return value
                del self._cache[key]
        return None

    def set(self, key: Hashable, value: Any) -> None:
        """
        Store ``value`` and sweep entries it supersedes.

        Expired entries are dropped, as are entries for the same property
        under a different version.
        """
        now = utc_now()
        with self._lock:
            stale = [k for k, entry in self._cache.items() if self._superseded(k, entry, key, now)]
            for old_key in stale:
                del self._cache[old_key]
            self._cache[key] = (value, now + self.ttl)

    @staticmethod
    def _superseded(
        existing: Hashable, entry: tuple[Any, datetime], incoming: Hashable, now: datetime
    ) -> bool:
        if now >= entry[1]:
            return True
        return (
            isinstance(existing, tuple)
            and isinstance(incoming, tuple)
            and existing[0] == incoming[0]
            and existing[1] != incoming[1]
        )

    def invalidate_property(self, property_id: str) -> None:
        """
        Remove every entry belonging to ``property_id``.

        Args:
            property_id: Property whose entries should be dropped
        """
        with self._lock:
            for key in [k for k in self._cache if isinstance(k, tuple) and k[0] == property_id]:
                del self._cache[key]

    def clear(self) -> None:
        """
        Clear all cached entries.

        Useful for testing or emergency cache invalidation.
        """
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)


def calendar_key(property_id: str, version: int, start: date, months: int) -> CacheKey:
    return (property_id, version, start, months)


# Global cache instance
calendar_cache = CalendarCache(ttl_seconds=CALENDAR_CACHE_TTL_SECONDS)
