"""
In-Process Cache Store

Capacity-bounded mapping of key -> CacheEntry with lazy expiry checks,
pattern eviction and an explicit sweep used by the janitor.
"""

import re
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional

import structlog

from ...domain.cache.entities import CacheEntry
from ...domain.cache.value_objects import TTL, KeyPattern

logger = structlog.get_logger(__name__)

DEFAULT_MAX_SIZE = 1000


class MemoryStore:
    """
    Bounded in-process cache store.

    When the store is full, ``set`` first sweeps expired entries; if that
    frees nothing, the oldest inserted entry is evicted so the store never
    holds more than ``max_size`` entries.

    All mutations take a lock, so sync code running in worker threads can
    share the store with the event loop.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.time,
        legacy_patterns: bool = False,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size
        self.legacy_patterns = legacy_patterns
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key``, removing it if it has expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default

            if entry.is_expired(self._clock()):
                del self._entries[key]
                return default

            return entry.value

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry without checking expiry."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` for ``ttl_seconds``, replacing any existing entry."""
        ttl = TTL(ttl_seconds)

        with self._lock:
            now = self._clock()

            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._sweep_locked(now)
                while len(self._entries) >= self.max_size:
                    evicted_key, _ = self._entries.popitem(last=False)
                    self._evictions += 1
                    logger.debug("Cache evicted oldest key", key=evicted_key)

            self._entries[key] = CacheEntry.create(value, ttl, now=now)

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns whether it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Remove every entry. Returns how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def invalidate_pattern(self, pattern: str) -> int:
        """Remove every key matching the ``*`` glob ``pattern``."""
        regex = self._compile(pattern)

        with self._lock:
            matched = [key for key in self._entries if regex.fullmatch(key)]
            for key in matched:
                del self._entries[key]

        if matched:
            logger.debug("Invalidated cache keys", pattern=pattern, count=len(matched))
        return len(matched)

    def _compile(self, pattern: str) -> "re.Pattern[str]":
        key_pattern = KeyPattern(pattern)
        if not self.legacy_patterns:
            return key_pattern.to_regex()

        try:
            return key_pattern.to_regex(legacy=True)
        except re.error as e:
            logger.warning(
                "Invalid legacy invalidation pattern, matching literally",
                pattern=pattern,
                error=str(e),
            )
            return key_pattern.to_regex()

    def stats(self) -> Dict[str, Any]:
        """Size and key snapshot. Expired entries not yet swept are included."""
        with self._lock:
            return {"size": len(self._entries), "keys": list(self._entries.keys())}

    @property
    def evictions(self) -> int:
        """Entries dropped to respect ``max_size``."""
        return self._evictions

    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        with self._lock:
            removed = self._sweep_locked(self._clock())

        if removed > 0:
            logger.info("Cleaned up expired cache entries", count=removed)
        return removed

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)
