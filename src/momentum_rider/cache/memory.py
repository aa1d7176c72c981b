"""In-process fallback tier: LRU with per-entry TTL."""

import asyncio
import fnmatch
import time
from collections import OrderedDict
from typing import Callable, List, Optional

from ..config.logging import get_logger
from .models import CacheEntry, CacheTier

logger = get_logger(__name__)


class FallbackCache:
    """
    Process-local cache used when the distributed tier is absent or failing.

    Entries expire after their TTL and the least recently used entry is
    evicted once ``max_entries`` is reached. Every operation holds the store
    lock only for the dictionary update itself.
    """

    def __init__(
        self, max_entries: int = 1000, clock: Callable[[], float] = time.time
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self.evictions = 0
        self.logger = logger.bind(component="fallback_cache")

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Get a live entry, dropping it if expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry

    async def set(self, key: str, value: str, ttl_seconds: int) -> CacheEntry:
        """Store a serialized value, evicting the oldest entries when full."""
        now = self._clock()
        entry = CacheEntry(
            key=key,
            value=value,
            ttl_seconds=ttl_seconds,
            tier=CacheTier.FALLBACK,
            stored_at=now,
            expires_at=now + ttl_seconds,
        )
        async with self._lock:
            if key in self._entries:
                del self._entries[key]
            else:
                self._purge_expired(now)
            while len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self.evictions += 1
                self.logger.debug("Evicted cache entry", key=evicted_key)
            self._entries[key] = entry
        return entry

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""
        async with self._lock:
            matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for key in matched:
                del self._entries[key]
            return len(matched)

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    async def keys(self, pattern: str = "*") -> List[str]:
        """List live keys matching a glob pattern."""
        async with self._lock:
            self._purge_expired(self._clock())
            return [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
