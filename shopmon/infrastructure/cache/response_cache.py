"""In-memory response cache with per-entry TTL and tag invalidation.

Expired entries are treated as absent on read (lazy expiry). An optional
background task evicts expired entries periodically for memory hygiene.
There is no size bound or LRU eviction.
"""

import asyncio
import hashlib
import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from shopmon.domain.interfaces.cache import CacheService
from shopmon.domain.models.common import CacheKey
from shopmon.domain.models.response import CacheEntry, CacheStats

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60  # 5 minutes
DEFAULT_EVICTION_INTERVAL_SECONDS = 60


def normalize_document(document: str) -> str:
    """Collapses whitespace runs so formatting changes do not split cache keys."""
    return " ".join(document.split())


def build_cache_key(
    endpoint: str,
    api_version: str,
    document: str,
    variables: Optional[Mapping[str, Any]] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> CacheKey:
    """Deterministic key over endpoint, version, document, variables and context."""
    parts = [
        endpoint,
        api_version,
        normalize_document(document),
        json.dumps(variables, sort_keys=True, default=str) if variables else "",
        json.dumps(context, sort_keys=True, default=str) if context else "",
    ]
    digest = hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()
    return CacheKey(f"storefront:{digest}")


class ResponseCache(CacheService):
    """Dict-backed cache. All operations are synchronous and O(1) except tag scans."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the cache.

        Args:
            default_ttl: TTL in seconds used when `set` gets none.
            clock: Returns the current Unix time; injectable for tests.
        """
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self.default_ttl = default_ttl
        self._clock = clock
        self._eviction_task: Optional[asyncio.Task] = None
        logger.info(f"ResponseCache initialized (default ttl={default_ttl}s)")

    def __len__(self) -> int:
        return len(self._entries)

    # --- CacheService Interface Implementation ---

    def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache miss for key: {key}")
            return None
        if entry.is_expired(self._clock()):
            logger.debug(f"Cache expired for key: {key}. Removing entry.")
            self._entries.pop(key, None)
            return None
        logger.debug(f"Cache hit for key: {key}")
        return entry.value

    def set(
        self,
        key: CacheKey,
        value: Any,
        ttl: Optional[float] = None,
        tags: Iterable[str] = (),
    ) -> None:
        now = self._clock()
        effective_ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=now + effective_ttl,
            tags=frozenset(tags),
        )
        logger.debug(f"Stored item in cache: key={key}, ttl={effective_ttl}s")

    def delete(self, key: CacheKey) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"Deleted item from cache: key={key}")
        return removed

    def invalidate_by_tag(self, tag: str) -> int:
        stale = [key for key, entry in self._entries.items() if tag in entry.tags]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.info(f"Invalidated {len(stale)} cache entries tagged '{tag}'")
        return len(stale)

    def clear(self) -> None:
        size = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared response cache ({size} entries).")

    def stats(self) -> CacheStats:
        """Describes live entries only; expired ones not yet evicted are skipped."""
        now = self._clock()
        created = [entry.created_at for entry in self._entries.values() if not entry.is_expired(now)]
        if not created:
            return CacheStats(size=0, oldest_entry=None, newest_entry=None)
        return CacheStats(size=len(created), oldest_entry=min(created), newest_entry=max(created))

    # --- Background eviction ---

    def cleanup(self) -> int:
        """Removes expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def start_background_eviction(self, interval: float = DEFAULT_EVICTION_INTERVAL_SECONDS) -> asyncio.Task:
        """Starts periodic cleanup on the running event loop."""
        if self._eviction_task is None or self._eviction_task.done():
            self._eviction_task = asyncio.get_running_loop().create_task(self._evict_periodically(interval))
            logger.debug(f"Background cache eviction started (interval={interval}s)")
        return self._eviction_task

    async def stop_background_eviction(self) -> None:
        task, self._eviction_task = self._eviction_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Background cache eviction stopped")

    async def _evict_periodically(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.cleanup()
