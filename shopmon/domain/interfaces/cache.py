"""Interface for response caching.

Defines the contract for storing, retrieving and invalidating cached
responses, supporting per-entry TTL and tag-based bulk invalidation.
"""

import abc
from typing import Any, Iterable, Optional

from ..models.common import CacheKey
from ..models.response import CacheStats


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves an item from the cache.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if found and not expired, otherwise None.
        """
        pass

    @abc.abstractmethod
    def set(
        self,
        key: CacheKey,
        value: Any,
        ttl: Optional[float] = None,
        tags: Iterable[str] = (),
    ) -> None:
        """Stores an item in the cache.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds (uses the cache default if None).
            tags: Labels used for bulk invalidation.
        """
        pass

    @abc.abstractmethod
    def delete(self, key: CacheKey) -> bool:
        """Deletes an item. Returns True if it was present."""
        pass

    @abc.abstractmethod
    def invalidate_by_tag(self, tag: str) -> int:
        """Removes every entry carrying `tag`, expired or not.

        Returns:
            Number of entries removed.
        """
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Clears all items from the cache."""
        pass

    @abc.abstractmethod
    def stats(self) -> CacheStats:
        """Returns size and oldest/newest entry creation times."""
        pass
