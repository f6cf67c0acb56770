"""Interface for response caching.

Defines the contract for storing and retrieving idempotent read results
under a time-to-live.
"""

import abc
from typing import Any, Optional

from ..models.common import CacheKey


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves an item from the cache asynchronously.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if found and not expired, otherwise None.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores an item asynchronously.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds (uses the cache default if None).
        """
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey) -> bool:
        """Deletes an item. Returns True if something was removed."""
        pass

    @abc.abstractmethod
    async def clear(self) -> None:
        """Clears all items from the cache."""
        pass
