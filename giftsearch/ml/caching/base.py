"""
Cache Backend Interface
Key/value capability with TTL used by the embedding and preference caches.
"""

import abc
from typing import Any, Optional


class CacheBackend(abc.ABC):
    """
    Async key/value store with per-key TTL.

    Implementations must be safe for concurrent use by simultaneous searches.
    get() returns None on a miss.
    """

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[Any]: ...

    @abc.abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool: ...

    @abc.abstractmethod
    async def delete(self, key: str) -> bool: ...

    async def ping(self) -> bool:
        return True
