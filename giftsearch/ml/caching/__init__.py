"""
Caching Module
Redis-based caching for query embeddings.
"""

from .base import CacheBackend
from .redis_cache import RedisCache
from .embedding_cache import EmbeddingCache, EmbeddingLookup

__all__ = [
    "CacheBackend",
    "RedisCache",
    "EmbeddingCache",
    "EmbeddingLookup",
]
