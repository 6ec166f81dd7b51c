"""
Embedding Cache
Resolves query text to an embedding, consulting the cache before the paid provider.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from ..config import MLConfig, get_ml_config
from ..embeddings.base import Embedding, EmbeddingCost, EmbeddingProvider, calculate_cost, to_vector
from ..errors import ExternalServiceError
from ..query.expansion import normalize_query
from .base import CacheBackend

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingLookup:
    """Embedding plus what it cost to obtain it."""

    embedding: Embedding
    cost: EmbeddingCost
    cached: bool


class EmbeddingCache:
    """
    Cache-aware client for query embeddings.

    This is the only component that spends money: a cache hit costs nothing,
    a miss calls the provider exactly once and stores the vector under a TTL.
    Provider failures are fatal (ExternalServiceError); cache failures only
    cost a provider call.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: CacheBackend,
        config: Optional[MLConfig] = None,
    ):
        """
        Initialize embedding cache.

        Args:
            provider: Embedding provider used on cache misses
            cache: Key/value cache backend
            config: Configuration
        """
        self.config = config or get_ml_config()
        self.provider = provider
        self.cache = cache

        self.prefix = self.config.embedding.cache_key_prefix
        self.ttl = self.config.embedding.cache_ttl_seconds
        self.timeout = self.config.timeouts.embedding_seconds
        self.model = self.config.embedding.model

        # Statistics
        self.hits = 0
        self.misses = 0
        self.provider_calls = 0
        self.total_tokens = 0
        self.total_cost = 0.0

        logger.info(f"Embedding cache initialized (ttl={self.ttl}s, model={self.model})")

    def cache_key(self, text: str) -> str:
        """Normalized cache key for a text."""
        normalized = normalize_query(text)
        digest = hashlib.md5(normalized.encode("utf-8")).hexdigest()
        return f"{self.prefix}{digest}"

    async def embed(self, text: str) -> EmbeddingLookup:
        """
        Get or generate embedding for a query.

        Args:
            text: Query text

        Returns:
            EmbeddingLookup (cost is zero and cached=True on a hit)

        Raises:
            ExternalServiceError: If the provider fails, times out or returns invalid data
        """
        normalized = normalize_query(text)
        key = self.cache_key(normalized)

        cached = await self._cache_get(key)
        if cached is not None:
            self.hits += 1
            logger.debug(f"Cache HIT for query: '{normalized[:30]}'")
            return EmbeddingLookup(
                embedding=Embedding(vector=cached, model=self.model, tokens_used=0),
                cost=calculate_cost(0, self.model, self.config),
                cached=True,
            )

        self.misses += 1
        logger.debug(f"Cache MISS for query: '{normalized[:30]}'")

        embedding = await self._call_provider(normalized)

        await self._cache_set(key, embedding.vector)

        cost = calculate_cost(embedding.tokens_used, embedding.model, self.config)
        self.total_tokens += embedding.tokens_used
        self.total_cost += cost.estimated_cost

        return EmbeddingLookup(embedding=embedding, cost=cost, cached=False)

    async def embed_batch(self, texts: List[str]) -> List[EmbeddingLookup]:
        """
        Resolve many texts; misses are sent to the provider in a single batch call.

        Raises:
            ExternalServiceError: If the provider batch call fails
        """
        normalized = [normalize_query(t) for t in texts]
        lookups: Dict[int, EmbeddingLookup] = {}
        missing: List[int] = []

        for i, text in enumerate(normalized):
            cached = await self._cache_get(self.cache_key(text))
            if cached is not None:
                self.hits += 1
                lookups[i] = EmbeddingLookup(
                    embedding=Embedding(vector=cached, model=self.model, tokens_used=0),
                    cost=calculate_cost(0, self.model, self.config),
                    cached=True,
                )
            else:
                self.misses += 1
                missing.append(i)

        if missing:
            # Same text may appear more than once; embed it once
            unique_texts = list(dict.fromkeys(normalized[i] for i in missing))
            embeddings = await self._call_provider_batch(unique_texts)
            by_text = dict(zip(unique_texts, embeddings))

            for text, embedding in by_text.items():
                await self._cache_set(self.cache_key(text), embedding.vector)
                cost = calculate_cost(embedding.tokens_used, embedding.model, self.config)
                self.total_tokens += embedding.tokens_used
                self.total_cost += cost.estimated_cost

            for i in missing:
                embedding = by_text[normalized[i]]
                lookups[i] = EmbeddingLookup(
                    embedding=embedding,
                    cost=calculate_cost(embedding.tokens_used, embedding.model, self.config),
                    cached=False,
                )

        logger.debug(f"Batch embedding lookup: {len(texts) - len(missing)}/{len(texts)} hits")

        return [lookups[i] for i in range(len(texts))]

    async def invalidate(self, text: str) -> bool:
        """Invalidate the cached embedding for a query."""
        return await self.cache.delete(self.cache_key(text))

    def get_stats(self) -> dict:
        """Cache and cost statistics."""
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate_percent": (self.hits / total * 100) if total > 0 else 0.0,
            "provider_calls": self.provider_calls,
            "total_tokens": self.total_tokens,
            "total_cost": self.total_cost,
        }

    async def _call_provider(self, text: str) -> Embedding:
        """Single provider call under the embedding timeout."""
        self.provider_calls += 1
        try:
            embedding = await asyncio.wait_for(self.provider.embed(text), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Embedding provider timed out after {self.timeout}s")
            raise ExternalServiceError(f"Embedding provider timed out after {self.timeout}s") from e
        except ExternalServiceError:
            raise
        except Exception as e:
            logger.error(f"Embedding provider failed: {e}")
            raise ExternalServiceError(f"Embedding provider failed: {e}") from e

        embedding.vector = to_vector(embedding.vector, self.config.embedding.dimension)
        return embedding

    async def _call_provider_batch(self, texts: List[str]) -> List[Embedding]:
        """Batch provider call under the embedding timeout."""
        self.provider_calls += 1
        try:
            embeddings = await asyncio.wait_for(
                self.provider.embed_batch(texts), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise ExternalServiceError(f"Embedding provider timed out after {self.timeout}s") from e
        except ExternalServiceError:
            raise
        except Exception as e:
            logger.error(f"Batch embedding provider call failed: {e}")
            raise ExternalServiceError(f"Embedding provider failed: {e}") from e

        if len(embeddings) != len(texts):
            raise ExternalServiceError(
                f"Embedding provider returned {len(embeddings)} vectors for {len(texts)} texts"
            )

        for embedding in embeddings:
            embedding.vector = to_vector(embedding.vector, self.config.embedding.dimension)
        return embeddings

    async def _cache_get(self, key: str) -> Optional[np.ndarray]:
        try:
            value = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Embedding cache read failed for '{key}': {e}")
            return None

        if value is None:
            return None

        try:
            return to_vector(value, self.config.embedding.dimension)
        except ExternalServiceError:
            logger.warning(f"Discarding malformed cached embedding for '{key}'")
            return None

    async def _cache_set(self, key: str, vector: np.ndarray) -> None:
        try:
            stored = await self.cache.set(key, vector, ttl=self.ttl)
        except Exception as e:
            logger.warning(f"Embedding cache write failed for '{key}': {e}")
            return

        if not stored:
            logger.warning(f"Embedding cache write rejected for '{key}'")
