"""
Personalization
Re-ranks fused results using the similarity between each item and the
user's preference vector.

Boost Formula:
boost = clamp(cosine(item, preference), 0, 1) × ceiling
final_score = rrf_score × (1 + boost)
"""

import abc
import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from sqlalchemy.orm import Session

from ...db.models import Product, UserProfile
from ..caching.base import CacheBackend
from ..errors import PersonalizationError
from .fusion import FusedResult, sort_results

logger = logging.getLogger(__name__)


DEFAULT_BOOST_CEILING = 0.2


def parse_vector(value: Any) -> Optional[np.ndarray]:
    """
    Convert a stored vector to a float32 array.

    Accepts numpy arrays, sequences and pgvector text ("[0.1,0.2]").

    Args:
        value: Stored vector value

    Returns:
        1D array, or None if value is None or empty
    """
    if value is None:
        return None

    if isinstance(value, str):
        text = value.strip().strip("[]").strip()
        if not text:
            return None
        vector = np.array([float(v) for v in text.split(",")], dtype=np.float32)
    else:
        vector = np.asarray(value, dtype=np.float32).reshape(-1)

    if vector.size == 0:
        return None
    return vector


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity of two vectors.

    Raises:
        ValueError: On dimension mismatch, zero norm or non-finite values
    """
    a = np.asarray(a, dtype=np.float32).reshape(-1)
    b = np.asarray(b, dtype=np.float32).reshape(-1)

    if a.shape != b.shape:
        raise ValueError(f"Vector dimension mismatch: {a.shape[0]} != {b.shape[0]}")

    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm < 1e-8:
        raise ValueError("Cannot compute cosine similarity of a zero vector")

    similarity = float(np.dot(a, b) / norm)
    if not np.isfinite(similarity):
        raise ValueError("Cosine similarity is not finite")
    return similarity


class PreferenceStore(abc.ABC):
    """Source of per-user preference vectors."""

    @abc.abstractmethod
    async def get_preference_embedding(self, user_id: str) -> Optional[np.ndarray]: ...


class ItemEmbeddingStore(abc.ABC):
    """Source of per-item embeddings."""

    @abc.abstractmethod
    async def get_item_embeddings(self, item_ids: List[str]) -> Dict[str, np.ndarray]: ...


class SqlPreferenceStore(PreferenceStore):
    """Reads user_profiles.preference_embedding."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def get_preference_embedding(self, user_id: str) -> Optional[np.ndarray]:
        return await asyncio.to_thread(self._get_sync, user_id)

    def _get_sync(self, user_id: str) -> Optional[np.ndarray]:
        session = self.session_factory()
        try:
            row = (
                session.query(UserProfile.preference_embedding)
                .filter(UserProfile.user_id == user_id)
                .first()
            )
        finally:
            session.close()

        if row is None:
            return None
        return parse_vector(row.preference_embedding)


class SqlItemEmbeddingStore(ItemEmbeddingStore):
    """Reads products.embedding for a batch of items."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def get_item_embeddings(self, item_ids: List[str]) -> Dict[str, np.ndarray]:
        if not item_ids:
            return {}
        return await asyncio.to_thread(self._get_sync, item_ids)

    def _get_sync(self, item_ids: List[str]) -> Dict[str, np.ndarray]:
        session = self.session_factory()
        try:
            rows = (
                session.query(Product.id, Product.embedding)
                .filter(Product.id.in_(item_ids))
                .filter(Product.embedding.isnot(None))
                .all()
            )
        finally:
            session.close()

        embeddings = {}
        for row in rows:
            vector = parse_vector(row.embedding)
            if vector is not None:
                embeddings[str(row.id)] = vector
        return embeddings


class CachedPreferenceStore(PreferenceStore):
    """
    Caches another preference store's vectors.

    Only present vectors are cached; users without a preference are looked
    up again on the next request.
    """

    def __init__(
        self,
        store: PreferenceStore,
        cache: CacheBackend,
        ttl: int = 1800,
        prefix: str = "embedding:user:preference:",
    ):
        """
        Initialize cached preference store.

        Args:
            store: Underlying preference store
            cache: Key/value cache backend
            ttl: Cache TTL in seconds
            prefix: Cache key prefix
        """
        self.store = store
        self.cache = cache
        self.ttl = ttl
        self.prefix = prefix

    async def get_preference_embedding(self, user_id: str) -> Optional[np.ndarray]:
        key = f"{self.prefix}{user_id}"

        try:
            cached = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Preference cache read failed for user {user_id}: {e}")
            cached = None

        if cached is not None:
            return parse_vector(cached)

        vector = await self.store.get_preference_embedding(user_id)

        if vector is not None:
            try:
                await self.cache.set(key, vector.tolist(), ttl=self.ttl)
            except Exception as e:
                logger.warning(f"Preference cache write failed for user {user_id}: {e}")

        return vector


@dataclass
class RerankOutcome:
    """Re-ranked results and whether personalization was applied."""

    results: List[FusedResult]
    applied: bool


class PersonalizationReranker:
    """
    Boosts fused results towards a user's taste.

    The boost is bounded: final_score stays within
    [rrf_score, rrf_score × (1 + ceiling)]. Any failure leaves the input
    untouched.
    """

    def __init__(
        self,
        preference_store: PreferenceStore,
        item_store: ItemEmbeddingStore,
        ceiling: float = DEFAULT_BOOST_CEILING,
        timeout: float = 2.0,
    ):
        """
        Initialize re-ranker.

        Args:
            preference_store: Source of user preference vectors
            item_store: Source of item embeddings
            ceiling: Maximum fractional boost
            timeout: Seconds allowed for each store lookup
        """
        self.preference_store = preference_store
        self.item_store = item_store
        self.ceiling = ceiling
        self.timeout = timeout

        logger.info(f"Personalization re-ranker initialized (ceiling={ceiling})")

    async def rerank(self, fused: List[FusedResult], user_id: Optional[str]) -> RerankOutcome:
        """
        Re-rank fused results for a user.

        Args:
            fused: Fused results in canonical order
            user_id: User to personalize for

        Returns:
            RerankOutcome (input unchanged with applied=False when the user
            has no preference vector or anything fails)
        """
        if not fused or not user_id:
            return RerankOutcome(results=fused, applied=False)

        try:
            reranked = await self._rerank(fused, user_id)
        except Exception as e:
            error = PersonalizationError(f"Personalization failed for user {user_id}: {e}")
            logger.warning(f"{error}; returning fused order")
            return RerankOutcome(results=fused, applied=False)

        if reranked is None:
            return RerankOutcome(results=fused, applied=False)

        return RerankOutcome(results=reranked, applied=True)

    async def _rerank(self, fused: List[FusedResult], user_id: str) -> Optional[List[FusedResult]]:
        preference = await asyncio.wait_for(
            self.preference_store.get_preference_embedding(user_id), timeout=self.timeout
        )
        preference = parse_vector(preference)

        if preference is None:
            logger.debug(f"No preference vector for user {user_id}")
            return None

        if not np.all(np.isfinite(preference)):
            raise ValueError("Preference vector contains non-finite values")

        item_vectors = await asyncio.wait_for(
            self.item_store.get_item_embeddings([r.item_id for r in fused]), timeout=self.timeout
        )

        # Compute every boost before building results so a failure leaves nothing half-applied
        boosts = {}
        for result in fused:
            vector = parse_vector(item_vectors.get(result.item_id))
            if vector is None:
                continue
            similarity = min(1.0, max(0.0, cosine_similarity(vector, preference)))
            boosts[result.item_id] = similarity * self.ceiling

        reranked = []
        for result in fused:
            boost = boosts.get(result.item_id, 0.0)
            reranked.append(
                replace(
                    result,
                    personalization_boost=boost,
                    final_score=result.rrf_score * (1.0 + boost),
                )
            )

        logger.debug(f"Boosted {len(boosts)}/{len(fused)} results for user {user_id}")

        return sort_results(reranked)
