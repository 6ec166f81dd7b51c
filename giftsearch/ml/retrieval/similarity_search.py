"""
Similarity Search
Vector leg: k-NN cosine similarity search using pgvector or FAISS.
"""

import abc
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence, Union

import faiss
import numpy as np
from sqlalchemy.orm import Session

from ...db.models import Product
from ..embeddings.base import Embedding
from .candidates import SEMANTIC_SOURCE, CandidateResult, ItemHit
from .filters import SearchFilters
from .personalization import parse_vector
from .search_leg import LegOutcome, SearchLeg

logger = logging.getLogger(__name__)


class VectorBackend(abc.ABC):
    """Similarity backend returning hits scored by cosine similarity."""

    @abc.abstractmethod
    async def search(
        self,
        vector: np.ndarray,
        filters: SearchFilters,
        limit: int,
        min_similarity: float,
    ) -> List[ItemHit]: ...


class PgVectorBackend(VectorBackend):
    """
    pgvector cosine search over products.embedding.

    Similarity is 1 - cosine distance; the threshold and filters are pushed
    into SQL.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        """
        Initialize pgvector backend.

        Args:
            session_factory: Factory returning SQLAlchemy sessions
        """
        self.session_factory = session_factory

        logger.info("pgvector backend initialized")

    async def search(
        self,
        vector: np.ndarray,
        filters: SearchFilters,
        limit: int,
        min_similarity: float,
    ) -> List[ItemHit]:
        return await asyncio.to_thread(self._search_sync, vector, filters, limit, min_similarity)

    def _search_sync(
        self,
        vector: np.ndarray,
        filters: SearchFilters,
        limit: int,
        min_similarity: float,
    ) -> List[ItemHit]:
        distance = Product.embedding.cosine_distance(vector.tolist())
        similarity = (1 - distance).label("similarity")

        session = self.session_factory()
        try:
            query = (
                session.query(
                    Product.id,
                    Product.title,
                    Product.description,
                    Product.price,
                    Product.category,
                    Product.image_url,
                    similarity,
                )
                .filter(Product.embedding.isnot(None))
                .filter(1 - distance >= min_similarity)
            )

            query = filters.apply(query, Product)
            rows = query.order_by(distance, Product.id).limit(limit).all()
        finally:
            session.close()

        return [
            ItemHit(
                item_id=str(row.id),
                title=row.title,
                description=row.description,
                price=float(row.price or 0.0),
                category=row.category,
                image_url=row.image_url,
                score=float(row.similarity),
            )
            for row in rows
        ]


class FAISSVectorBackend(VectorBackend):
    """
    In-process exact cosine search with FAISS.

    Item vectors are L2-normalized into an IndexFlatIP, so inner product
    equals cosine similarity. Filters are checked on item metadata after
    the k-NN search, which over-fetches when filters are present.
    """

    def __init__(self, items: Sequence[ItemHit], vectors: np.ndarray, overfetch: int = 4):
        """
        Build the index.

        Args:
            items: Catalog items, aligned with vectors
            vectors: Item embeddings (n_items x dimension)
            overfetch: k multiplier used when filters are applied
        """
        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim != 2:
            raise ValueError(f"Item vectors must be 2D, got shape {vectors.shape}")
        if len(items) != vectors.shape[0]:
            raise ValueError(f"Got {len(items)} items but {vectors.shape[0]} vectors")

        self.dimension = vectors.shape[1]
        self.index = faiss.IndexFlatIP(self.dimension)

        if vectors.shape[0] > 0:
            vectors = np.ascontiguousarray(vectors.copy())
            faiss.normalize_L2(vectors)
            self.index.add(vectors)

        self.items: List[ItemHit] = list(items)
        self.positions: Dict[str, int] = {item.item_id: i for i, item in enumerate(self.items)}
        self.overfetch = max(1, overfetch)

        logger.info(f"FAISS backend built with {self.index.ntotal} vectors (dim={self.dimension})")

    @classmethod
    def from_database(
        cls,
        session_factory: Callable[[], Session],
        dimension: int,
        overfetch: int = 4,
    ) -> "FAISSVectorBackend":
        """
        Build the index from every product with a stored embedding.

        Args:
            session_factory: Factory returning SQLAlchemy sessions
            dimension: Embedding dimension (used when the catalog is empty)
            overfetch: k multiplier used when filters are applied

        Returns:
            FAISSVectorBackend
        """
        session = session_factory()
        try:
            rows = (
                session.query(
                    Product.id,
                    Product.title,
                    Product.description,
                    Product.price,
                    Product.category,
                    Product.image_url,
                    Product.embedding,
                )
                .filter(Product.embedding.isnot(None))
                .order_by(Product.id)
                .all()
            )
        finally:
            session.close()

        items, vectors = [], []
        for row in rows:
            vector = parse_vector(row.embedding)
            if vector is None or vector.shape[0] != dimension:
                logger.warning(f"Skipping product {row.id}: missing or malformed embedding")
                continue

            items.append(
                ItemHit(
                    item_id=str(row.id),
                    title=row.title,
                    description=row.description,
                    price=float(row.price or 0.0),
                    category=row.category,
                    image_url=row.image_url,
                    score=0.0,
                )
            )
            vectors.append(vector)

        matrix = np.vstack(vectors) if vectors else np.zeros((0, dimension), dtype=np.float32)
        return cls(items, matrix, overfetch=overfetch)

    async def search(
        self,
        vector: np.ndarray,
        filters: SearchFilters,
        limit: int,
        min_similarity: float,
    ) -> List[ItemHit]:
        return await asyncio.to_thread(self._search_sync, vector, filters, limit, min_similarity)

    def _search_sync(
        self,
        vector: np.ndarray,
        filters: SearchFilters,
        limit: int,
        min_similarity: float,
    ) -> List[ItemHit]:
        if self.index.ntotal == 0 or limit <= 0:
            return []

        query = np.asarray(vector, dtype=np.float32).reshape(1, -1)
        if query.shape[1] != self.dimension:
            raise ValueError(f"Query dimension {query.shape[1]} != index dimension {self.dimension}")

        query = np.ascontiguousarray(query.copy())
        faiss.normalize_L2(query)

        k = limit if filters.is_empty else limit * self.overfetch
        k = min(k, self.index.ntotal)

        similarities, indices = self.index.search(query, k)

        hits = []
        for similarity, idx in zip(similarities[0], indices[0]):
            # FAISS returns -1 for missing results
            if idx == -1:
                continue

            similarity = float(similarity)
            if similarity < min_similarity:
                continue

            item = self.items[int(idx)]
            if not filters.matches(item):
                continue

            hits.append(
                ItemHit(
                    item_id=item.item_id,
                    title=item.title,
                    description=item.description,
                    price=item.price,
                    category=item.category,
                    image_url=item.image_url,
                    score=similarity,
                )
            )

            if len(hits) >= limit:
                break

        return hits

    async def get_item_embeddings(self, item_ids: List[str]) -> Dict[str, np.ndarray]:
        """
        Get stored (normalized) vectors for items in the index.

        Args:
            item_ids: Item IDs

        Returns:
            Mapping of item_id -> vector (unknown ids omitted)
        """
        vectors = {}
        for item_id in item_ids:
            position = self.positions.get(item_id)
            if position is not None:
                vectors[item_id] = self.index.reconstruct(position)
        return vectors


class SemanticSearch(SearchLeg):
    """
    Vector leg adapter.

    Drops hits below the similarity threshold, orders by similarity and
    ranks by position (1-based); any backend error or timeout degrades to
    an empty list.
    """

    source = SEMANTIC_SOURCE

    def __init__(self, backend: VectorBackend, timeout: float = 5.0, min_similarity: float = 0.5):
        """
        Initialize semantic search.

        Args:
            backend: Vector backend
            timeout: Seconds allowed for one backend call
            min_similarity: Default cosine similarity threshold
        """
        super().__init__(timeout=timeout)
        self.backend = backend
        self.min_similarity = min_similarity

        logger.info("Semantic search initialized")

    async def search(
        self,
        embedding: Union[Embedding, np.ndarray],
        filters: Optional[SearchFilters] = None,
        limit: int = 20,
        min_similarity: Optional[float] = None,
    ) -> List[CandidateResult]:
        """
        Run the vector leg.

        Args:
            embedding: Query embedding
            filters: Optional category/price filters
            limit: Maximum number of candidates
            min_similarity: Cosine similarity threshold (defaults to the adapter's)

        Returns:
            Ranked candidates (empty on backend failure)
        """
        outcome = await self.search_with_status(embedding, filters, limit, min_similarity)
        return outcome.results

    async def search_with_status(
        self,
        embedding: Union[Embedding, np.ndarray],
        filters: Optional[SearchFilters] = None,
        limit: int = 20,
        min_similarity: Optional[float] = None,
    ) -> LegOutcome:
        """Run the vector leg and report whether it degraded."""
        filters = filters or SearchFilters()
        threshold = self.min_similarity if min_similarity is None else min_similarity

        if limit <= 0:
            return LegOutcome()

        vector = embedding.vector if isinstance(embedding, Embedding) else embedding

        async def fetch() -> List[ItemHit]:
            hits = await self.backend.search(vector, filters, limit, threshold)
            return [hit for hit in hits if hit.score >= threshold]

        return await self._run(fetch, filters, limit)
