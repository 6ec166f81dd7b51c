"""
Keyword Search
Lexical leg: ranked full-text search over the item catalog.
"""

import abc
import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...db.models import Product
from .candidates import KEYWORD_SOURCE, CandidateResult, ItemHit
from .filters import SearchFilters
from .search_leg import LegOutcome, SearchLeg

logger = logging.getLogger(__name__)


class LexicalBackend(abc.ABC):
    """Full-text backend returning hits ordered by native relevance."""

    @abc.abstractmethod
    async def search(
        self, queries: List[str], filters: SearchFilters, limit: int
    ) -> List[ItemHit]: ...


class PostgresFullTextBackend(LexicalBackend):
    """
    Postgres full-text search (ts_rank over title + description).

    The primary query and any expansion variants are OR-ed into one
    tsquery. SQLAlchemy sessions are synchronous, so each query runs in a
    worker thread.
    """

    def __init__(self, session_factory: Callable[[], Session], language: str = "english"):
        """
        Initialize full-text backend.

        Args:
            session_factory: Factory returning SQLAlchemy sessions
            language: Postgres text search configuration
        """
        self.session_factory = session_factory
        self.language = language

        logger.info("Postgres full-text backend initialized")

    async def search(self, queries: List[str], filters: SearchFilters, limit: int) -> List[ItemHit]:
        return await asyncio.to_thread(self._search_sync, queries, filters, limit)

    def _search_sync(self, queries: List[str], filters: SearchFilters, limit: int) -> List[ItemHit]:
        terms = [q for q in queries if q and q.strip()]
        if not terms:
            return []

        document = func.to_tsvector(
            self.language,
            func.coalesce(Product.title, "") + " " + func.coalesce(Product.description, ""),
        )

        ts_query = func.plainto_tsquery(self.language, terms[0])
        for term in terms[1:]:
            ts_query = ts_query.op("||")(func.plainto_tsquery(self.language, term))

        relevance = func.ts_rank(document, ts_query).label("relevance")

        session = self.session_factory()
        try:
            query = session.query(
                Product.id,
                Product.title,
                Product.description,
                Product.price,
                Product.category,
                Product.image_url,
                relevance,
            ).filter(document.op("@@")(ts_query))

            query = filters.apply(query, Product)
            rows = query.order_by(relevance.desc(), Product.id).limit(limit).all()
        finally:
            session.close()

        logger.debug(f"Full-text query over {len(terms)} terms matched {len(rows)} items")

        return [
            ItemHit(
                item_id=str(row.id),
                title=row.title,
                description=row.description,
                price=float(row.price or 0.0),
                category=row.category,
                image_url=row.image_url,
                score=float(row.relevance or 0.0),
            )
            for row in rows
        ]


class KeywordSearch(SearchLeg):
    """
    Lexical leg adapter.

    Ranks backend hits by position (1-based); any backend error or timeout
    degrades to an empty list.
    """

    source = KEYWORD_SOURCE

    def __init__(self, backend: LexicalBackend, timeout: float = 5.0):
        """
        Initialize keyword search.

        Args:
            backend: Lexical backend
            timeout: Seconds allowed for one backend call
        """
        super().__init__(timeout=timeout)
        self.backend = backend

        logger.info("Keyword search initialized")

    async def search(
        self, queries: List[str], filters: Optional[SearchFilters] = None, limit: int = 20
    ) -> List[CandidateResult]:
        """
        Run the lexical leg.

        Args:
            queries: Primary query first, then expansion variants
            filters: Optional category/price filters
            limit: Maximum number of candidates

        Returns:
            Ranked candidates (empty on backend failure)
        """
        outcome = await self.search_with_status(queries, filters, limit)
        return outcome.results

    async def search_with_status(
        self, queries: List[str], filters: Optional[SearchFilters] = None, limit: int = 20
    ) -> LegOutcome:
        """Run the lexical leg and report whether it degraded."""
        filters = filters or SearchFilters()

        if not queries or limit <= 0:
            return LegOutcome()

        return await self._run(lambda: self.backend.search(queries, filters, limit), filters, limit)
