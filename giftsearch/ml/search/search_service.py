"""
Search Service
Hybrid search coordinator integrating expansion, embeddings, both retrieval
legs, rank fusion, personalization and telemetry.

Pipeline:
validate → expand → embed → (keyword ‖ semantic) → fuse → re-rank → truncate → record
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..caching import CacheBackend, EmbeddingCache, RedisCache
from ..config import MLConfig, get_ml_config
from ..embeddings import EmbeddingProvider, OpenAIEmbeddingProvider
from ..errors import ValidationError
from ..metrics import InMemoryTelemetrySink, LoggingTelemetrySink, MetricsRecorder, QueryMetrics
from ..query import ExpandedQuery, QueryExpander, normalize_query
from ..retrieval import (
    CachedPreferenceStore,
    FAISSVectorBackend,
    FusedResult,
    ItemEmbeddingStore,
    KeywordSearch,
    LexicalBackend,
    PersonalizationReranker,
    PgVectorBackend,
    PostgresFullTextBackend,
    PreferenceStore,
    ReciprocalRankFusion,
    SearchFilters,
    SemanticSearch,
    SqlItemEmbeddingStore,
    SqlPreferenceStore,
    VectorBackend,
)

logger = logging.getLogger(__name__)


@dataclass
class SearchOptions:
    """
    Per-request search options.

    Filters are passed through to both legs unchanged.
    """

    limit: int = 20

    # Filters
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    # Fusion
    rrf_k: int = 60
    min_similarity: float = 0.5

    # Features
    enable_expansion: bool = True
    enable_reranking: bool = True

    # Caller context
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def filters(self) -> SearchFilters:
        return SearchFilters(
            category=self.category, min_price=self.min_price, max_price=self.max_price
        )

    def validate(self, query: Optional[str], max_limit: int = 100, max_query_length: int = 500):
        """
        Reject malformed input before any backend is called.

        Args:
            query: Raw query text
            max_limit: Largest accepted limit
            max_query_length: Longest accepted query

        Raises:
            ValidationError: On the first invalid field
        """
        if query is None or not normalize_query(query):
            raise ValidationError("Query must not be empty", field="query")
        if len(query) > max_query_length:
            raise ValidationError(
                f"Query must be at most {max_query_length} characters", field="query"
            )
        if not isinstance(self.limit, int) or self.limit < 1 or self.limit > max_limit:
            raise ValidationError(f"Limit must be between 1 and {max_limit}", field="limit")
        if self.rrf_k is None or self.rrf_k <= 0:
            raise ValidationError("RRF k must be positive", field="rrf_k")
        if self.min_similarity is None or not 0.0 <= self.min_similarity <= 1.0:
            raise ValidationError("Minimum similarity must be in [0, 1]", field="min_similarity")
        if self.min_price is not None and self.min_price < 0:
            raise ValidationError("Minimum price must not be negative", field="min_price")
        if self.max_price is not None and self.max_price < 0:
            raise ValidationError("Maximum price must not be negative", field="max_price")
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValidationError(
                "Minimum price must not exceed maximum price", field="min_price"
            )


@dataclass
class SearchResponse:
    """
    Search response with results and telemetry.
    """

    results: List[FusedResult]
    metrics: QueryMetrics
    expanded_query: Optional[ExpandedQuery] = None

    # Debugging info
    debug_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "results": [r.to_dict() for r in self.results],
            "metrics": self.metrics.to_dict(),
            "expanded_query": self.expanded_query.to_dict() if self.expanded_query else None,
        }


class HybridSearchService:
    """
    Hybrid search coordinator.

    The only errors a caller ever sees are ValidationError (bad input) and
    ExternalServiceError (embedding provider). Retrieval legs, personalization
    and telemetry degrade on their own.
    """

    def __init__(
        self,
        embedding_cache: EmbeddingCache,
        keyword_search: KeywordSearch,
        semantic_search: SemanticSearch,
        fusion: Optional[ReciprocalRankFusion] = None,
        reranker: Optional[PersonalizationReranker] = None,
        recorder: Optional[MetricsRecorder] = None,
        expander: Optional[QueryExpander] = None,
        config: Optional[MLConfig] = None,
    ):
        """
        Initialize search service.

        Args:
            embedding_cache: Cache-aware query embedding client
            keyword_search: Lexical leg
            semantic_search: Vector leg
            fusion: Rank fusion (k from config if not provided)
            reranker: Personalization re-ranker (personalization disabled if None)
            recorder: Metrics recorder (no sinks if not provided)
            expander: Query expander
            config: Configuration
        """
        self.config = config or get_ml_config()

        self.embedding_cache = embedding_cache
        self.keyword_search = keyword_search
        self.semantic_search = semantic_search
        self.fusion = fusion or ReciprocalRankFusion(k=self.config.retrieval.rrf_k)
        self.reranker = reranker
        self.recorder = recorder or MetricsRecorder()
        self.expander = expander or QueryExpander(
            max_synonym_variants=self.config.retrieval.max_synonym_variants
        )

        logger.info("Hybrid search service initialized")

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> SearchResponse:
        """
        Execute a hybrid search.

        Args:
            query: Free-text query
            options: Search options (defaults if not provided)

        Returns:
            SearchResponse

        Raises:
            ValidationError: If query or options are invalid
            ExternalServiceError: If the query embedding cannot be obtained
        """
        start_time = time.perf_counter()
        options = options or SearchOptions()
        retrieval = self.config.retrieval

        options.validate(
            query, max_limit=retrieval.max_limit, max_query_length=retrieval.max_query_length
        )

        normalized = normalize_query(query)
        filters = options.filters

        logger.info(
            f"Search request: query='{normalized}', limit={options.limit}, "
            f"user={options.user_id}, filters={filters.to_dict()}"
        )

        # Expansion
        expanded = None
        lexical_queries = [normalized]
        if options.enable_expansion and retrieval.enable_expansion:
            expanded = self.expander.expand(query)
            lexical_queries = self.expander.search_variants(
                expanded, max_variants=retrieval.max_search_variants
            )

        # Embedding must succeed before fan-out
        lookup = await self.embedding_cache.embed(normalized)

        # Fan-out; each leg degrades to [] on its own
        candidate_limit = options.limit * retrieval.candidate_multiplier
        keyword_outcome, semantic_outcome = await asyncio.gather(
            self.keyword_search.search_with_status(lexical_queries, filters, candidate_limit),
            self.semantic_search.search_with_status(
                lookup.embedding, filters, candidate_limit, options.min_similarity
            ),
        )

        fused = self.fusion.fuse(
            keyword_outcome.results, semantic_outcome.results, k=options.rrf_k
        )

        reranking_applied = False
        if (
            options.enable_reranking
            and options.user_id
            and self.reranker is not None
            and self.config.personalization.enable_reranking
            and fused
        ):
            outcome = await self.reranker.rerank(fused, options.user_id)
            fused = outcome.results
            reranking_applied = outcome.applied

        results = fused[: options.limit]

        metrics = self.recorder.record(
            query=query,
            start_time=start_time,
            total_results=len(results),
            keyword_results=keyword_outcome.results,
            semantic_results=semantic_outcome.results,
            expansion_used=expanded is not None,
            reranking_applied=reranking_applied,
            embedding_cost=lookup.cost,
            embedding_cached=lookup.cached,
            user_id=options.user_id,
            session_id=options.session_id,
            keyword_degraded=keyword_outcome.degraded,
            semantic_degraded=semantic_outcome.degraded,
        )

        logger.info(
            f"Search completed: {len(results)} results in {metrics.latency_ms:.2f}ms "
            f"(query_id={metrics.query_id})"
        )

        return SearchResponse(
            results=results,
            metrics=metrics,
            expanded_query=expanded,
            debug_info={
                "lexical_queries": lexical_queries,
                "keyword_search_time_ms": keyword_outcome.search_time_ms,
                "semantic_search_time_ms": semantic_outcome.search_time_ms,
                "keyword_error": keyword_outcome.error,
                "semantic_error": semantic_outcome.error,
            },
        )


def build_search_service(
    config: Optional[MLConfig] = None,
    cache: Optional[CacheBackend] = None,
    provider: Optional[EmbeddingProvider] = None,
    lexical_backend: Optional[LexicalBackend] = None,
    vector_backend: Optional[VectorBackend] = None,
    preference_store: Optional[PreferenceStore] = None,
    item_store: Optional[ItemEmbeddingStore] = None,
    sinks: Optional[List] = None,
    session_factory: Optional[Callable] = None,
) -> HybridSearchService:
    """
    Wire a search service, building default collaborators for anything not provided.

    Defaults: Redis cache, OpenAI embeddings, Postgres full-text and pgvector
    backends (FAISS over the stored embeddings when configured), SQL
    preference/item stores and logging + in-memory telemetry.

    Args:
        config: Configuration
        cache: Key/value cache
        provider: Embedding provider
        lexical_backend: Full-text backend
        vector_backend: Vector backend
        preference_store: User preference store
        item_store: Item embedding store
        sinks: Telemetry sinks
        session_factory: SQLAlchemy session factory for the SQL defaults

    Returns:
        HybridSearchService
    """
    config = config or get_ml_config()

    needs_db = (
        lexical_backend is None
        or vector_backend is None
        or preference_store is None
        or item_store is None
    )
    if session_factory is None and needs_db:
        from ...db import create_session_factory

        session_factory = create_session_factory(config.storage.database_url)

    cache = cache or RedisCache(config)
    provider = provider or OpenAIEmbeddingProvider(config)
    lexical_backend = lexical_backend or PostgresFullTextBackend(session_factory)
    if vector_backend is None:
        if config.retrieval.vector_backend == "faiss":
            vector_backend = FAISSVectorBackend.from_database(
                session_factory,
                dimension=config.embedding.dimension,
                overfetch=config.retrieval.faiss_filter_overfetch,
            )
        else:
            vector_backend = PgVectorBackend(session_factory)

    if preference_store is None:
        preference_store = CachedPreferenceStore(
            SqlPreferenceStore(session_factory),
            cache,
            ttl=config.personalization.preference_cache_ttl_seconds,
            prefix=config.personalization.preference_cache_prefix,
        )
    item_store = item_store or SqlItemEmbeddingStore(session_factory)

    if sinks is None:
        sinks = [InMemoryTelemetrySink(
            max_history=config.telemetry.history_size,
            slow_threshold_ms=config.telemetry.slow_query_threshold_ms,
        )]
        if config.telemetry.enable_logging_sink:
            sinks.append(LoggingTelemetrySink())

    timeouts = config.timeouts

    return HybridSearchService(
        embedding_cache=EmbeddingCache(provider, cache, config),
        keyword_search=KeywordSearch(lexical_backend, timeout=timeouts.lexical_seconds),
        semantic_search=SemanticSearch(
            vector_backend,
            timeout=timeouts.vector_seconds,
            min_similarity=config.retrieval.min_similarity,
        ),
        fusion=ReciprocalRankFusion(k=config.retrieval.rrf_k),
        reranker=PersonalizationReranker(
            preference_store,
            item_store,
            ceiling=config.personalization.boost_ceiling,
            timeout=timeouts.personalization_seconds,
        ),
        recorder=MetricsRecorder(sinks),
        expander=QueryExpander(max_synonym_variants=config.retrieval.max_synonym_variants),
        config=config,
    )
