"""
Retrieval Module
Lexical and vector search legs, rank fusion and personalization.
"""

from .candidates import KEYWORD_SOURCE, SEMANTIC_SOURCE, CandidateResult, ItemHit, rank_hits
from .filters import FilterOperator, ItemFilter, SearchFilters
from .search_leg import LegOutcome, SearchLeg
from .keyword_search import KeywordSearch, LexicalBackend, PostgresFullTextBackend
from .similarity_search import (
    FAISSVectorBackend,
    PgVectorBackend,
    SemanticSearch,
    VectorBackend,
)
from .fusion import FusedResult, ReciprocalRankFusion, count_overlap, sort_results
from .personalization import (
    CachedPreferenceStore,
    ItemEmbeddingStore,
    PersonalizationReranker,
    PreferenceStore,
    RerankOutcome,
    SqlItemEmbeddingStore,
    SqlPreferenceStore,
    cosine_similarity,
    parse_vector,
)

__all__ = [
    "KEYWORD_SOURCE",
    "SEMANTIC_SOURCE",
    "CandidateResult",
    "ItemHit",
    "rank_hits",
    "FilterOperator",
    "ItemFilter",
    "SearchFilters",
    "LegOutcome",
    "SearchLeg",
    "KeywordSearch",
    "LexicalBackend",
    "PostgresFullTextBackend",
    "FAISSVectorBackend",
    "PgVectorBackend",
    "SemanticSearch",
    "VectorBackend",
    "FusedResult",
    "ReciprocalRankFusion",
    "count_overlap",
    "sort_results",
    "CachedPreferenceStore",
    "ItemEmbeddingStore",
    "PersonalizationReranker",
    "PreferenceStore",
    "RerankOutcome",
    "SqlItemEmbeddingStore",
    "SqlPreferenceStore",
    "cosine_similarity",
    "parse_vector",
]
