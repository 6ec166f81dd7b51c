"""
Query Module
Query normalization and synonym-based expansion.
"""

from .expansion import (
    QueryExpander,
    ExpandedQuery,
    normalize_query,
    tokenize,
    GIFT_SYNONYMS,
    CATEGORY_HINTS,
)

__all__ = [
    "QueryExpander",
    "ExpandedQuery",
    "normalize_query",
    "tokenize",
    "GIFT_SYNONYMS",
    "CATEGORY_HINTS",
]
