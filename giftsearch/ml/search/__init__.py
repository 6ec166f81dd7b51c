"""
Search Service Module
Hybrid search coordinator.
"""

from .search_service import (
    HybridSearchService,
    SearchOptions,
    SearchResponse,
    build_search_service,
)

__all__ = [
    "HybridSearchService",
    "SearchOptions",
    "SearchResponse",
    "build_search_service",
]
