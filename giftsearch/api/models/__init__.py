"""
Pydantic Models
Request/response models for API endpoints.
"""

from .search import ExpandedQueryModel, FusedResultModel, SearchRequest, SearchResponse

__all__ = [
    "ExpandedQueryModel",
    "FusedResultModel",
    "SearchRequest",
    "SearchResponse",
]
