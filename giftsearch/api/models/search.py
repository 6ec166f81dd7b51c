"""
Search Models
Pydantic models for search endpoint.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field

from ...ml.search import SearchOptions


class SearchRequest(BaseModel):
    """
    Search request model.

    Free-text query with optional filters and user personalization.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "tech gifts for dad",
                "limit": 20,
                "max_price": 100.0,
                "user_id": "user_123",
            }
        }
    )

    query: str = Field(..., min_length=1, max_length=500, description="Search query text")
    limit: int = Field(default=20, ge=1, le=100, description="Maximum number of results to return")

    # Filters
    category: Optional[str] = Field(None, description="Exact category match")
    min_price: Optional[float] = Field(None, ge=0, description="Minimum price")
    max_price: Optional[float] = Field(None, ge=0, description="Maximum price")

    # Fusion
    rrf_k: int = Field(default=60, gt=0, description="Reciprocal Rank Fusion constant")
    min_similarity: float = Field(
        default=0.5, ge=0, le=1, description="Minimum cosine similarity for the semantic leg"
    )

    # Features
    enable_expansion: bool = Field(default=True, description="Expand the query with synonyms")
    enable_reranking: bool = Field(default=True, description="Apply personalized re-ranking")

    # Caller context
    user_id: Optional[str] = Field(None, description="User ID for personalized results")
    session_id: Optional[str] = Field(None, description="Session ID for telemetry")

    def to_options(self) -> SearchOptions:
        """Convert to core search options."""
        return SearchOptions(
            limit=self.limit,
            category=self.category,
            min_price=self.min_price,
            max_price=self.max_price,
            rrf_k=self.rrf_k,
            min_similarity=self.min_similarity,
            enable_expansion=self.enable_expansion,
            enable_reranking=self.enable_reranking,
            user_id=self.user_id,
            session_id=self.session_id,
        )


class FusedResultModel(BaseModel):
    """
    Single fused result.

    Per-source scores are 0.0 and ranks null when the source did not return the item.
    """

    item_id: str = Field(..., description="Item ID")
    title: str = Field(..., description="Item title")
    description: Optional[str] = Field(None, description="Item description")
    price: float = Field(..., description="Item price")
    category: Optional[str] = Field(None, description="Item category")
    image_url: Optional[str] = Field(None, description="Primary image URL")

    keyword_score: float = Field(default=0.0, description="Lexical relevance")
    semantic_score: float = Field(default=0.0, description="Cosine similarity")
    keyword_rank: Optional[int] = Field(None, ge=1, description="Rank in the keyword list")
    semantic_rank: Optional[int] = Field(None, ge=1, description="Rank in the semantic list")

    rrf_score: float = Field(..., gt=0, description="Reciprocal Rank Fusion score")
    final_score: float = Field(..., gt=0, description="Score after personalization")
    personalization_boost: float = Field(default=0.0, ge=0, description="Fractional boost applied")


class ExpandedQueryModel(BaseModel):
    """Query expansion details."""

    original: str
    normalized: str
    variants: List[str] = Field(default_factory=list)
    matched_terms: List[str] = Field(default_factory=list)
    synonyms: List[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """
    Search response model.

    Contains fused results, per-query telemetry and expansion details.
    """

    results: List[FusedResultModel] = Field(..., description="Fused results, best first")
    metrics: Dict[str, Any] = Field(..., description="Per-query telemetry record")
    expanded_query: Optional[ExpandedQueryModel] = Field(
        None, description="Expansion details (null when expansion is disabled)"
    )
