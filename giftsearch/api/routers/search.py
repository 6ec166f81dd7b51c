"""
Search Endpoint
POST /api/v1/search - Hybrid keyword + semantic search with personalization.
"""

import logging
from fastapi import APIRouter, Depends, Request, status

from ..dependencies import get_search_service
from ..models.search import SearchRequest, SearchResponse
from ...ml.search import HybridSearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["search"])


@router.post("/search", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def search(
    body: SearchRequest,
    request: Request,
    search_service: HybridSearchService = Depends(get_search_service),
) -> SearchResponse:
    """
    Search the catalog with a free-text query.

    Workflow:
    1. Expand the query with gift-domain synonyms
    2. Embed the query (cached)
    3. Run keyword and semantic search concurrently
    4. Fuse both lists with Reciprocal Rank Fusion
    5. Re-rank with the user's preference vector (if any)

    Errors:
        400 for invalid search input, 503 when the embedding provider is
        unavailable, 422 for malformed request bodies.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.info(
        f"Search request: query='{body.query}', user_id={body.user_id}",
        extra={"request_id": request_id},
    )

    response = await search_service.search(body.query, body.to_options())

    return SearchResponse(**response.to_dict())
