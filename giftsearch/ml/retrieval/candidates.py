"""
Retrieval Candidates
Raw backend hits and positionally ranked per-leg candidates.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


KEYWORD_SOURCE = "keyword"
SEMANTIC_SOURCE = "semantic"


@dataclass
class ItemHit:
    """
    One row returned by a retrieval backend.

    score is the backend's native relevance figure (ts_rank for lexical,
    cosine similarity for vector).
    """

    item_id: str
    title: str = ""
    description: Optional[str] = None
    price: float = 0.0
    category: Optional[str] = None
    image_url: Optional[str] = None
    score: float = 0.0


@dataclass
class CandidateResult:
    """
    Single retrieval hit from one source with its source-local rank (1-based).
    """

    item_id: str
    title: str
    description: Optional[str]
    price: float
    category: Optional[str]
    image_url: Optional[str]
    score: float
    rank: int
    source: str

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "item_id": self.item_id,
            "title": self.title,
            "description": self.description,
            "price": float(self.price),
            "category": self.category,
            "image_url": self.image_url,
            "score": float(self.score),
            "rank": self.rank,
            "source": self.source,
        }


def rank_hits(hits: Iterable[ItemHit], limit: int, source: str) -> List[CandidateResult]:
    """
    Turn backend hits into a ranked candidate list.

    Hits are ordered by score descending (stable, so the backend's order
    breaks ties), duplicate item ids keep their first occurrence, the list
    is cut to limit and ranks are assigned by position starting at 1.

    Args:
        hits: Backend hits
        limit: Maximum number of candidates
        source: Source name stored on each candidate

    Returns:
        Ranked candidates
    """
    ordered = sorted(hits, key=lambda h: h.score, reverse=True)

    candidates: List[CandidateResult] = []
    seen = set()

    for hit in ordered:
        if len(candidates) >= limit:
            break
        if hit.item_id in seen:
            continue
        seen.add(hit.item_id)

        candidates.append(
            CandidateResult(
                item_id=hit.item_id,
                title=hit.title or "",
                description=hit.description,
                price=float(hit.price or 0.0),
                category=hit.category,
                image_url=hit.image_url,
                score=float(hit.score),
                rank=len(candidates) + 1,
                source=source,
            )
        )

    return candidates
