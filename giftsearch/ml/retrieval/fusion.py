"""
Rank Fusion
Reciprocal Rank Fusion (RRF) of the keyword and semantic candidate lists.

Fusion Formula:
rrf_score(item) = Σ over sources containing item of 1 / (k + rank)

Scores from the two legs are on unrelated scales, so only ranks are fused.
Results are ordered by final_score desc, then rrf_score desc, then item_id asc.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..errors import ValidationError
from .candidates import KEYWORD_SOURCE, SEMANTIC_SOURCE, CandidateResult

logger = logging.getLogger(__name__)


DEFAULT_RRF_K = 60


@dataclass
class FusedResult:
    """
    One item after fusion, with per-source provenance.

    Scores default to 0.0 and ranks to None for a source that did not return
    the item. final_score equals rrf_score until personalization boosts it.
    """

    item_id: str
    title: str
    description: Optional[str]
    price: float
    category: Optional[str]
    image_url: Optional[str]

    keyword_score: float = 0.0
    semantic_score: float = 0.0
    keyword_rank: Optional[int] = None
    semantic_rank: Optional[int] = None

    rrf_score: float = 0.0
    final_score: float = 0.0
    personalization_boost: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "item_id": self.item_id,
            "title": self.title,
            "description": self.description,
            "price": float(self.price),
            "category": self.category,
            "image_url": self.image_url,
            "keyword_score": float(self.keyword_score),
            "semantic_score": float(self.semantic_score),
            "keyword_rank": self.keyword_rank,
            "semantic_rank": self.semantic_rank,
            "rrf_score": float(self.rrf_score),
            "final_score": float(self.final_score),
            "personalization_boost": float(self.personalization_boost),
        }


def sort_key(result: FusedResult):
    return (-result.final_score, -result.rrf_score, result.item_id)


def sort_results(results: Iterable[FusedResult]) -> List[FusedResult]:
    """
    Order results canonically.

    Args:
        results: Fused results

    Returns:
        New list sorted by final_score desc, rrf_score desc, item_id asc
    """
    return sorted(results, key=sort_key)


def count_overlap(a: Iterable[CandidateResult], b: Iterable[CandidateResult]) -> int:
    """Number of distinct items present in both lists."""
    return len({r.item_id for r in a} & {r.item_id for r in b})


class ReciprocalRankFusion:
    """
    Merges ranked candidate lists with Reciprocal Rank Fusion.

    Pure and deterministic: the same inputs always produce the same order.
    """

    def __init__(self, k: int = DEFAULT_RRF_K):
        """
        Initialize fusion.

        Args:
            k: RRF constant (must be > 0)
        """
        self._check_k(k)
        self.k = k

    def fuse(
        self,
        keyword_results: List[CandidateResult],
        semantic_results: List[CandidateResult],
        k: Optional[int] = None,
    ) -> List[FusedResult]:
        """
        Fuse keyword and semantic candidates.

        Args:
            keyword_results: Lexical leg candidates (ranked 1..n)
            semantic_results: Vector leg candidates (ranked 1..n)
            k: Optional per-call RRF constant override

        Returns:
            Fused results in canonical order

        Raises:
            ValidationError: If k <= 0
        """
        k = self.k if k is None else k
        self._check_k(k)

        fused: Dict[str, FusedResult] = {}

        for source, candidates in (
            (KEYWORD_SOURCE, keyword_results),
            (SEMANTIC_SOURCE, semantic_results),
        ):
            for candidate in candidates:
                result = fused.get(candidate.item_id)
                if result is None:
                    result = FusedResult(
                        item_id=candidate.item_id,
                        title=candidate.title,
                        description=candidate.description,
                        price=candidate.price,
                        category=candidate.category,
                        image_url=candidate.image_url,
                    )
                    fused[candidate.item_id] = result
                else:
                    self._fill_missing(result, candidate)

                # Source follows the input list
                if source == KEYWORD_SOURCE:
                    result.keyword_score = candidate.score
                    result.keyword_rank = candidate.rank
                else:
                    result.semantic_score = candidate.score
                    result.semantic_rank = candidate.rank

                result.rrf_score += 1.0 / (k + candidate.rank)

        for result in fused.values():
            result.final_score = result.rrf_score

        ordered = sort_results(fused.values())

        logger.debug(
            f"Fused {len(keyword_results)} keyword + {len(semantic_results)} semantic "
            f"candidates into {len(ordered)} results (k={k})"
        )

        return ordered

    @staticmethod
    def _fill_missing(result: FusedResult, candidate: CandidateResult) -> None:
        # Display fields come from the first source; gaps are filled from the other
        if not result.title:
            result.title = candidate.title
        if result.description is None:
            result.description = candidate.description
        if not result.price:
            result.price = candidate.price
        if result.category is None:
            result.category = candidate.category
        if result.image_url is None:
            result.image_url = candidate.image_url

    @staticmethod
    def _check_k(k) -> None:
        if k is None or k <= 0:
            raise ValidationError(f"RRF k must be positive, got {k}", field="rrf_k")
