"""
Search Leg
Shared timeout and graceful-degradation policy for the lexical and vector legs.
"""

import abc
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from ..errors import BackendDegradedError
from .candidates import CandidateResult, ItemHit, rank_hits
from .filters import SearchFilters

logger = logging.getLogger(__name__)


@dataclass
class LegOutcome:
    """Candidates from one leg, and whether the leg degraded to empty."""

    results: List[CandidateResult] = field(default_factory=list)
    degraded: bool = False
    error: Optional[str] = None
    search_time_ms: float = 0.0


class SearchLeg(abc.ABC):
    """
    One retrieval signal.

    Backend errors and timeouts never leave a leg: they are logged as
    BackendDegradedError and the leg answers with an empty list.
    """

    source: str = "leg"

    def __init__(self, timeout: float):
        """
        Args:
            timeout: Seconds allowed for one backend call
        """
        self.timeout = timeout

    async def _run(
        self,
        call: Callable[[], Awaitable[List[ItemHit]]],
        filters: SearchFilters,
        limit: int,
    ) -> LegOutcome:
        """
        Await a backend call under the leg timeout and rank its hits.

        Args:
            call: Zero-argument callable starting the backend call
            filters: Filters re-checked against every hit
            limit: Maximum number of candidates

        Returns:
            LegOutcome (empty and degraded on any failure)
        """
        start_time = time.perf_counter()

        try:
            hits = await asyncio.wait_for(call(), timeout=self.timeout)
            results = rank_hits(self._postprocess(hits, filters), limit=limit, source=self.source)
        except asyncio.TimeoutError:
            error = BackendDegradedError(
                f"{self.source} backend timed out after {self.timeout}s", leg=self.source
            )
            return self._degraded(error, start_time)
        except Exception as e:
            error = BackendDegradedError(f"{self.source} backend failed: {e}", leg=self.source)
            return self._degraded(error, start_time)

        search_time_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(f"{self.source} leg returned {len(results)} candidates in {search_time_ms:.2f}ms")

        return LegOutcome(results=results, search_time_ms=search_time_ms)

    def _postprocess(self, hits: List[ItemHit], filters: SearchFilters) -> List[ItemHit]:
        """Drop hits that violate the filters before ranking."""
        if filters.is_empty:
            return hits
        return [hit for hit in hits if filters.matches(hit)]

    def _degraded(self, error: BackendDegradedError, start_time: float) -> LegOutcome:
        logger.warning(f"{error}; continuing with empty {self.source} results")
        return LegOutcome(
            results=[],
            degraded=True,
            error=str(error),
            search_time_ms=(time.perf_counter() - start_time) * 1000,
        )
