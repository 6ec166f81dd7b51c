"""
Metrics Recorder
Builds one immutable QueryMetrics per search and hands it to the telemetry sinks.
"""

import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..embeddings.base import EmbeddingCost
from ..errors import TelemetryError
from ..retrieval.candidates import CandidateResult
from ..retrieval.fusion import count_overlap

logger = logging.getLogger(__name__)


_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_query_id() -> str:
    """Query id of the form q_<base36 ms timestamp>_<7 random base36 chars>."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_BASE36, k=7))
    return f"q_{timestamp}_{suffix}"


@dataclass(frozen=True)
class QueryMetrics:
    """Telemetry record for one completed search."""

    query_id: str
    query: str
    latency_ms: float
    total_results: int
    keyword_result_count: int
    semantic_result_count: int
    overlap_count: int
    expansion_used: bool
    reranking_applied: bool
    embedding_cost: EmbeddingCost
    embedding_cached: bool
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    keyword_degraded: bool = False
    semantic_degraded: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "query_id": self.query_id,
            "query": self.query,
            "timestamp": self.timestamp.isoformat(),
            "latency_ms": float(self.latency_ms),
            "total_results": self.total_results,
            "keyword_result_count": self.keyword_result_count,
            "semantic_result_count": self.semantic_result_count,
            "overlap_count": self.overlap_count,
            "expansion_used": self.expansion_used,
            "reranking_applied": self.reranking_applied,
            "embedding_cost": self.embedding_cost.to_dict(),
            "embedding_cached": self.embedding_cached,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "keyword_degraded": self.keyword_degraded,
            "semantic_degraded": self.semantic_degraded,
        }


class MetricsRecorder:
    """
    Records per-query telemetry.

    Sink failures are logged and dropped; record() never raises.
    """

    def __init__(self, sinks: Optional[List] = None):
        """
        Initialize recorder.

        Args:
            sinks: Telemetry sinks (objects with an emit(metrics) method)
        """
        self.sinks = list(sinks or [])

    def record(
        self,
        query: str,
        start_time: float,
        total_results: int,
        keyword_results: List[CandidateResult],
        semantic_results: List[CandidateResult],
        expansion_used: bool,
        reranking_applied: bool,
        embedding_cost: EmbeddingCost,
        embedding_cached: bool,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        keyword_degraded: bool = False,
        semantic_degraded: bool = False,
    ) -> QueryMetrics:
        """
        Build a QueryMetrics record and emit it to every sink.

        Args:
            query: Original query text
            start_time: time.perf_counter() value taken when the search started
            total_results: Number of results returned
            keyword_results: Lexical leg candidates
            semantic_results: Vector leg candidates
            expansion_used: Whether query expansion ran
            reranking_applied: Whether personalization changed scores
            embedding_cost: Cost of the query embedding
            embedding_cached: Whether the embedding came from cache
            user_id: Optional user
            session_id: Optional session
            keyword_degraded: Whether the lexical leg failed
            semantic_degraded: Whether the vector leg failed

        Returns:
            The emitted QueryMetrics
        """
        metrics = QueryMetrics(
            query_id=generate_query_id(),
            query=query,
            latency_ms=(time.perf_counter() - start_time) * 1000,
            total_results=total_results,
            keyword_result_count=len(keyword_results),
            semantic_result_count=len(semantic_results),
            overlap_count=count_overlap(keyword_results, semantic_results),
            expansion_used=expansion_used,
            reranking_applied=reranking_applied,
            embedding_cost=embedding_cost,
            embedding_cached=embedding_cached,
            user_id=user_id,
            session_id=session_id,
            keyword_degraded=keyword_degraded,
            semantic_degraded=semantic_degraded,
        )

        for sink in self.sinks:
            try:
                sink.emit(metrics)
            except Exception as e:
                error = TelemetryError(f"Telemetry sink {type(sink).__name__} failed: {e}")
                logger.warning(f"{error}; metrics for {metrics.query_id} dropped")

        return metrics
