"""
Telemetry Sinks
Destinations for per-query metrics records.
"""

import abc
import logging
import threading
from collections import deque
from typing import Any, Dict, List

from .recorder import QueryMetrics

logger = logging.getLogger(__name__)


class TelemetrySink(abc.ABC):
    """Receives one QueryMetrics per completed search."""

    @abc.abstractmethod
    def emit(self, metrics: QueryMetrics) -> None: ...


class LoggingTelemetrySink(TelemetrySink):
    """Writes one structured log line per query."""

    def __init__(self, logger_name: str = "giftsearch.telemetry", level: int = logging.INFO):
        self.logger = logging.getLogger(logger_name)
        self.level = level

    def emit(self, metrics: QueryMetrics) -> None:
        self.logger.log(
            self.level,
            f"Search {metrics.query_id}: {metrics.total_results} results in "
            f"{metrics.latency_ms:.2f}ms (keyword={metrics.keyword_result_count}, "
            f"semantic={metrics.semantic_result_count}, overlap={metrics.overlap_count})",
            extra={"query_metrics": metrics.to_dict()},
        )


class InMemoryTelemetrySink(TelemetrySink):
    """
    Bounded in-process history of query metrics.

    Thread-safe; keeps the most recent max_history records and the
    queries slower than slow_threshold_ms.
    """

    def __init__(self, max_history: int = 10000, slow_threshold_ms: float = 300.0):
        """
        Initialize in-memory sink.

        Args:
            max_history: Maximum number of records to keep
            slow_threshold_ms: Latency above which a query is recorded as slow
        """
        self.max_history = max_history
        self.slow_threshold_ms = slow_threshold_ms

        self.history: deque = deque(maxlen=max_history)
        self.slow_queries: deque = deque(maxlen=1000)
        self._lock = threading.Lock()

        logger.info("In-memory telemetry sink initialized")

    def emit(self, metrics: QueryMetrics) -> None:
        with self._lock:
            self.history.append(metrics)
            if metrics.latency_ms > self.slow_threshold_ms:
                self.slow_queries.append(metrics)

        if metrics.latency_ms > self.slow_threshold_ms:
            logger.warning(
                f"Slow search: '{metrics.query}' took {metrics.latency_ms:.2f}ms "
                f"(query_id={metrics.query_id})"
            )

    def get_history(self, limit: int = 100) -> List[QueryMetrics]:
        """Most recent records, newest first."""
        with self._lock:
            records = list(self.history)
        return list(reversed(records))[:limit]

    def get_slow_queries(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Slow queries, newest first."""
        with self._lock:
            records = list(self.slow_queries)
        return [m.to_dict() for m in reversed(records)][:limit]

    def get_stats(self) -> Dict[str, Any]:
        """
        Aggregate statistics over the retained history.

        Returns:
            Stats dict with count, latency percentiles, zero-result rate,
            cache hit rate, average overlap and total embedding cost
        """
        with self._lock:
            records = list(self.history)

        count = len(records)
        if count == 0:
            return {
                "count": 0,
                "latency_ms": {"p50": 0.0, "p95": 0.0, "p99": 0.0, "mean": 0.0},
                "zero_result_rate": 0.0,
                "cache_hit_rate": 0.0,
                "avg_overlap": 0.0,
                "reranking_rate": 0.0,
                "degraded_rate": 0.0,
                "total_embedding_cost": 0.0,
                "slow_query_count": 0,
            }

        latencies = sorted(m.latency_ms for m in records)

        return {
            "count": count,
            "latency_ms": {
                "p50": latencies[int(count * 0.5)],
                "p95": latencies[min(count - 1, int(count * 0.95))],
                "p99": latencies[min(count - 1, int(count * 0.99))],
                "mean": sum(latencies) / count,
            },
            "zero_result_rate": sum(1 for m in records if m.total_results == 0) / count,
            "cache_hit_rate": sum(1 for m in records if m.embedding_cached) / count,
            "avg_overlap": sum(m.overlap_count for m in records) / count,
            "reranking_rate": sum(1 for m in records if m.reranking_applied) / count,
            "degraded_rate": sum(
                1 for m in records if m.keyword_degraded or m.semantic_degraded
            ) / count,
            "total_embedding_cost": sum(m.embedding_cost.estimated_cost for m in records),
            "slow_query_count": sum(1 for m in records if m.latency_ms > self.slow_threshold_ms),
        }

    def reset(self) -> None:
        with self._lock:
            self.history.clear()
            self.slow_queries.clear()
