"""
Request Timing Middleware
Tracks request latency percentiles and flags slow requests.
"""

import logging
import time
from typing import Callable, Dict, List, Optional
from collections import deque
from threading import Lock
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class LatencyTracker:
    """
    Rolling window of request latencies with percentile statistics.
    """

    def __init__(self, window_size: int = 1000):
        """
        Initialize latency tracker.

        Args:
            window_size: Number of recent requests to track
        """
        self.window_size = window_size
        self.latencies: deque = deque(maxlen=window_size)
        self.slow_requests = 0
        self.lock = Lock()

    def record(self, latency_ms: float, slow: bool = False) -> None:
        """Record a latency measurement."""
        with self.lock:
            self.latencies.append(latency_ms)
            if slow:
                self.slow_requests += 1

    def get_stats(self) -> Dict[str, float]:
        """
        Get latency statistics.

        Returns:
            Dict with count, slow count, p50, p95, p99, mean, min, max
        """
        with self.lock:
            values = sorted(self.latencies)
            slow_requests = self.slow_requests

        if not values:
            return {
                "count": 0,
                "slow_count": slow_requests,
                "p50": 0.0,
                "p95": 0.0,
                "p99": 0.0,
                "mean": 0.0,
                "min": 0.0,
                "max": 0.0,
            }

        return {
            "count": len(values),
            "slow_count": slow_requests,
            "p50": self._percentile(values, 50),
            "p95": self._percentile(values, 95),
            "p99": self._percentile(values, 99),
            "mean": sum(values) / len(values),
            "min": values[0],
            "max": values[-1],
        }

    def reset(self) -> None:
        with self.lock:
            self.latencies.clear()
            self.slow_requests = 0

    @staticmethod
    def _percentile(sorted_values: List[float], percentile: int) -> float:
        index = int((percentile / 100.0) * len(sorted_values))
        return sorted_values[min(index, len(sorted_values) - 1)]


# Global latency tracker
_latency_tracker = LatencyTracker()


def get_latency_tracker() -> LatencyTracker:
    """Get global latency tracker."""
    return _latency_tracker


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Records each request's latency and adds an X-Response-Time header.
    """

    def __init__(
        self,
        app,
        tracker: Optional[LatencyTracker] = None,
        slow_threshold_ms: float = 300.0,
    ):
        """
        Initialize timing middleware.

        Args:
            app: ASGI application
            tracker: Latency tracker (uses global if not provided)
            slow_threshold_ms: Latency above which a request is logged as slow
        """
        super().__init__(app)
        self.tracker = tracker or get_latency_tracker()
        self.slow_threshold_ms = slow_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and track timing."""
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        slow = duration_ms > self.slow_threshold_ms

        self.tracker.record(duration_ms, slow=slow)
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        if slow:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {duration_ms:.2f}ms",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                },
            )

        return response
