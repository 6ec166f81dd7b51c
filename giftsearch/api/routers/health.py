"""
Health Check Endpoints
Endpoints for health checks and status monitoring.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any
from fastapi import APIRouter, Depends, status

from ..config import get_settings, APISettings
from ..dependencies import get_cache, get_telemetry
from ..middleware.timing import get_latency_tracker
from ...ml.caching import CacheBackend
from ...ml.metrics import InMemoryTelemetrySink

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Basic health check.

    Returns:
        Simple health status
    """
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> Dict[str, str]:
    """
    Liveness probe.

    Returns:
        Liveness status
    """
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/status", status_code=status.HTTP_200_OK)
async def status_check(
    settings: APISettings = Depends(get_settings),
    cache: CacheBackend = Depends(get_cache),
    telemetry: InMemoryTelemetrySink = Depends(get_telemetry),
) -> Dict[str, Any]:
    """
    Detailed status check.

    Checks the cache connection and reports query telemetry against the
    latency target.

    Returns:
        Detailed status information
    """
    status_info = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "components": {},
    }

    # Check cache
    try:
        cache_healthy = await cache.ping()
        status_info["components"]["cache"] = {"status": "healthy" if cache_healthy else "unhealthy"}
        if not cache_healthy:
            status_info["status"] = "degraded"
    except Exception as e:
        logger.error(f"Cache health check failed: {e}")
        status_info["components"]["cache"] = {"status": "unhealthy", "error": str(e)}
        status_info["status"] = "degraded"

    stats = telemetry.get_stats()
    p95 = stats["latency_ms"]["p95"]

    status_info["search"] = {
        "query_count": stats["count"],
        "latency_p95_ms": round(p95, 2),
        "target_p95_ms": settings.target_p95_latency_ms,
        "meets_target": p95 <= settings.target_p95_latency_ms,
        "zero_result_rate": stats["zero_result_rate"],
        "degraded_rate": stats["degraded_rate"],
    }

    return status_info


@router.get("/metrics", status_code=status.HTTP_200_OK)
async def get_metrics(
    telemetry: InMemoryTelemetrySink = Depends(get_telemetry),
) -> Dict[str, Any]:
    """
    Get performance metrics.

    Returns:
        Request latency statistics and the query telemetry summary
    """
    latency = get_latency_tracker().get_stats()

    return {
        "requests": {
            "total": latency["count"],
            "slow": latency["slow_count"],
        },
        "latency": {
            "p50_ms": round(latency["p50"], 2),
            "p95_ms": round(latency["p95"], 2),
            "p99_ms": round(latency["p99"], 2),
            "mean_ms": round(latency["mean"], 2),
        },
        "search": telemetry.get_stats(),
        "slow_queries": telemetry.get_slow_queries(limit=20),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
