"""
Dependency Injection
FastAPI dependencies for database, cache, telemetry and the search service.
"""

import logging
from typing import Optional

from .config import get_settings
from ..db.session import create_session_factory
from ..ml.caching import CacheBackend, RedisCache
from ..ml.config import get_ml_config
from ..ml.metrics import InMemoryTelemetrySink, LoggingTelemetrySink
from ..ml.search import HybridSearchService, build_search_service

logger = logging.getLogger(__name__)

# Process-wide singletons
_SessionLocal = None
_cache: Optional[CacheBackend] = None
_telemetry: Optional[InMemoryTelemetrySink] = None
_search_service: Optional[HybridSearchService] = None


def get_session_factory():
    """Get database session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        settings = get_settings()
        _SessionLocal = create_session_factory(
            get_ml_config().storage.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
        logger.info("Database session factory created")
    return _SessionLocal


def get_cache() -> CacheBackend:
    """Get shared cache client (singleton)."""
    global _cache
    if _cache is None:
        _cache = RedisCache(get_ml_config())
    return _cache


def get_telemetry() -> InMemoryTelemetrySink:
    """Get in-memory telemetry sink (singleton)."""
    global _telemetry
    if _telemetry is None:
        config = get_ml_config()
        _telemetry = InMemoryTelemetrySink(
            max_history=config.telemetry.history_size,
            slow_threshold_ms=config.telemetry.slow_query_threshold_ms,
        )
    return _telemetry


def get_search_service() -> HybridSearchService:
    """
    Get search service instance.

    Use as FastAPI dependency:
        @router.post("/search")
        async def search(service: HybridSearchService = Depends(get_search_service)):
            ...
    """
    global _search_service
    if _search_service is None:
        config = get_settings().apply_to(get_ml_config())

        sinks = [get_telemetry()]
        if config.telemetry.enable_logging_sink:
            sinks.append(LoggingTelemetrySink())

        _search_service = build_search_service(
            config=config,
            cache=get_cache(),
            sinks=sinks,
            session_factory=get_session_factory(),
        )
        logger.info("Search service created")
    return _search_service


def reset_dependencies() -> None:
    """Drop cached singletons (useful for testing)."""
    global _SessionLocal, _cache, _telemetry, _search_service
    _SessionLocal = None
    _cache = None
    _telemetry = None
    _search_service = None
