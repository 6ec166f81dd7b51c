"""
Ranking Engine Errors
Exception taxonomy shared by the search components.

Only ExternalServiceError and ValidationError ever reach the caller of a
search; the others are recovered inside the component that raised them.
"""

from typing import Optional


class SearchEngineError(Exception):
    """Base exception for ranking engine errors."""

    pass


class ExternalServiceError(SearchEngineError):
    """Embedding provider unreachable, rate-limited, timed out or returned invalid data."""

    def __init__(self, message: str, service: str = "embedding_provider"):
        self.service = service
        super().__init__(message)


class BackendDegradedError(SearchEngineError):
    """Lexical or vector backend failure; the leg is treated as empty."""

    def __init__(self, message: str, leg: str):
        self.leg = leg
        super().__init__(message)


class PersonalizationError(SearchEngineError):
    """Preference lookup or similarity computation failure."""

    pass


class TelemetryError(SearchEngineError):
    """Metrics sink unavailable."""

    pass


class ValidationError(SearchEngineError):
    """Malformed search input, raised before any backend call."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)
