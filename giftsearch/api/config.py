"""
API Configuration
Settings for the HTTP surface of the search service.

Ranking behaviour (timeouts, fusion, storage) is configured through MLConfig;
these settings only cover the server and the per-deployment feature flags.
"""

import copy
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .. import __version__
from ..ml.config import MLConfig


class APISettings(BaseSettings):
    """
    API configuration settings.

    Loaded from API_-prefixed environment variables (API_PORT, API_LOG_LEVEL,
    API_ENABLE_PERSONALIZATION, ...). List values are given as JSON.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Info
    app_name: str = "GiftSearch API"
    version: str = __version__
    description: str = "Hybrid keyword + semantic gift search"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Database pool (the URL comes from MLConfig.storage)
    db_pool_size: int = 20
    db_max_overflow: int = 10

    # Logging and latency
    log_level: str = "INFO"
    slow_request_threshold_ms: float = 300.0
    target_p95_latency_ms: float = 150.0

    # Feature flags
    enable_personalization: bool = True
    enable_expansion: bool = True

    def apply_to(self, config: MLConfig) -> MLConfig:
        """
        Layer the API feature flags onto a copy of the ranking configuration.

        Args:
            config: Base configuration (left unchanged)

        Returns:
            New MLConfig with the flags applied
        """
        config = copy.deepcopy(config)
        config.personalization.enable_reranking = self.enable_personalization
        config.retrieval.enable_expansion = self.enable_expansion
        return config


# Global settings instance
_settings: Optional[APISettings] = None


def get_settings() -> APISettings:
    """Get global API settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = APISettings()
    return _settings
