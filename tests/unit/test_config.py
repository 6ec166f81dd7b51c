"""
Unit tests for ranking engine configuration
"""

import pytest

from giftsearch.api.config import APISettings
from giftsearch.ml.config import MLConfig, get_ml_config, reset_config


class TestMLConfig:
    def test_defaults(self):
        config = MLConfig()

        assert config.embedding.model == "text-embedding-3-small"
        assert config.embedding.dimension == 1536
        assert config.embedding.cache_ttl_seconds == 3600
        assert config.retrieval.rrf_k == 60
        assert config.retrieval.min_similarity == 0.5
        assert config.retrieval.candidate_multiplier == 2
        assert config.personalization.boost_ceiling == 0.2
        assert config.timeouts.lexical_seconds == 5.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_MODEL", "text-embedding-3-large")
        monkeypatch.setenv("EMBEDDING_DIMENSION", "3072")
        monkeypatch.setenv("RRF_K", "30")
        monkeypatch.setenv("MIN_SIMILARITY", "0.7")
        monkeypatch.setenv("PERSONALIZATION_CEILING", "0.1")
        monkeypatch.setenv("VECTOR_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("REDIS_PORT", "6380")

        config = MLConfig.from_env()

        assert config.embedding.model == "text-embedding-3-large"
        assert config.embedding.dimension == 3072
        assert config.retrieval.rrf_k == 30
        assert config.retrieval.min_similarity == 0.7
        assert config.personalization.boost_ceiling == 0.1
        assert config.timeouts.vector_seconds == 2.5
        assert config.storage.redis_port == 6380

    def test_validate_rejects_bad_values(self):
        config = MLConfig()
        config.retrieval.rrf_k = 0

        with pytest.raises(AssertionError):
            config.validate()

        config = MLConfig()
        config.retrieval.min_similarity = 1.5

        with pytest.raises(AssertionError):
            config.validate()

    def test_price_per_million(self):
        config = MLConfig()

        assert config.price_per_million() == 0.02
        assert config.price_per_million("text-embedding-3-large") == 0.13
        assert config.price_per_million("unknown-model") == 0.02

    def test_global_config_singleton(self, monkeypatch):
        reset_config()
        monkeypatch.setenv("RRF_K", "42")

        first = get_ml_config()
        second = get_ml_config()

        assert first is second
        assert first.retrieval.rrf_k == 42

        reset_config()
        monkeypatch.delenv("RRF_K")

        assert get_ml_config().retrieval.rrf_k == 60

    def test_vector_backend_from_env(self, monkeypatch):
        monkeypatch.setenv("VECTOR_BACKEND", "FAISS")

        config = MLConfig.from_env()
        config.validate()

        assert config.retrieval.vector_backend == "faiss"

    def test_validate_rejects_unknown_vector_backend(self):
        config = MLConfig()
        config.retrieval.vector_backend = "annoy"

        with pytest.raises(AssertionError):
            config.validate()


class TestAPISettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("API_PORT", "9000")
        monkeypatch.setenv("API_ENABLE_EXPANSION", "false")
        monkeypatch.setenv("API_CORS_ORIGINS", '["https://gifts.example.com"]')

        settings = APISettings()

        assert settings.port == 9000
        assert settings.enable_expansion is False
        assert settings.cors_origins == ["https://gifts.example.com"]

    def test_apply_to_leaves_base_config_untouched(self):
        base = MLConfig()
        settings = APISettings(enable_personalization=False, enable_expansion=False)

        applied = settings.apply_to(base)

        assert applied is not base
        assert applied.personalization.enable_reranking is False
        assert applied.retrieval.enable_expansion is False
        assert base.personalization.enable_reranking is True
        assert base.retrieval.enable_expansion is True
