"""
Pytest configuration and shared fixtures
"""

import pytest

from giftsearch.ml.config import MLConfig, reset_config


@pytest.fixture
def ml_config():
    """Configuration with 4-dimensional embeddings and expansion on."""
    config = MLConfig()
    config.embedding.dimension = 4
    config.embedding.api_key = "test-key"
    return config


@pytest.fixture(autouse=True)
def _reset_global_config():
    yield
    reset_config()
