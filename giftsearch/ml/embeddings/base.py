"""
Embedding Provider Interface
Contract for turning text into fixed-dimension vectors, plus cost accounting.
"""

import abc
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import numpy as np

from ..config import MLConfig, get_ml_config
from ..errors import ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass
class Embedding:
    """
    Embedding vector tagged with the model that produced it.

    tokens_used is the provider-reported token count for this text
    (0 when served from cache).
    """

    vector: np.ndarray
    model: str
    tokens_used: int = 0

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])


@dataclass
class EmbeddingCost:
    """Cost of obtaining one embedding."""

    tokens_used: int
    estimated_cost: float  # USD
    model: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "tokens_used": self.tokens_used,
            "estimated_cost": self.estimated_cost,
            "model": self.model,
            "timestamp": self.timestamp.isoformat(),
        }


def calculate_cost(
    tokens_used: int, model: Optional[str] = None, config: Optional[MLConfig] = None
) -> EmbeddingCost:
    """
    Calculate cost for embedding generation.

    Args:
        tokens_used: Tokens billed by the provider
        model: Model name (defaults to configured model)
        config: Configuration holding the price table

    Returns:
        EmbeddingCost
    """
    config = config or get_ml_config()
    model_name = model or config.embedding.model
    estimated_cost = (tokens_used / 1_000_000) * config.price_per_million(model_name)

    return EmbeddingCost(tokens_used=tokens_used, estimated_cost=estimated_cost, model=model_name)


def to_vector(values: Sequence[float], expected_dimension: Optional[int] = None) -> np.ndarray:
    """
    Convert raw provider output into a validated float32 vector.

    Raises:
        ExternalServiceError: If the data is not a usable embedding
    """
    try:
        vector = np.asarray(values, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise ExternalServiceError(f"Provider returned non-numeric embedding: {e}")

    if vector.ndim != 1 or vector.shape[0] == 0:
        raise ExternalServiceError(f"Provider returned embedding with shape {vector.shape}")

    if not np.all(np.isfinite(vector)):
        raise ExternalServiceError("Provider returned embedding with non-finite values")

    if expected_dimension is not None and vector.shape[0] != expected_dimension:
        raise ExternalServiceError(
            f"Provider returned {vector.shape[0]}-dim embedding, expected {expected_dimension}"
        )

    return vector


class EmbeddingProvider(abc.ABC):
    """Interface that any embedding provider implements."""

    @abc.abstractmethod
    async def embed(self, text: str, model: Optional[str] = None) -> Embedding: ...

    @abc.abstractmethod
    async def embed_batch(
        self, texts: List[str], model: Optional[str] = None
    ) -> List[Embedding]: ...
