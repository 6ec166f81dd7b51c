"""
Embeddings Module
Embedding provider contract, OpenAI implementation and cost accounting.
"""

from .base import Embedding, EmbeddingCost, EmbeddingProvider, calculate_cost, to_vector
from .openai_provider import OpenAIEmbeddingProvider

__all__ = [
    "Embedding",
    "EmbeddingCost",
    "EmbeddingProvider",
    "calculate_cost",
    "to_vector",
    "OpenAIEmbeddingProvider",
]
