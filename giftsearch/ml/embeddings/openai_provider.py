"""
OpenAI Embedding Provider
Embeddings via the OpenAI embeddings API (text-embedding-3-small by default).
"""

import logging
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from ..config import MLConfig, get_ml_config
from ..errors import ExternalServiceError
from .base import Embedding, EmbeddingProvider, to_vector

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Async OpenAI embeddings client.

    Rate-limit (429) and 5xx responses are retried with backoff by the
    client itself (max_retries); whatever still fails is raised as
    ExternalServiceError.
    """

    def __init__(self, config: Optional[MLConfig] = None, client: Optional[AsyncOpenAI] = None):
        """
        Initialize OpenAI provider.

        Args:
            config: Configuration
            client: Pre-built AsyncOpenAI client (built from config if not provided)
        """
        self.config = config or get_ml_config()
        self.model = self.config.embedding.model
        self.max_batch_size = self.config.embedding.max_batch_size

        if client is None:
            if not self.config.embedding.api_key:
                logger.warning("OPENAI_API_KEY not configured - embedding generation will fail")
            client = AsyncOpenAI(
                api_key=self.config.embedding.api_key or "missing",
                base_url=self.config.embedding.base_url,
                max_retries=self.config.embedding.max_retries,
                timeout=self.config.timeouts.embedding_seconds,
            )

        self.client = client

        logger.info(f"OpenAI embedding provider initialized (model={self.model})")

    async def embed(self, text: str, model: Optional[str] = None) -> Embedding:
        """
        Generate embedding for a single text.

        Raises:
            ExternalServiceError: If the API call fails or returns invalid data
        """
        model_name = model or self.model

        try:
            response = await self.client.embeddings.create(model=model_name, input=text)
        except OpenAIError as e:
            logger.error(f"Failed to generate embedding: {e}")
            raise ExternalServiceError(f"Embedding provider error: {e}") from e

        if not response.data:
            raise ExternalServiceError("Embedding provider returned no data")

        vector = to_vector(response.data[0].embedding, self.config.embedding.dimension)
        tokens_used = response.usage.total_tokens if response.usage else 0

        logger.debug(f"Generated embedding: {vector.shape[0]} dimensions, {tokens_used} tokens")

        return Embedding(vector=vector, model=model_name, tokens_used=tokens_used)

    async def embed_batch(self, texts: List[str], model: Optional[str] = None) -> List[Embedding]:
        """
        Generate embeddings for multiple texts, chunked to the API batch limit.

        Batch token usage is split evenly across the texts of a chunk.
        """
        model_name = model or self.model

        if not texts:
            return []

        embeddings: List[Embedding] = []

        for i in range(0, len(texts), self.max_batch_size):
            batch = texts[i : i + self.max_batch_size]

            try:
                response = await self.client.embeddings.create(model=model_name, input=batch)
            except OpenAIError as e:
                logger.error(f"Batch embedding failed: {e}")
                raise ExternalServiceError(f"Embedding provider error: {e}") from e

            if len(response.data) != len(batch):
                raise ExternalServiceError(
                    f"Embedding provider returned {len(response.data)} vectors for {len(batch)} texts"
                )

            total_tokens = response.usage.total_tokens if response.usage else 0
            per_text = total_tokens // len(batch)

            # Sort by index to maintain order
            for item in sorted(response.data, key=lambda d: d.index):
                vector = to_vector(item.embedding, self.config.embedding.dimension)
                embeddings.append(Embedding(vector=vector, model=model_name, tokens_used=per_text))

            logger.debug(
                f"Batch {i // self.max_batch_size + 1}: {len(batch)} texts, {total_tokens} tokens"
            )

        logger.info(f"Generated {len(embeddings)} embeddings")

        return embeddings
