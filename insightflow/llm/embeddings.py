from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    RateLimitError,
)

from insightflow.core.config import settings
from insightflow.llm.gateway import LLMServiceError

logger = logging.getLogger(__name__)

# Embedding models accept far less input than the blob store keeps.
EMBEDDING_INPUT_LIMIT = 8_000


class EmbeddingError(LLMServiceError):
    """Embedding backend failed to produce a vector."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "embedding_failed")


class Embedder(ABC):
    """Abstract base class for text embedding backends."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for ``text``."""
        raise NotImplementedError


class OpenAIEmbedder(Embedder):
    """OpenAI embeddings implementation."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.client = AsyncOpenAI(
            api_key=api_key or settings.openai_api_key,
            timeout=settings.provider_timeout_seconds,
        )
        self.model = model or settings.embedding_model

    async def aclose(self) -> None:
        await self.client.close()

    def _handle_errors(self, error: Exception) -> EmbeddingError:
        if isinstance(error, (APIConnectionError, APITimeoutError)):
            logger.error("OpenAI embeddings unreachable. Error: %s", error)
            return EmbeddingError("Embedding service unreachable.")
        if isinstance(error, RateLimitError):
            logger.error("OpenAI embeddings rate limited. Error: %s", error)
            return EmbeddingError("Embedding rate limit exceeded.")
        if isinstance(error, AuthenticationError):
            logger.error("OpenAI embeddings authentication failed. Error: %s", error)
            return EmbeddingError("Embedding authentication failed.")
        if isinstance(error, APIError):
            logger.error("OpenAI embeddings API error. Error: %s", error)
            return EmbeddingError(f"Embedding service error: {error}")
        logger.error("Unexpected embedding response. Error: %s", error)
        return EmbeddingError("Embedding service returned an unexpected response.")

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text[:EMBEDDING_INPUT_LIMIT],
            )
            return list(response.data[0].embedding)
        except Exception as e:
            raise self._handle_errors(e) from e
