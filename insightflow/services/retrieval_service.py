from __future__ import annotations

import logging

from pydantic import BaseModel

from insightflow.llm.embeddings import Embedder
from insightflow.llm.gateway import ProviderGateway
from insightflow.llm.prompts import (
    NO_RELEVANT_CONTENT_ANSWER,
    RAG_SYSTEM_PROMPT,
    format_context_block,
    get_rag_prompt,
)
from insightflow.llm.schemas import ChatMessage
from insightflow.services.ai_config_service import AIConfigStore
from insightflow.storage.blob_store import BlobStore
from insightflow.storage.vector_index import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
MAX_TOP_K = 10
RAG_TEMPERATURE = 0.3
RAG_MAX_TOKENS = 1500


class SourceReference(BaseModel):
    id: str
    title: str
    url: str


class RetrievalAnswer(BaseModel):
    answer: str
    sources: list[SourceReference]


def clamp_top_k(top_k: int | None) -> int:
    """Unset or 0 means the default; anything else is clamped to 1..10."""
    if not top_k:
        return DEFAULT_TOP_K
    return max(1, min(MAX_TOP_K, top_k))


class RetrievalService:
    """Answers questions from the embedded corpus (retrieval-augmented generation)."""

    def __init__(
        self,
        gateway: ProviderGateway,
        embedder: Embedder,
        vector_index: VectorIndex,
        blob_store: BlobStore,
        config_store: AIConfigStore,
    ) -> None:
        self._gateway = gateway
        self._embedder = embedder
        self._vector_index = vector_index
        self._blob_store = blob_store
        self._config_store = config_store

    async def answer(self, query: str, top_k: int | None = None) -> RetrievalAnswer:
        """Retrieve context for ``query`` and ask the configured provider.

        When no match resolves to stored content the fixed no-content answer
        is returned and no provider call is made.
        """
        embedding = await self._embedder.embed(query)
        matches = await self._vector_index.query(embedding, clamp_top_k(top_k))

        blocks: list[str] = []
        sources: list[SourceReference] = []
        for match in matches:
            content_key = match.metadata.get("content_key")
            if not content_key:
                continue
            document = await self._blob_store.get_json(str(content_key))
            if document is None:
                logger.warning("Vector match without stored content", extra={"item_id": match.id})
                continue
            title = str(document.get("title") or match.metadata.get("title") or "")
            url = str(document.get("url") or match.metadata.get("url") or "")
            blocks.append(format_context_block(title, url, str(document.get("content", ""))))
            sources.append(SourceReference(id=match.id, title=title, url=url))

        if not blocks:
            return RetrievalAnswer(answer=NO_RELEVANT_CONTENT_ANSWER, sources=[])

        options = await self._config_store.provider_options()
        options = options.model_copy(
            update={"temperature": RAG_TEMPERATURE, "max_tokens": RAG_MAX_TOKENS}
        )
        response = await self._gateway.send(
            options,
            [
                ChatMessage(role="system", content=RAG_SYSTEM_PROMPT),
                ChatMessage(role="user", content=get_rag_prompt(query, blocks)),
            ],
        )
        logger.info("Answered query from %d context block(s)", len(blocks))
        return RetrievalAnswer(answer=response.content, sources=sources)
