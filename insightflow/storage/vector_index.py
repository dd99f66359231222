from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import chromadb
from chromadb.api import AsyncClientAPI
from chromadb.api.models.AsyncCollection import AsyncCollection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorIndex(ABC):
    """Similarity index keyed by item id."""

    @abstractmethod
    async def upsert(self, vector_id: str, values: list[float], metadata: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def query(self, values: list[float], top_k: int) -> list[VectorMatch]:
        """Return up to ``top_k`` matches with metadata, most similar first."""
        raise NotImplementedError


def _parse_chroma_host(raw_host: str) -> tuple[str, int, bool]:
    """Split CHROMA_HOST (which may omit scheme and port) into host, port and ssl flag."""
    if "://" not in raw_host:
        raw_host = f"http://{raw_host}"
    parsed = urlparse(raw_host)
    if not parsed.hostname:
        raise ValueError(f"Hostname could not be parsed from CHROMA_HOST {raw_host!r}")
    use_ssl = parsed.scheme == "https"
    port = parsed.port or (443 if use_ssl else 8000)
    return parsed.hostname, port, use_ssl


class ChromaVectorIndex(VectorIndex):
    """Chroma collection accessed over HTTP, using cosine distance."""

    def __init__(self, host: str, collection_name: str) -> None:
        self._host, self._port, self._ssl = _parse_chroma_host(host)
        self._collection_name = collection_name
        self._client: AsyncClientAPI | None = None
        self._collection: AsyncCollection | None = None
        self._lock = asyncio.Lock()

    async def _get_collection(self) -> AsyncCollection:
        if self._collection is not None:
            return self._collection
        async with self._lock:
            if self._collection is None:
                self._client = await chromadb.AsyncHttpClient(
                    host=self._host, port=self._port, ssl=self._ssl
                )
                self._collection = await self._client.get_or_create_collection(
                    name=self._collection_name,
                    metadata={"hnsw:space": "cosine"},
                )
                logger.info(
                    "Connected to Chroma collection %s at %s:%s",
                    self._collection_name,
                    self._host,
                    self._port,
                )
        return self._collection

    async def upsert(self, vector_id: str, values: list[float], metadata: dict[str, Any]) -> None:
        collection = await self._get_collection()
        # Chroma rejects None metadata values.
        clean = {key: value for key, value in metadata.items() if value is not None}
        await collection.upsert(ids=[vector_id], embeddings=[values], metadatas=[clean])

    async def query(self, values: list[float], top_k: int) -> list[VectorMatch]:
        collection = await self._get_collection()
        result = await collection.query(
            query_embeddings=[values],
            n_results=top_k,
            include=["metadatas", "distances"],
        )
        ids = (result.get("ids") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0] or []
        distances = (result.get("distances") or [[]])[0] or []

        matches: list[VectorMatch] = []
        for index, vector_id in enumerate(ids):
            metadata = metadatas[index] if index < len(metadatas) else None
            distance = distances[index] if index < len(distances) else 1.0
            matches.append(
                VectorMatch(id=vector_id, score=1.0 - float(distance), metadata=dict(metadata or {}))
            )
        return matches
