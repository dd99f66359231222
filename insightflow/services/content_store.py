"""Content Store: blob write, vector upsert and item row insert.

The three writes are independent, idempotent steps executed in that order
with no cross-store transaction. A failure part-way leaves an orphan blob or
vector entry keyed by an item id that never got a row; the next fetch cycle
re-ingests the url under a fresh id.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.db.models.item import Item
from insightflow.ingestion.text import content_hash
from insightflow.llm.embeddings import EMBEDDING_INPUT_LIMIT, Embedder
from insightflow.storage.blob_store import BlobStore, content_key_for
from insightflow.storage.vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    item_id: str | None
    created: bool


def _is_unique_violation(exc: IntegrityError) -> bool:
    # asyncpg raises UniqueViolationError (SQLSTATE 23505)
    error_str = str(exc.orig).lower()
    return "unique" in error_str or "duplicate" in error_str or "23505" in error_str


class ContentStore:
    def __init__(
        self,
        session: AsyncSession,
        blob_store: BlobStore,
        vector_index: VectorIndex,
        embedder: Embedder,
    ) -> None:
        self._session = session
        self._blob_store = blob_store
        self._vector_index = vector_index
        self._embedder = embedder

    async def find_item_id(self, url: str) -> str | None:
        result = await self._session.execute(select(Item.id).where(Item.url == url))
        return result.scalar_one_or_none()

    async def get_item(self, item_id: str) -> Item | None:
        return await self._session.get(Item, item_id)

    async def load_content(self, content_key: str) -> dict[str, Any] | None:
        return await self._blob_store.get_json(content_key)

    async def ingest(
        self,
        *,
        url: str,
        title: str,
        text: str,
        source_id: str | None,
        published_at: datetime | None = None,
    ) -> IngestResult:
        """Store one fetched document; an existing url is reported as not created."""
        existing_id = await self.find_item_id(url)
        if existing_id is not None:
            return IngestResult(item_id=existing_id, created=False)

        item_id = str(uuid.uuid4())
        content_key = content_key_for(item_id)

        await self._blob_store.put_json(
            content_key,
            {
                "id": item_id,
                "url": url,
                "title": title,
                "content": text,
                "fetched_at": datetime.now(UTC).isoformat(),
            },
        )

        vector_id: str | None = None
        if text.strip():
            embedding = await self._embedder.embed(text[:EMBEDDING_INPUT_LIMIT])
            await self._vector_index.upsert(
                item_id,
                embedding,
                {
                    "url": url,
                    "title": title,
                    "source_id": source_id or "",
                    "content_key": content_key,
                },
            )
            vector_id = item_id
        else:
            # Script-only or image pages; the embeddings API rejects empty input.
            logger.info("No extractable text; item is not embedded", extra={"url": url})

        try:
            # Savepoint so a lost url race does not abort the caller's transaction.
            async with self._session.begin_nested():
                await self._session.execute(
                    insert(Item).values(
                        id=item_id,
                        source_id=source_id,
                        url=url,
                        title=title,
                        published_at=published_at,
                        content_hash=content_hash(text),
                        content_key=content_key,
                        vector_id=vector_id,
                    )
                )
        except IntegrityError as exc:
            if not _is_unique_violation(exc):
                raise
            logger.info("Item url ingested concurrently; keeping existing row", extra={"url": url})
            return IngestResult(item_id=await self.find_item_id(url), created=False)

        logger.info("Ingested item %s", url, extra={"item_id": item_id, "source_id": source_id})
        return IngestResult(item_id=item_id, created=True)


def content_store_factory_provider(
    blob_store: BlobStore, vector_index: VectorIndex, embedder: Embedder
) -> Callable[[AsyncSession], ContentStore]:
    def factory(session: AsyncSession) -> ContentStore:
        return ContentStore(session, blob_store, vector_index, embedder)

    return factory
