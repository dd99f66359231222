"""Integration tests for the three-store ingest."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.db.models.item import Item
from insightflow.ingestion.text import content_hash
from insightflow.services.content_store import ContentStore
from insightflow.storage.blob_store import content_key_for


@pytest.fixture
def store(
    db_session: AsyncSession, blob_store: Any, vector_index: Any, embedder: Any
) -> ContentStore:
    return ContentStore(db_session, blob_store, vector_index, embedder)


async def _item_count(session: AsyncSession) -> int:
    return (await session.execute(select(func.count()).select_from(Item))).scalar_one()


@pytest.mark.asyncio
async def test_ingest_writes_blob_vector_and_row(
    store: ContentStore, db_session: AsyncSession, blob_store: Any, vector_index: Any
) -> None:
    """Test that one ingest produces one blob, one vector and one row sharing an id."""
    # Act
    result = await store.ingest(
        url="https://example.com/a", title="A", text="Agents in production", source_id=None
    )

    # Assert
    assert result.created is True
    assert result.item_id is not None
    item = await db_session.get(Item, result.item_id)
    assert item is not None
    assert item.content_key == content_key_for(result.item_id)
    assert item.vector_id == result.item_id
    assert item.content_hash == content_hash("Agents in production")
    assert blob_store.documents[item.content_key]["content"] == "Agents in production"
    _, metadata = vector_index.entries[result.item_id]
    assert metadata["content_key"] == item.content_key
    assert metadata["source_id"] == ""


@pytest.mark.asyncio
async def test_same_url_is_ingested_once(
    store: ContentStore, db_session: AsyncSession, vector_index: Any, embedder: Any
) -> None:
    """Test idempotence on url: a repeat ingest touches no store."""
    first = await store.ingest(url="https://example.com/a", title="A", text="one", source_id=None)
    second = await store.ingest(url="https://example.com/a", title="A", text="two", source_id=None)

    assert second.created is False
    assert second.item_id == first.item_id
    assert await _item_count(db_session) == 1
    assert len(vector_index.entries) == 1
    assert embedder.inputs == ["one"]


@pytest.mark.asyncio
async def test_lost_url_race_keeps_existing_row(
    store: ContentStore, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that a unique violation on insert is reported as not created."""
    # Arrange
    first = await store.ingest(url="https://example.com/a", title="A", text="one", source_id=None)
    # The existence check misses, as if a concurrent writer inserted after it ran.
    monkeypatch.setattr(
        store, "find_item_id", AsyncMock(side_effect=[None, first.item_id])
    )

    # Act
    second = await store.ingest(url="https://example.com/a", title="A", text="one", source_id=None)

    # Assert
    assert second.created is False
    assert second.item_id == first.item_id
    assert await _item_count(db_session) == 1


@pytest.mark.asyncio
async def test_embedding_input_is_truncated(store: ContentStore, embedder: Any) -> None:
    await store.ingest(url="https://example.com/long", title="L", text="x" * 20_000, source_id=None)

    assert len(embedder.inputs[0]) == 8_000


@pytest.mark.asyncio
async def test_empty_text_is_stored_without_vector(
    store: ContentStore, db_session: AsyncSession, vector_index: Any, embedder: Any
) -> None:
    """Test that a page with no extractable text still gets a row but no embedding."""
    # Act
    result = await store.ingest(
        url="https://example.com/app", title="App", text="", source_id=None
    )

    # Assert
    item = await db_session.get(Item, result.item_id)
    assert item is not None
    assert item.vector_id is None
    assert item.content_hash == content_hash("")
    assert embedder.inputs == []
    assert vector_index.entries == {}
