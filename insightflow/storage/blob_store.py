"""Document blob store for extracted item content.

Each item's plain text lives under ``content/{item_id}.json`` as a JSON document
``{id, url, title, content, fetched_at}``. Writes are idempotent overwrites.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)


def content_key_for(item_id: str) -> str:
    return f"content/{item_id}.json"


class BlobStore(ABC):
    @abstractmethod
    async def put_json(self, key: str, document: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_json(self, key: str) -> dict[str, Any] | None:
        """Return the stored document, or None when the key is absent."""
        raise NotImplementedError


class RedisBlobStore(BlobStore):
    """Redis-backed blob store."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def put_json(self, key: str, document: dict[str, Any]) -> None:
        payload = json.dumps(document, ensure_ascii=False)
        await self._client.set(key, payload)
        logger.debug("Stored blob %s (%d bytes)", key, len(payload))

    async def get_json(self, key: str) -> dict[str, Any] | None:
        payload = await self._client.get(key)
        if payload is None:
            return None
        try:
            document = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Blob %s is not valid JSON; ignoring", key)
            return None
        return document if isinstance(document, dict) else None
