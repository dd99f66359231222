from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "insightflow/0.1 (+content ingestion)"


class FetchError(Exception):
    """Raised when a source or page cannot be retrieved."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = "fetch_failed"


@dataclass(frozen=True)
class FeedFetchResult:
    not_modified: bool
    body: str = ""
    etag: str | None = None


class ContentFetcher:
    """HTTP retrieval of feeds and pages for the ingestion cycle."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            return await self._client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise FetchError(f"Fetch timed out: {url}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Fetch failed: {url}: {exc}") from exc

    async def fetch_feed(self, url: str, etag: str | None = None) -> FeedFetchResult:
        """Conditionally GET a feed; a 304 reports ``not_modified`` with no body."""
        headers = {"If-None-Match": etag} if etag else None
        response = await self._get(url, headers=headers)

        if response.status_code == httpx.codes.NOT_MODIFIED:
            logger.info("Feed not modified: %s", url)
            return FeedFetchResult(not_modified=True, etag=etag)
        if not response.is_success:
            raise FetchError(f"Fetch failed: {response.status_code}", response.status_code)

        return FeedFetchResult(
            not_modified=False,
            body=response.text,
            etag=response.headers.get("ETag"),
        )

    async def fetch_page(self, url: str) -> str:
        response = await self._get(url)
        if not response.is_success:
            raise FetchError(f"Fetch failed: {response.status_code}", response.status_code)
        return response.text
