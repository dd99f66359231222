"""Fixtures wiring the application to in-memory stores and a mocked HTTP fetcher."""

from __future__ import annotations

import types
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insightflow.ingestion.fetcher import ContentFetcher
from insightflow.services.analysis_service import (
    analysis_service_factory_provider,
    insight_service_factory_provider,
)
from insightflow.services.content_store import content_store_factory_provider
from insightflow.services.job_service import job_service_factory_provider
from insightflow.services.processor_service import ProcessorService
from insightflow.services.retrieval_service import RetrievalService
from insightflow.services.source_service import source_service_factory_provider


class Web:
    """Routes fetcher requests to canned responses by URL."""

    def __init__(self) -> None:
        self.routes: dict[str, Callable[[], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def serve(self, url: str, text: str = "", status_code: int = 200, **kwargs: Any) -> None:
        self.routes[url] = lambda: httpx.Response(status_code, text=text, **kwargs)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        return route() if route is not None else httpx.Response(404)


@pytest.fixture
def web() -> Web:
    return Web()


@pytest.fixture
def fetcher(web: Web) -> ContentFetcher:
    return ContentFetcher(http_client=httpx.AsyncClient(transport=httpx.MockTransport(web.handler)))


@pytest.fixture
def content_store_factory(blob_store: Any, vector_index: Any, embedder: Any) -> Any:
    return content_store_factory_provider(blob_store, vector_index, embedder)


@pytest.fixture
def processor(
    test_session_maker: async_sessionmaker[AsyncSession],
    fetcher: ContentFetcher,
    content_store_factory: Any,
    gateway: Any,
    config_store: Any,
) -> ProcessorService:
    return ProcessorService(
        lambda: test_session_maker(),
        fetcher,
        content_store_factory,
        analysis_service_factory_provider(gateway, config_store),
    )


@pytest.fixture
def fake_services(
    async_app: FastAPI,
    processor: ProcessorService,
    content_store_factory: Any,
    gateway: Any,
    embedder: Any,
    vector_index: Any,
    blob_store: Any,
    config_store: Any,
) -> Iterator[dict[str, Any]]:
    """Swap the app's service registry for one backed by in-memory doubles."""
    services: dict[str, Any] = {
        "job_service": job_service_factory_provider(),
        "source_service": source_service_factory_provider(360),
        "content_store": content_store_factory,
        "analysis_service": analysis_service_factory_provider(gateway, config_store),
        "insight_service": insight_service_factory_provider(),
        "ai_config_store": config_store,
        "retrieval_service": RetrievalService(
            gateway, embedder, vector_index, blob_store, config_store
        ),
        "processor_service": processor,
    }
    original = async_app.state.services
    async_app.state.services = types.MappingProxyType(services)
    try:
        yield services
    finally:
        async_app.state.services = original
