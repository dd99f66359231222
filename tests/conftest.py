"""Pytest configuration and shared fixtures.

Unit tests run against in-memory doubles for the blob store, vector index,
embedder and provider gateway. Integration tests need a Postgres database
reachable through ``TEST_DATABASE_URL`` and are skipped without it.
"""

from __future__ import annotations

import base64
import os

# Required settings must exist before anything imports insightflow.core.config.
os.environ.setdefault("POSTGRES_USER", "insightflow")
os.environ.setdefault("POSTGRES_PASSWORD", "insightflow")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "insightflow")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("REDIS_DB", "0")
os.environ.setdefault("OPENAI_API_KEY", "test_key")
os.environ.setdefault("AI_ENCRYPTION_KEY", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("ENVIRONMENT", "test")

import json  # noqa: E402
from collections.abc import AsyncIterator, Sequence  # noqa: E402
from typing import Any, cast  # noqa: E402
from urllib.parse import urlparse  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from pydantic import PostgresDsn  # noqa: E402
from sqlalchemy import text  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from insightflow.core import config  # noqa: E402
from insightflow.db.base import Base  # noqa: E402
from insightflow.llm.embeddings import Embedder  # noqa: E402
from insightflow.llm.gateway import ProviderGateway  # noqa: E402
from insightflow.llm.schemas import (  # noqa: E402
    ChatMessage,
    ProviderName,
    ProviderOptions,
    ProviderResponse,
)
from insightflow.main import create_app  # noqa: E402
from insightflow.services.ai_config_service import AIConfigNotSetError, AIConfigStore  # noqa: E402
from insightflow.storage.blob_store import BlobStore  # noqa: E402
from insightflow.storage.vector_index import VectorIndex, VectorMatch  # noqa: E402

TEST_ENCRYPTION_KEY = os.environ["AI_ENCRYPTION_KEY"]
ADMIN_HEADERS = {"Authorization": f"Bearer {os.environ['ADMIN_TOKEN']}"}

ANALYSIS_JSON = json.dumps(
    {
        "core_topic": "Agents in production",
        "pillars": {
            "career_business": {
                "relevance_score": 80,
                "insight": "Teams that ship agents need evaluation skills.",
                "action_items": ["Build an eval harness"],
            },
            "market_startup": None,
            "self_growth": {"relevance_score": 0, "insight": "", "action_items": []},
        },
        "maturity_rating": "trial",
        "tags": ["agents", "evals"],
        "key_quotes": [],
    }
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests when no test database is configured."""
    if os.getenv("TEST_DATABASE_URL"):
        return
    skip_integration = pytest.mark.skip(reason="TEST_DATABASE_URL is not set")
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker(skip_integration)


# In-memory doubles


class FakeBlobStore(BlobStore):
    """Dict-backed blob store."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}

    async def put_json(self, key: str, document: dict[str, Any]) -> None:
        self.documents[key] = document

    async def get_json(self, key: str) -> dict[str, Any] | None:
        return self.documents.get(key)


class FakeVectorIndex(VectorIndex):
    """Vector index that returns stored entries in insertion order."""

    def __init__(self) -> None:
        self.entries: dict[str, tuple[list[float], dict[str, Any]]] = {}
        self.queries: list[tuple[list[float], int]] = []

    async def upsert(self, vector_id: str, values: list[float], metadata: dict[str, Any]) -> None:
        self.entries[vector_id] = (values, metadata)

    async def query(self, values: list[float], top_k: int) -> list[VectorMatch]:
        self.queries.append((values, top_k))
        return [
            VectorMatch(id=vector_id, score=1.0, metadata=metadata)
            for vector_id, (_, metadata) in list(self.entries.items())[:top_k]
        ]


class FakeEmbedder(Embedder):
    def __init__(self) -> None:
        self.inputs: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.inputs.append(text)
        return [0.1, 0.2, 0.3]


class FakeGateway(ProviderGateway):
    """Gateway that answers every exchange with a canned reply."""

    def __init__(self, content: str = ANALYSIS_JSON) -> None:
        self.content = content
        self.calls: list[tuple[ProviderOptions, list[ChatMessage]]] = []

    async def aclose(self) -> None:
        return None

    async def send(
        self, options: ProviderOptions, messages: Sequence[ChatMessage]
    ) -> ProviderResponse:
        self.calls.append((options, list(messages)))
        return ProviderResponse(content=self.content, raw={})


class FakeRedis:
    """The two string commands the config store uses."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.values[key] = value
        return True


class FakeAIConfigStore(AIConfigStore):
    """Config store that hands out fixed options, or none at all."""

    def __init__(self, options: ProviderOptions | None) -> None:
        super().__init__(cast(Any, FakeRedis()), TEST_ENCRYPTION_KEY)
        self.options = options

    async def provider_options(self) -> ProviderOptions:
        if self.options is None:
            raise AIConfigNotSetError()
        return self.options


@pytest.fixture
def provider_options() -> ProviderOptions:
    return ProviderOptions(provider=ProviderName.OPENAI, api_key="sk-test", model="gpt-test")


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def vector_index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def config_store(provider_options: ProviderOptions) -> FakeAIConfigStore:
    return FakeAIConfigStore(provider_options)


# Database fixtures


def _get_test_database_url() -> str:
    """Resolve the test database URL from env or default derivation."""
    env_url = os.getenv("TEST_DATABASE_URL")
    if env_url:
        return env_url

    # Fall back to deriving a test database URL from the main database URL.
    base_db_url = str(config.settings.database_url)
    parsed_base = urlparse(base_db_url)
    base_db_name = parsed_base.path.lstrip("/") or "postgres"
    test_db_name = f"{base_db_name}_test"
    return parsed_base._replace(path=f"/{test_db_name}").geturl()


test_database_url = _get_test_database_url()

_parsed_test = urlparse(test_database_url)
postgres_url = _parsed_test._replace(path="/postgres").geturl()


@pytest_asyncio.fixture(scope="session")
async def ensure_test_database() -> None:
    """Ensures the test database exists, creating it if necessary."""
    test_db_name = urlparse(test_database_url).path.lstrip("/")

    # Connect to the default 'postgres' database to create the test database
    admin_engine = create_async_engine(
        postgres_url, pool_pre_ping=True, echo=False, isolation_level="AUTOCOMMIT"
    )

    try:
        async with admin_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
                {"db_name": test_db_name},
            )
            if result.scalar() is None:
                await conn.execute(text(f'CREATE DATABASE "{test_db_name}"'))
    finally:
        # Use sync dispose to avoid event loop issues
        admin_engine.sync_engine.dispose()


@pytest_asyncio.fixture(scope="session")
async def test_engine(ensure_test_database: None) -> AsyncIterator[AsyncEngine]:
    """Creates a test database engine (reused across all tests)."""
    engine = create_async_engine(test_database_url, pool_pre_ping=True, echo=False)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session")
async def setup_test_db(test_engine: AsyncEngine) -> AsyncIterator[None]:
    """Creates test database tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="session")
async def test_session_maker(
    setup_test_db: None, test_engine: AsyncEngine
) -> async_sessionmaker[AsyncSession]:
    """Creates a session maker (reused across all tests)."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(
    test_session_maker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Creates a database session for a test (function-scoped).

    Deletes all rows from all tables after the test so data does not leak.
    """
    async with test_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            for table in reversed(Base.metadata.sorted_tables):
                await session.execute(table.delete())
            await session.commit()


@pytest_asyncio.fixture(scope="session")
async def async_app(test_session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[FastAPI]:
    """Creates FastAPI app for async tests with test database settings (session-scoped)."""
    # Set test environment (directly modify settings since monkeypatch is function-scoped)
    config.settings.environment = "test"
    config.settings.database_url = cast(PostgresDsn, test_database_url)

    fastapi_app = create_app()

    yield fastapi_app


@pytest_asyncio.fixture(scope="function")
async def async_http_client(async_app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Creates an async http client."""
    transport = ASGITransport(app=async_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


# Synchronous fixtures (no database access)


@pytest.fixture(scope="function")
def app() -> FastAPI:
    """Creates a FastAPI app for synchronous tests that never reach the database."""
    config.settings.environment = "test"
    return create_app()


@pytest.fixture(scope="function")
def http_client(app: FastAPI) -> TestClient:
    """Creates a synchronous http client."""
    return TestClient(app)
