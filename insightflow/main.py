from __future__ import annotations

import logging
import sys
import types
from importlib.metadata import PackageNotFoundError, version
from typing import Any, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ExceptionHandler

from insightflow.api.router import internal_router
from insightflow.api.router import router as api_router
from insightflow.core.config import InvalidSettingsError, MissingRequiredSettingsError
from insightflow.core.errors import (
    http_exception_handler,
    rate_limit_exception_handler,
    request_validation_exception_handler,
    unhandled_exception_handler,
)
from insightflow.core.lifespan import lifespan
from insightflow.core.logging import configure_logging
from insightflow.core.rate_limit import limiter
from insightflow.db.session import new_session
from insightflow.ingestion.fetcher import ContentFetcher
from insightflow.llm.embeddings import OpenAIEmbedder
from insightflow.llm.gateway import ProviderGateway
from insightflow.services.ai_config_service import AIConfigStore
from insightflow.services.analysis_service import (
    analysis_service_factory_provider,
    insight_service_factory_provider,
)
from insightflow.services.content_store import content_store_factory_provider
from insightflow.services.job_service import job_service_factory_provider
from insightflow.services.processor_service import ProcessorService
from insightflow.services.retrieval_service import RetrievalService
from insightflow.services.source_service import source_service_factory_provider
from insightflow.storage.blob_store import RedisBlobStore
from insightflow.storage.kv import get_redis_client
from insightflow.storage.vector_index import ChromaVectorIndex

# Import settings - this may raise MissingRequiredSettingsError
try:
    from insightflow.core.config import settings
except MissingRequiredSettingsError as e:
    print("ERROR: Missing required environment variables:", file=sys.stderr)
    for field in e.missing_fields:
        print(f"  - {field}", file=sys.stderr)
    print(
        "\nPlease set these in your .env file (see env.example for reference)",
        file=sys.stderr,
    )
    sys.exit(1)
except InvalidSettingsError as e:
    print("ERROR: Invalid environment variable values:", file=sys.stderr)
    for field, message in e.invalid_fields:
        print(f"  - {field}: {message}", file=sys.stderr)
    print(
        "\nPlease update these in your .env file (see env.example for reference)",
        file=sys.stderr,
    )
    sys.exit(1)


def build_services() -> tuple[dict[str, Any], dict[str, Any]]:
    """Build the service registry and the long-lived clients it depends on.

    Returns the registry and the closable resources keyed by name.
    """
    redis_client = get_redis_client()
    gateway = ProviderGateway(timeout=settings.provider_timeout_seconds)
    embedder = OpenAIEmbedder()
    fetcher = ContentFetcher(timeout=settings.fetch_timeout_seconds)
    blob_store = RedisBlobStore(redis_client)
    vector_index = ChromaVectorIndex(settings.chroma_host, settings.chroma_collection)
    config_store = AIConfigStore(redis_client, settings.ai_encryption_key)

    content_store_factory = content_store_factory_provider(blob_store, vector_index, embedder)
    analysis_service_factory = analysis_service_factory_provider(gateway, config_store)

    services: dict[str, Any] = {
        "job_service": job_service_factory_provider(),
        "source_service": source_service_factory_provider(settings.default_poll_interval_minutes),
        "content_store": content_store_factory,
        "analysis_service": analysis_service_factory,
        "insight_service": insight_service_factory_provider(),
        "ai_config_store": config_store,
        "retrieval_service": RetrievalService(
            gateway, embedder, vector_index, blob_store, config_store
        ),
        "processor_service": ProcessorService(
            new_session,
            fetcher,
            content_store_factory,
            analysis_service_factory,
        ),
    }
    resources: dict[str, Any] = {
        "gateway": gateway,
        "embedder": embedder,
        "fetcher": fetcher,
        "redis": redis_client,
    }
    return services, resources


def create_app() -> FastAPI:
    configure_logging()

    try:
        api_version = version("insightflow")
    except PackageNotFoundError:
        api_version = "0.1.0"  # Fallback if package not installed
        logging.warning("insightflow package not found, using fallback version 0.1.0")

    is_debug_mode = settings.environment == "local"
    app = FastAPI(
        title=settings.app_name,
        version=api_version,
        debug=is_debug_mode,
        lifespan=lifespan,
    )
    app.add_exception_handler(
        StarletteHTTPException, cast(ExceptionHandler, http_exception_handler)
    )
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, request_validation_exception_handler)
    )
    app.add_exception_handler(
        RateLimitExceeded, cast(ExceptionHandler, rate_limit_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, unhandled_exception_handler))
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.include_router(api_router, prefix="/api")
    app.include_router(internal_router)

    services, resources = build_services()
    app.state.services = types.MappingProxyType(services)
    app.state.resources = resources

    return app


app = create_app()
