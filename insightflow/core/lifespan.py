from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from insightflow.core.config import settings
from insightflow.db.session import dispose_engine, get_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """FastAPI lifespan context manager for startup/shutdown events."""
    try:
        # Startup
        if settings.environment != "test":
            await verify_database_connection()
        yield

        # Shutdown
    finally:
        await close_resources(app)
        await dispose_engine()


async def close_resources(app: FastAPI) -> None:
    """Close long-lived clients registered on ``app.state.resources``."""
    for name, resource in getattr(app.state, "resources", {}).items():
        try:
            await resource.aclose()
        except Exception:
            logger.exception("Failed to close %s", name)


async def verify_database_connection() -> None:
    """Verify database connectivity at startup. Raises if connection fails."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        raise RuntimeError(f"Failed to connect to database: {e}") from e
