from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI

from insightflow.core import lifespan as lifespan_module
from insightflow.core.lifespan import close_resources, lifespan, verify_database_connection


@pytest.mark.asyncio
async def test_verify_database_connection_success() -> None:
    """Test that database connection verification succeeds when DB is available."""
    with patch("insightflow.core.lifespan.get_engine") as mock_get_engine:
        mock_conn = AsyncMock()
        mock_execute = AsyncMock()
        mock_conn.__aenter__ = AsyncMock(return_value=mock_conn)
        mock_conn.__aexit__ = AsyncMock(return_value=None)
        mock_conn.execute = mock_execute
        mock_get_engine.return_value.connect.return_value = mock_conn

        await verify_database_connection()

        mock_get_engine.return_value.connect.assert_called_once()
        mock_execute.assert_called_once()


@pytest.mark.asyncio
async def test_verify_database_connection_failure() -> None:
    """Test that database connection verification raises on failure."""
    with patch("insightflow.core.lifespan.get_engine") as mock_get_engine:
        mock_get_engine.return_value.connect.side_effect = Exception("Connection failed")
        with pytest.raises(RuntimeError, match="Failed to connect to database"):
            await verify_database_connection()


@pytest.mark.asyncio
async def test_lifespan_skips_db_check_in_test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that lifespan skips database verification in test environment."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "test")
    with (
        patch("insightflow.core.lifespan.verify_database_connection") as mock_verify,
        patch("insightflow.core.lifespan.dispose_engine", new=AsyncMock()),
    ):
        async with lifespan(FastAPI()):
            pass

        mock_verify.assert_not_called()


@pytest.mark.asyncio
async def test_lifespan_verifies_db_in_non_test_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that lifespan verifies database in non-test environments."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "local")
    with (
        patch("insightflow.core.lifespan.verify_database_connection", new=AsyncMock()) as mock_verify,
        patch("insightflow.core.lifespan.dispose_engine", new=AsyncMock()),
    ):
        async with lifespan(FastAPI()):
            pass

        mock_verify.assert_awaited_once()


@pytest.mark.asyncio
async def test_lifespan_closes_resources_and_disposes_engine(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that shutdown closes registered clients before disposing the engine."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "test")
    app = FastAPI()
    fetcher = MagicMock()
    fetcher.aclose = AsyncMock()
    app.state.resources = {"fetcher": fetcher}

    with patch("insightflow.core.lifespan.dispose_engine", new=AsyncMock()) as mock_dispose:
        async with lifespan(app):
            pass

        fetcher.aclose.assert_awaited_once()
        mock_dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_lifespan_disposes_engine_even_if_startup_fails(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that engine is disposed even if startup verification fails."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "local")
    with (
        patch("insightflow.core.lifespan.dispose_engine", new=AsyncMock()) as mock_dispose,
        patch(
            "insightflow.core.lifespan.verify_database_connection",
            side_effect=RuntimeError("DB failed"),
        ),
    ):
        with pytest.raises(RuntimeError):
            async with lifespan(FastAPI()):
                pass

        # Engine should still be disposed even if startup fails
        mock_dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_resources_continues_after_a_failure() -> None:
    app = FastAPI()
    broken = MagicMock()
    broken.aclose = AsyncMock(side_effect=RuntimeError("already closed"))
    healthy = MagicMock()
    healthy.aclose = AsyncMock()
    app.state.resources = {"broken": broken, "healthy": healthy}

    await close_resources(app)

    healthy.aclose.assert_awaited_once()
