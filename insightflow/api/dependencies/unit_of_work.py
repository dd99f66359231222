"""Unit of Work: one transaction per request, session-scoped services from registry."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any, cast

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.db.session import get_session_maker
from insightflow.services.ai_config_service import AIConfigStore
from insightflow.services.analysis_service import AnalysisService, InsightService
from insightflow.services.content_store import ContentStore
from insightflow.services.job_service import JobService
from insightflow.services.processor_service import ProcessorService
from insightflow.services.retrieval_service import RetrievalService
from insightflow.services.source_service import SourceService


class UnitOfWork:
    """Holds the request's session and exposes services from the registry.

    Callable registry entries are factories taking the session; anything else
    is an application-wide instance returned as is.
    """

    def __init__(self, session: AsyncSession, services: Mapping[str, Any]) -> None:
        self._session = session
        self._services = services
        self._resolved: dict[str, Any] = {}

    @property
    def session(self) -> AsyncSession:
        return self._session

    def _resolve(self, key: str) -> Any:
        if key not in self._resolved:
            service = self._services[key]
            self._resolved[key] = service(self._session) if callable(service) else service
        return self._resolved[key]

    @property
    def job_service(self) -> JobService:
        return cast(JobService, self._resolve("job_service"))

    @property
    def source_service(self) -> SourceService:
        return cast(SourceService, self._resolve("source_service"))

    @property
    def content_store(self) -> ContentStore:
        return cast(ContentStore, self._resolve("content_store"))

    @property
    def analysis_service(self) -> AnalysisService:
        return cast(AnalysisService, self._resolve("analysis_service"))

    @property
    def insight_service(self) -> InsightService:
        return cast(InsightService, self._resolve("insight_service"))

    @property
    def ai_config_store(self) -> AIConfigStore:
        return cast(AIConfigStore, self._resolve("ai_config_store"))

    @property
    def retrieval_service(self) -> RetrievalService:
        return cast(RetrievalService, self._resolve("retrieval_service"))

    @property
    def processor_service(self) -> ProcessorService:
        return cast(ProcessorService, self._resolve("processor_service"))


async def get_uow(request: Request) -> AsyncIterator[UnitOfWork]:
    """Per-request dependency: one session, commit on success, rollback on exception."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield UnitOfWork(session, request.app.state.services)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
