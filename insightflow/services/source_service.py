"""Source registry: admin operations on sources and their fetch scheduling."""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.db.models.job import Job, JobType
from insightflow.db.models.source import Source, SourceStatus, SourceType
from insightflow.services.job_service import JobService

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Base error for source operations."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class SourceNotFoundError(SourceError):
    def __init__(self, source_id: str) -> None:
        super().__init__(f"Source {source_id} not found", "source_not_found")


class SourceService:
    def __init__(
        self, session: AsyncSession, default_poll_interval_minutes: int = 360
    ) -> None:
        self._session = session
        self._jobs = JobService(session)
        self._default_poll_interval = default_poll_interval_minutes

    async def create_source(
        self,
        source_type: SourceType,
        name: str,
        url: str,
        poll_interval_minutes: int | None = None,
    ) -> tuple[Source, Job]:
        """Register a source and enqueue its first fetch to run immediately."""
        source = Source(
            type=source_type.value,
            name=name,
            url=url,
            poll_interval_minutes=poll_interval_minutes or self._default_poll_interval,
            status=SourceStatus.ACTIVE.value,
        )
        self._session.add(source)
        await self._session.flush()
        await self._session.refresh(source)
        job = await self._jobs.enqueue_job(JobType.FETCH, source_id=source.id)
        logger.info("Registered %s source %s", source.type, source.url, extra={"source_id": source.id})
        return source, job

    async def list_sources(self) -> list[Source]:
        result = await self._session.execute(
            select(Source).order_by(Source.created_at.desc(), Source.id)
        )
        return list(result.scalars().all())

    async def get_source(self, source_id: str) -> Source:
        source = await self._session.get(Source, source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    async def set_status(self, source_id: str, status: SourceStatus) -> Source:
        """Pause or resume a source; resuming schedules a fetch if none is pending."""
        source = await self.get_source(source_id)
        was_paused = source.status == SourceStatus.PAUSED.value
        source.status = status.value
        await self._session.flush()
        if status == SourceStatus.ACTIVE and was_paused:
            if not await self._jobs.has_pending_fetch(source_id):
                await self._jobs.enqueue_job(JobType.FETCH, source_id=source_id)
        logger.info("Source status set to %s", status.value, extra={"source_id": source_id})
        return source

    async def trigger_fetch(self, source_id: str) -> Job:
        await self.get_source(source_id)
        return await self._jobs.enqueue_job(JobType.FETCH, source_id=source_id)

    async def delete_source(self, source_id: str) -> str:
        """Hard delete; jobs cascade, items keep their rows with a null source."""
        await self.get_source(source_id)
        await self._session.execute(delete(Source).where(Source.id == source_id))
        return source_id


def source_service_factory_provider(
    default_poll_interval_minutes: int,
) -> Callable[[AsyncSession], SourceService]:
    def factory(session: AsyncSession) -> SourceService:
        return SourceService(session, default_poll_interval_minutes)

    return factory
