"""Worker-side job execution.

A job handed to the worker must be ``running`` in the store. The work itself
commits per ingested item, and the terminal transition (completion together
with the follow-up fetch, or failure with its message) is committed in its own
transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.db.models.job import Job, JobStatus, JobType
from insightflow.db.models.source import Source, SourceStatus, SourceType
from insightflow.ingestion.feed_parser import DEFAULT_ENTRY_LIMIT, FeedEntry, parse_feed
from insightflow.ingestion.fetcher import ContentFetcher
from insightflow.ingestion.text import extract_text
from insightflow.services.analysis_service import AnalysisService
from insightflow.services.content_store import ContentStore
from insightflow.services.job_service import (
    JobNotFoundError,
    JobNotRunningError,
    JobService,
    UnsupportedJobTypeError,
)

logger = logging.getLogger(__name__)


class JobProcessingError(Exception):
    """Raised after a job has been marked failed."""

    def __init__(self, job_id: str, message: str) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.error_code = "job_failed"


class ItemProcessingError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.error_code = "item_unavailable"


class ProcessorService:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        fetcher: ContentFetcher,
        content_store_factory: Callable[[AsyncSession], ContentStore],
        analysis_service_factory: Callable[[AsyncSession], AnalysisService],
        entry_limit: int = DEFAULT_ENTRY_LIMIT,
    ) -> None:
        self._session_factory = session_factory
        self._fetcher = fetcher
        self._content_store_factory = content_store_factory
        self._analysis_service_factory = analysis_service_factory
        self._entry_limit = entry_limit

    async def process(self, job_id: str) -> Job:
        """Run a claimed job to a terminal state.

        Raises:
            JobNotFoundError: When the job does not exist.
            JobNotRunningError: When the job is not in the running state.
            JobProcessingError: When the work failed; the job is already marked failed.
        """
        async with self._session_factory() as session:
            job = await JobService(session).get_job(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status != JobStatus.RUNNING.value:
                raise JobNotRunningError(job_id, job.status)

        logger.info("Processing %s job", job.type, extra={"job_id": job.id})
        try:
            await self._run(job)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.exception("Job processing failed", extra={"job_id": job.id})
            async with self._session_factory() as session, session.begin():
                await JobService(session).fail_job(job.id, message)
            raise JobProcessingError(job.id, message) from exc

        async with self._session_factory() as session, session.begin():
            completed = await JobService(session).complete_job(job.id)
        return completed or job

    async def _run(self, job: Job) -> None:
        if job.type == JobType.FETCH.value:
            await self._run_fetch(job)
        elif job.type == JobType.ANALYZE.value:
            await self._run_analyze(job)
        elif job.type == JobType.REPORT.value:
            logger.warning("Report jobs have no handler; completing as no-op", extra={"job_id": job.id})
        else:
            raise UnsupportedJobTypeError(job.type)

    async def _run_fetch(self, job: Job) -> None:
        if not job.source_id:
            raise ValueError("No source_id in job")

        async with self._session_factory() as session:
            source = await session.get(Source, job.source_id)
            if source is None:
                raise ValueError("Source not found")
            if source.status != SourceStatus.ACTIVE.value:
                logger.info("Source paused; skipping fetch", extra={"source_id": source.id})
                return

            candidates = await self._collect_candidates(source)
            for entry in candidates:
                await self._ingest_entry(session, source.id, entry)
                await session.commit()

            source.last_fetched_at = datetime.now(UTC)
            await session.commit()

    async def _collect_candidates(self, source: Source) -> list[FeedEntry]:
        if source.type != SourceType.FEED.value:
            return [FeedEntry(title=source.name, url=source.url)]

        result = await self._fetcher.fetch_feed(source.url, source.etag)
        if result.not_modified:
            return []
        if result.etag:
            source.etag = result.etag
        entries = parse_feed(result.body, limit=self._entry_limit)
        logger.info("Feed yielded %d entries", len(entries), extra={"source_id": source.id})
        return entries

    async def _ingest_entry(self, session: AsyncSession, source_id: str, entry: FeedEntry) -> None:
        content_store = self._content_store_factory(session)
        if await content_store.find_item_id(entry.url) is not None:
            return

        markup = await self._fetcher.fetch_page(entry.url)
        text = extract_text(markup)
        ingested = await content_store.ingest(
            url=entry.url,
            title=entry.title,
            text=text,
            source_id=source_id,
            published_at=entry.published_at,
        )
        if not ingested.created or ingested.item_id is None:
            return
        # Keep the item even if analysis fails; it can be re-analyzed later.
        await session.commit()
        if not text:
            logger.info(
                "No extractable text; skipping analysis", extra={"item_id": ingested.item_id}
            )
            return

        await self._analysis_service_factory(session).analyze_item(
            ingested.item_id, content=text, title=entry.title, url=entry.url
        )

    async def _run_analyze(self, job: Job) -> None:
        item_id = job.cursor
        if not item_id:
            raise ValueError("No item id in analyze job cursor")

        async with self._session_factory() as session:
            content_store = self._content_store_factory(session)
            item = await content_store.get_item(item_id)
            if item is None:
                raise ItemProcessingError(f"Item {item_id} not found")
            if not item.content_key:
                raise ItemProcessingError(f"Item {item_id} has no stored content")
            document = await content_store.load_content(item.content_key)
            if document is None:
                raise ItemProcessingError(f"Content for item {item_id} is missing")

            await self._analysis_service_factory(session).analyze_item(
                item.id,
                content=str(document.get("content", "")),
                title=item.title,
                url=item.url,
            )
            await session.commit()
