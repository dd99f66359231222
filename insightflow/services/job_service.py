"""Job state machine: pending -> running -> {completed, failed}.

Every transition is a guarded conditional UPDATE, so a job that lost a race
(claimed by another tick, or already terminal) is left untouched and reported
as ``None`` instead of being overwritten.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from insightflow.db.models.job import TERMINAL_STATUSES, Job, JobStatus, JobType
from insightflow.db.models.source import Source, SourceStatus

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_LIMIT = 10


class JobError(Exception):
    """Base error for job lifecycle failures."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class JobNotFoundError(JobError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found", "job_not_found")


class JobNotRunningError(JobError):
    """Raised when the worker is handed a job the store does not show as running."""

    def __init__(self, job_id: str, status: str) -> None:
        super().__init__(f"Job {job_id} is {status}, not running", "job_not_running")


class UnsupportedJobTypeError(JobError):
    def __init__(self, job_type: str) -> None:
        super().__init__(f"Unsupported job type: {job_type}", "unsupported_job_type")


def utcnow() -> datetime:
    return datetime.now(UTC)


def should_retry(job: Job) -> bool:
    """Whether a failed job should be re-queued.

    Failed jobs stay failed; ``retry_count`` is kept for a future backoff policy.
    """
    return False


class JobService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def enqueue_job(
        self,
        job_type: JobType,
        source_id: str | None = None,
        next_run_at: datetime | None = None,
        cursor: str | None = None,
    ) -> Job:
        job = Job(
            type=job_type.value,
            source_id=source_id,
            status=JobStatus.PENDING.value,
            cursor=cursor,
            retry_count=0,
            next_run_at=next_run_at or utcnow(),
        )
        self._session.add(job)
        await self._session.flush()
        logger.info(
            "Enqueued %s job",
            job_type.value,
            extra={"job_id": job.id, "source_id": source_id},
        )
        return job

    async def get_job(self, job_id: str) -> Job | None:
        return await self._session.get(Job, job_id)

    async def has_pending_fetch(self, source_id: str) -> bool:
        result = await self._session.execute(
            select(Job.id)
            .where(
                Job.source_id == source_id,
                Job.type == JobType.FETCH.value,
                Job.status == JobStatus.PENDING.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def claim_due_jobs(
        self, now: datetime | None = None, limit: int = DEFAULT_CLAIM_LIMIT
    ) -> list[Job]:
        """Move up to ``limit`` due pending jobs to running and return them.

        A job is skipped when another claimer got it first, or when its source
        already has a running job.
        """
        now = now or utcnow()
        result = await self._session.execute(
            select(Job.id)
            .where(Job.status == JobStatus.PENDING.value, Job.next_run_at <= now)
            .order_by(Job.next_run_at.asc())
            .limit(limit)
        )
        candidate_ids = list(result.scalars().all())

        other = aliased(Job)
        source_busy = (
            select(other.id)
            .where(
                other.source_id == Job.source_id,
                other.status == JobStatus.RUNNING.value,
                other.id != Job.id,
            )
            .exists()
        )

        claimed: list[Job] = []
        for job_id in candidate_ids:
            stmt = (
                update(Job)
                .where(
                    Job.id == job_id,
                    Job.status == JobStatus.PENDING.value,
                    ~source_busy,
                )
                .values(status=JobStatus.RUNNING.value, started_at=now)
                .returning(Job)
                .execution_options(synchronize_session="fetch")
            )
            job = (await self._session.execute(stmt)).scalar_one_or_none()
            if job is None:
                logger.info("Job already claimed or source busy; skipping", extra={"job_id": job_id})
                continue
            claimed.append(job)
        return claimed

    async def complete_job(self, job_id: str, now: datetime | None = None) -> Job | None:
        """Mark a running job completed and schedule the source's next fetch."""
        now = now or utcnow()
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == JobStatus.RUNNING.value)
            .values(status=JobStatus.COMPLETED.value, completed_at=now)
            .returning(Job)
            .execution_options(synchronize_session="fetch")
        )
        job = (await self._session.execute(stmt)).scalar_one_or_none()
        if job is None:
            logger.warning("Job not running; completion ignored", extra={"job_id": job_id})
            # The scheduler fails a job whose dispatch timed out while the worker
            # kept going; the finished fetch still owns the source's next poll.
            stale = await self.get_job(job_id)
            if stale is not None and stale.status == JobStatus.FAILED.value:
                await self._schedule_next_fetch(stale, now)
            return None

        await self._schedule_next_fetch(job, now)
        logger.info("Job completed", extra={"job_id": job_id})
        return job

    async def _schedule_next_fetch(self, job: Job, now: datetime) -> None:
        if job.type == JobType.FETCH.value and job.source_id is not None:
            await self.enqueue_follow_up_fetch(job.source_id, now)

    async def fail_job(
        self, job_id: str, error_message: str, now: datetime | None = None
    ) -> Job | None:
        """Mark a non-terminal job failed, persisting the error text."""
        now = now or utcnow()
        stmt = (
            update(Job)
            .where(
                Job.id == job_id,
                Job.status.not_in([status.value for status in TERMINAL_STATUSES]),
            )
            .values(
                status=JobStatus.FAILED.value,
                error_message=error_message,
                completed_at=now,
            )
            .returning(Job)
            .execution_options(synchronize_session="fetch")
        )
        job = (await self._session.execute(stmt)).scalar_one_or_none()
        if job is None:
            logger.info("Job already terminal; failure ignored", extra={"job_id": job_id})
            return None
        logger.warning("Job failed: %s", error_message, extra={"job_id": job_id})
        return job

    async def enqueue_follow_up_fetch(self, source_id: str, now: datetime) -> Job | None:
        source = await self._session.get(Source, source_id)
        if source is None or source.status != SourceStatus.ACTIVE.value:
            return None
        if await self.has_pending_fetch(source_id):
            return None
        return await self.enqueue_job(
            JobType.FETCH,
            source_id=source_id,
            next_run_at=now + timedelta(minutes=source.poll_interval_minutes),
        )


def job_service_factory_provider() -> Callable[[AsyncSession], JobService]:
    def factory(session: AsyncSession) -> JobService:
        return JobService(session)

    return factory
