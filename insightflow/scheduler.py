"""Scheduler: claims due jobs and dispatches them to the worker.

Run one tick with ``insightflow-scheduler --once`` (or ``python -m
insightflow.scheduler --once``); without ``--once`` it ticks every
``SCHEDULER_INTERVAL_SECONDS``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.api.schemas.jobs import JobRecord
from insightflow.core.config import settings
from insightflow.core.logging import configure_logging
from insightflow.db.session import dispose_engine, new_session
from insightflow.services.job_service import DEFAULT_CLAIM_LIMIT, JobService

logger = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 500


class WorkerDispatchError(Exception):
    """Raised when the worker cannot be reached or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = "dispatch_failed"


@dataclass(frozen=True)
class TickResult:
    claimed: int
    dispatched: int
    failed: int


class WorkerDispatcher:
    """POSTs job records to the worker's ``/process`` endpoint."""

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 600.0,
    ) -> None:
        self._process_url = f"{base_url.rstrip('/')}/process"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def dispatch(self, job: JobRecord) -> None:
        try:
            response = await self._client.post(self._process_url, json=job.model_dump(mode="json"))
        except httpx.HTTPError as exc:
            raise WorkerDispatchError(f"Worker unreachable: {exc}") from exc
        if not response.is_success:
            raise WorkerDispatchError(
                f"Worker returned {response.status_code}: {response.text[:_ERROR_BODY_LIMIT]}",
                response.status_code,
            )


async def dispatch_job(
    job: JobRecord,
    dispatcher: WorkerDispatcher,
    session_factory: Callable[[], AsyncSession],
) -> bool:
    """Dispatch one job; any failure marks that job failed and returns False."""
    try:
        await dispatcher.dispatch(job)
    except Exception as exc:
        message = str(exc) or exc.__class__.__name__
        logger.error("Dispatch failed: %s", message, extra={"job_id": job.id})
        async with session_factory() as session, session.begin():
            await JobService(session).fail_job(job.id, message)
        return False
    logger.info("Dispatched %s job", job.type.value, extra={"job_id": job.id})
    return True


async def run_tick(
    session_factory: Callable[[], AsyncSession],
    dispatcher: WorkerDispatcher,
    *,
    batch_size: int = DEFAULT_CLAIM_LIMIT,
    now: datetime | None = None,
) -> TickResult:
    """Claim up to ``batch_size`` due jobs and dispatch them concurrently."""
    async with session_factory() as session, session.begin():
        jobs = await JobService(session).claim_due_jobs(now, limit=batch_size)
        records = [JobRecord.model_validate(job) for job in jobs]

    if not records:
        logger.debug("No due jobs")
        return TickResult(claimed=0, dispatched=0, failed=0)

    outcomes = await asyncio.gather(
        *(dispatch_job(record, dispatcher, session_factory) for record in records),
        return_exceptions=True,
    )
    dispatched = 0
    for record, outcome in zip(records, outcomes, strict=True):
        if isinstance(outcome, BaseException):
            logger.error(
                "Could not record dispatch failure: %s", outcome, extra={"job_id": record.id}
            )
        elif outcome:
            dispatched += 1

    result = TickResult(
        claimed=len(records), dispatched=dispatched, failed=len(records) - dispatched
    )
    logger.info(
        "Tick finished: %d claimed, %d dispatched, %d failed",
        result.claimed,
        result.dispatched,
        result.failed,
    )
    return result


async def run_scheduler(once: bool = False) -> None:
    dispatcher = WorkerDispatcher(
        settings.worker_base_url, timeout=settings.dispatch_timeout_seconds
    )
    try:
        while True:
            try:
                await run_tick(
                    new_session, dispatcher, batch_size=settings.scheduler_batch_size
                )
            except Exception:
                if once:
                    raise
                logger.exception("Scheduler tick failed")
            if once:
                break
            await asyncio.sleep(settings.scheduler_interval_seconds)
    finally:
        await dispatcher.aclose()
        await dispose_engine()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Dispatch due ingestion jobs to the worker.")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    args = parser.parse_args(argv)

    configure_logging()
    asyncio.run(run_scheduler(once=args.once))


if __name__ == "__main__":
    main()
