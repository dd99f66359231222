"""End-to-end ingestion cycle: source registration, claim, processing and analysis."""

from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.db.models.insight import Insight
from insightflow.db.models.item import Item
from insightflow.db.models.job import Job, JobStatus, JobType
from insightflow.db.models.source import Source, SourceType
from insightflow.services.job_service import JobService
from insightflow.services.processor_service import JobProcessingError, ProcessorService
from insightflow.services.source_service import SourceService

PAGE = "<html><head><script>track()</script></head><body><p>Agents are changing work.</p></body></html>"

FEED = """<rss><channel>
<item><title>One</title><link>https://news.example.com/1</link></item>
<item><title>Two</title><link>https://news.example.com/2</link></item>
<item><title>Broken</title></item>
<item><title>Three</title><link>https://news.example.com/3</link></item>
</channel></rss>"""


async def _count(session: AsyncSession, model: type) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _register_and_claim(
    session: AsyncSession, source_type: SourceType, url: str
) -> tuple[Source, Job]:
    source, _ = await SourceService(session).create_source(source_type, "Example", url)
    claimed = await JobService(session).claim_due_jobs()
    await session.commit()
    assert len(claimed) == 1
    return source, claimed[0]


async def _reload(session: AsyncSession, model: type, key: str) -> Any:
    session.expire_all()
    return await session.get(model, key)


@pytest.mark.asyncio
async def test_page_source_end_to_end(
    db_session: AsyncSession,
    processor: ProcessorService,
    web: Any,
    vector_index: Any,
    blob_store: Any,
) -> None:
    """Test that one page becomes one item, one vector and one insight."""
    # Arrange
    web.serve("https://example.com/a", PAGE)
    source, job = await _register_and_claim(db_session, SourceType.PAGE, "https://example.com/a")

    # Act
    await processor.process(job.id)

    # Assert
    items = (await db_session.execute(select(Item))).scalars().all()
    assert len(items) == 1
    assert items[0].url == "https://example.com/a"
    assert items[0].source_id == source.id
    assert list(vector_index.entries) == [items[0].id]
    assert blob_store.documents[items[0].content_key]["content"] == "Agents are changing work."

    insights = (await db_session.execute(select(Insight))).scalars().all()
    assert [(row.pillar, row.relevance_score) for row in insights] == [("career_business", 80)]
    assert insights[0].maturity_rating == "TRIAL"
    assert insights[0].tags == ["agents", "evals"]
    assert insights[0].model_version == "gpt-test"

    finished = await _reload(db_session, Job, job.id)
    assert finished.status == JobStatus.COMPLETED.value
    pending = (
        await db_session.execute(
            select(Job).where(Job.source_id == source.id, Job.status == JobStatus.PENDING.value)
        )
    ).scalars().all()
    assert len(pending) == 1
    refreshed_source = await _reload(db_session, Source, source.id)
    assert refreshed_source.last_fetched_at is not None


@pytest.mark.asyncio
async def test_refetch_does_not_duplicate_items(
    db_session: AsyncSession, processor: ProcessorService, web: Any, vector_index: Any
) -> None:
    # Arrange
    web.serve("https://example.com/a", PAGE)
    source, job = await _register_and_claim(db_session, SourceType.PAGE, "https://example.com/a")
    await processor.process(job.id)
    second = await SourceService(db_session).trigger_fetch(source.id)
    await db_session.commit()
    await JobService(db_session).claim_due_jobs()
    await db_session.commit()
    page_requests = len(web.requests)

    # Act
    await processor.process(second.id)

    # Assert
    assert await _count(db_session, Item) == 1
    assert await _count(db_session, Insight) == 1
    assert len(vector_index.entries) == 1
    assert len(web.requests) == page_requests


@pytest.mark.asyncio
async def test_feed_source_ingests_each_entry(
    db_session: AsyncSession, processor: ProcessorService, web: Any
) -> None:
    """Test that a feed yields one item per complete entry and keeps the ETag."""
    # Arrange
    web.serve("https://news.example.com/rss", FEED, headers={"ETag": '"v1"'})
    for n in (1, 2, 3):
        web.serve(f"https://news.example.com/{n}", f"<p>story {n}</p>")
    source, job = await _register_and_claim(
        db_session, SourceType.FEED, "https://news.example.com/rss"
    )

    # Act
    await processor.process(job.id)

    # Assert
    urls = (await db_session.execute(select(Item.url).order_by(Item.url))).scalars().all()
    assert urls == [f"https://news.example.com/{n}" for n in (1, 2, 3)]
    assert await _count(db_session, Insight) == 3
    refreshed = await _reload(db_session, Source, source.id)
    assert refreshed.etag == '"v1"'


@pytest.mark.asyncio
async def test_fetch_failure_marks_job_failed(
    db_session: AsyncSession, processor: ProcessorService, web: Any
) -> None:
    # Arrange
    web.serve("https://news.example.com/rss", status_code=500)
    source, job = await _register_and_claim(
        db_session, SourceType.FEED, "https://news.example.com/rss"
    )

    # Act
    with pytest.raises(JobProcessingError):
        await processor.process(job.id)

    # Assert
    failed = await _reload(db_session, Job, job.id)
    assert failed.status == JobStatus.FAILED.value
    assert failed.error_message == "Fetch failed: 500"
    jobs = (await db_session.execute(select(Job).where(Job.source_id == source.id))).scalars()
    assert len(list(jobs)) == 1


@pytest.mark.asyncio
async def test_analysis_failure_keeps_item_for_reanalysis(
    db_session: AsyncSession,
    processor: ProcessorService,
    web: Any,
    config_store: Any,
    provider_options: Any,
) -> None:
    """Test that an item survives a failed analysis and an analyze job recovers it."""
    # Arrange
    web.serve("https://example.com/a", PAGE)
    _, job = await _register_and_claim(db_session, SourceType.PAGE, "https://example.com/a")
    config_store.options = None

    # Act
    with pytest.raises(JobProcessingError, match="AI config not set"):
        await processor.process(job.id)

    # Assert
    item = (await db_session.execute(select(Item))).scalar_one()
    assert await _count(db_session, Insight) == 0

    # Arrange: configure AI and queue an analyze job for the stored item
    config_store.options = provider_options
    jobs = JobService(db_session)
    analyze = await jobs.enqueue_job(JobType.ANALYZE, cursor=item.id)
    await db_session.commit()
    claimed = await jobs.claim_due_jobs()
    await db_session.commit()
    assert [j.id for j in claimed] == [analyze.id]

    # Act
    await processor.process(analyze.id)

    # Assert
    assert await _count(db_session, Insight) == 1
    done = await _reload(db_session, Job, analyze.id)
    assert done.status == JobStatus.COMPLETED.value
