from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status

from insightflow.api.dependencies import UnitOfWork, get_uow, require_admin
from insightflow.api.openapi_responses import (
    merge_responses,
    not_found_response,
    unauthorized_response,
)
from insightflow.api.schemas.insights import InsightResponse
from insightflow.api.schemas.jobs import JobRecord
from insightflow.core.errors import build_http_error
from insightflow.db.models.insight import Pillar
from insightflow.db.models.job import JobType
from insightflow.services.analysis_service import DEFAULT_INSIGHT_LIMIT

insights_router = APIRouter(dependencies=[Depends(require_admin)])
items_router = APIRouter(dependencies=[Depends(require_admin)])


@insights_router.get(
    "",
    summary="List insights",
    description="Newest insights first, optionally filtered by pillar. Limit is clamped to 1-100.",
    response_model=list[InsightResponse],
    responses=unauthorized_response(),
)
async def list_insights(
    request: Request,
    pillar: Pillar | None = None,
    limit: int = Query(default=DEFAULT_INSIGHT_LIMIT),
    uow: UnitOfWork = Depends(get_uow),
) -> list[InsightResponse]:
    insights = await uow.insight_service.list_insights(pillar=pillar, limit=limit)
    return [InsightResponse.model_validate(insight) for insight in insights]


@items_router.post(
    "/{item_id}/analyze",
    summary="Re-analyze item",
    description="Enqueue an analyze job that re-runs analysis from stored content.",
    response_model=JobRecord,
    status_code=status.HTTP_202_ACCEPTED,
    responses=merge_responses(
        unauthorized_response(),
        not_found_response("item_not_found", "Item 3f1c... not found", "Item not found"),
    ),
)
async def analyze_item(
    request: Request,
    item_id: str,
    uow: UnitOfWork = Depends(get_uow),
) -> JobRecord:
    item = await uow.content_store.get_item(item_id)
    if item is None:
        raise build_http_error(
            status_code=status.HTTP_404_NOT_FOUND,
            error="item_not_found",
            message=f"Item {item_id} not found",
        )
    job = await uow.job_service.enqueue_job(JobType.ANALYZE, source_id=None, cursor=item.id)
    return JobRecord.model_validate(job)
