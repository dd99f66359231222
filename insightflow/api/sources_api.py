from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from insightflow.api.dependencies import UnitOfWork, get_uow, require_admin
from insightflow.api.openapi_responses import (
    merge_responses,
    not_found_response,
    rate_limited_response,
    unauthorized_response,
    validation_error_response,
)
from insightflow.api.schemas.jobs import JobRecord
from insightflow.api.schemas.sources import (
    DeleteSourceResponse,
    SourceCreateRequest,
    SourceResponse,
    SourceUpdateRequest,
)
from insightflow.core.errors import build_http_error
from insightflow.services.source_service import SourceNotFoundError

router = APIRouter(dependencies=[Depends(require_admin)])

SOURCE_NOT_FOUND = not_found_response(
    "source_not_found", "Source 3f1c... not found", description="Source not found"
)


def _not_found(exc: SourceNotFoundError) -> HTTPException:
    return build_http_error(
        status_code=status.HTTP_404_NOT_FOUND,
        error=exc.error_code,
        message=str(exc),
    )


@router.post(
    "",
    summary="Register source",
    description="Register a feed or page source and schedule its first fetch immediately.",
    response_model=SourceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=merge_responses(
        unauthorized_response(), validation_error_response(), rate_limited_response()
    ),
)
async def create_source(
    request: Request,
    request_data: SourceCreateRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> SourceResponse:
    source, _job = await uow.source_service.create_source(
        request_data.type,
        request_data.name,
        request_data.url,
        request_data.poll_interval_minutes,
    )
    return SourceResponse.model_validate(source)


@router.get(
    "",
    summary="List sources",
    response_model=list[SourceResponse],
    responses=merge_responses(unauthorized_response(), rate_limited_response()),
)
async def list_sources(request: Request, uow: UnitOfWork = Depends(get_uow)) -> list[SourceResponse]:
    sources = await uow.source_service.list_sources()
    return [SourceResponse.model_validate(source) for source in sources]


@router.patch(
    "/{source_id}",
    summary="Pause or resume source",
    description="Set a source's status. Resuming schedules a fetch when none is pending.",
    response_model=SourceResponse,
    responses=merge_responses(
        unauthorized_response(), SOURCE_NOT_FOUND, validation_error_response()
    ),
)
async def update_source(
    request: Request,
    source_id: str,
    request_data: SourceUpdateRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> SourceResponse:
    try:
        source = await uow.source_service.set_status(source_id, request_data.status)
    except SourceNotFoundError as exc:
        raise _not_found(exc) from exc
    return SourceResponse.model_validate(source)


@router.post(
    "/{source_id}/fetch",
    summary="Trigger fetch",
    description="Enqueue a fetch job for the source to run on the next scheduler tick.",
    response_model=JobRecord,
    status_code=status.HTTP_202_ACCEPTED,
    responses=merge_responses(unauthorized_response(), SOURCE_NOT_FOUND),
)
async def trigger_fetch(
    request: Request,
    source_id: str,
    uow: UnitOfWork = Depends(get_uow),
) -> JobRecord:
    try:
        job = await uow.source_service.trigger_fetch(source_id)
    except SourceNotFoundError as exc:
        raise _not_found(exc) from exc
    return JobRecord.model_validate(job)


@router.delete(
    "/{source_id}",
    summary="Delete source",
    description="Delete a source and its jobs. Ingested items are kept.",
    response_model=DeleteSourceResponse,
    responses=merge_responses(unauthorized_response(), SOURCE_NOT_FOUND),
)
async def delete_source(
    request: Request,
    source_id: str,
    uow: UnitOfWork = Depends(get_uow),
) -> DeleteSourceResponse:
    try:
        deleted_id = await uow.source_service.delete_source(source_id)
    except SourceNotFoundError as exc:
        raise _not_found(exc) from exc
    return DeleteSourceResponse(deleted_source_id=deleted_id)
