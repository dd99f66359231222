"""Worker endpoints called by the scheduler and the processing pipeline.

These routes carry no admin authentication and are meant to be reachable only
on the private network between the scheduler and the worker.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from insightflow.api.dependencies import UnitOfWork, get_uow
from insightflow.api.llm_errors import http_error_for_ai_failure
from insightflow.api.openapi_responses import (
    ErrorExample,
    error_responses,
    merge_responses,
    provider_error_responses,
    validation_error_response,
)
from insightflow.api.schemas.insights import AnalyzeRequest, AnalyzeResponse
from insightflow.api.schemas.jobs import JobRecord, ProcessResponse
from insightflow.core.errors import build_http_error
from insightflow.llm.gateway import LLMServiceError
from insightflow.services.ai_config_service import AIConfigError
from insightflow.services.job_service import JobNotFoundError, JobNotRunningError
from insightflow.services.processor_service import JobProcessingError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/process",
    summary="Process job",
    description="Run a claimed job to completion. The job must be running in the store.",
    response_model=ProcessResponse,
    responses={
        status.HTTP_500_INTERNAL_SERVER_ERROR: {
            "model": ProcessResponse,
            "description": "Job failed and was marked failed",
        },
        **merge_responses(
            error_responses(
                ErrorExample(
                    status_code=status.HTTP_404_NOT_FOUND,
                    error="job_not_found",
                    message="Job 3f1c... not found",
                    description="Unknown job",
                ),
                ErrorExample(
                    status_code=status.HTTP_409_CONFLICT,
                    error="job_not_running",
                    message="Job 3f1c... is completed, not running",
                    description="Job is not in the running state",
                ),
            ),
            validation_error_response(),
        ),
    },
)
async def process_job(
    request: Request,
    job: JobRecord,
    uow: UnitOfWork = Depends(get_uow),
) -> ProcessResponse | JSONResponse:
    try:
        await uow.processor_service.process(job.id)
    except JobNotFoundError as exc:
        raise build_http_error(
            status_code=status.HTTP_404_NOT_FOUND, error=exc.error_code, message=str(exc)
        ) from exc
    except JobNotRunningError as exc:
        raise build_http_error(
            status_code=status.HTTP_409_CONFLICT, error=exc.error_code, message=str(exc)
        ) from exc
    except JobProcessingError as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ProcessResponse(ok=False, error=str(exc)).model_dump(),
        )
    return ProcessResponse(ok=True)


@router.post(
    "/internal/analyze",
    summary="Analyze item content",
    description="Run three-pillar analysis for an item and store one insight per relevant pillar.",
    response_model=AnalyzeResponse,
    responses=merge_responses(
        error_responses(
            ErrorExample(
                status_code=status.HTTP_400_BAD_REQUEST,
                error="missing_fields",
                message="Missing required fields",
                description="item_id or content missing",
            ),
            ErrorExample(
                status_code=status.HTTP_404_NOT_FOUND,
                error="item_not_found",
                message="Item 3f1c... not found",
                description="Unknown item",
            ),
        ),
        provider_error_responses(),
    ),
)
async def analyze(
    request: Request,
    request_data: AnalyzeRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> AnalyzeResponse:
    if not request_data.item_id or not request_data.content:
        raise build_http_error(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="missing_fields",
            message="Missing required fields",
        )
    if await uow.content_store.get_item(request_data.item_id) is None:
        raise build_http_error(
            status_code=status.HTTP_404_NOT_FOUND,
            error="item_not_found",
            message=f"Item {request_data.item_id} not found",
        )

    try:
        result = await uow.analysis_service.analyze_item(
            request_data.item_id,
            content=request_data.content,
            title=request_data.title,
            url=request_data.url,
        )
    except (LLMServiceError, AIConfigError) as exc:
        logger.warning("Analysis failed: %s", exc, extra={"item_id": request_data.item_id})
        raise http_error_for_ai_failure(exc) from exc
    return AnalyzeResponse(analysis=result, core_topic=result.core_topic)
