from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from insightflow.api.dependencies import UnitOfWork, get_uow, require_admin
from insightflow.api.llm_errors import http_error_for_ai_failure
from insightflow.api.openapi_responses import (
    merge_responses,
    provider_error_responses,
    rate_limited_response,
    unauthorized_response,
    validation_error_response,
)
from insightflow.api.schemas.chat import ChatRequest
from insightflow.core.rate_limit import CHAT_RATE_LIMIT, limit, rate_limit_ip_key
from insightflow.llm.gateway import LLMServiceError
from insightflow.services.ai_config_service import AIConfigError
from insightflow.services.retrieval_service import RetrievalAnswer

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post(
    "",
    summary="Ask the knowledge base",
    description="Answer a question from the most similar ingested content.",
    response_model=RetrievalAnswer,
    responses=merge_responses(
        unauthorized_response(),
        validation_error_response(),
        rate_limited_response(),
        provider_error_responses(),
    ),
)
@limit(CHAT_RATE_LIMIT, key_func=rate_limit_ip_key)
async def chat(
    request: Request,
    request_data: ChatRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> RetrievalAnswer:
    try:
        return await uow.retrieval_service.answer(request_data.query, request_data.top_k)
    except (LLMServiceError, AIConfigError) as exc:
        raise http_error_for_ai_failure(exc) from exc
