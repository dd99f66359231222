from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from insightflow.api.dependencies import UnitOfWork, get_uow, require_admin
from insightflow.api.openapi_responses import (
    merge_responses,
    rate_limited_response,
    unauthorized_response,
    validation_error_response,
)
from insightflow.api.schemas.meta import OkResponse
from insightflow.core.errors import build_http_error
from insightflow.core.rate_limit import SETTINGS_RATE_LIMIT, limit, rate_limit_ip_key
from insightflow.services.ai_config_service import AIConfigError, AIConfigUpdate, AIConfigView

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post(
    "",
    summary="Configure AI provider",
    description="Encrypt the provider credential and replace the stored AI configuration.",
    response_model=OkResponse,
    responses=merge_responses(
        unauthorized_response(), validation_error_response(), rate_limited_response()
    ),
)
@limit(SETTINGS_RATE_LIMIT, key_func=rate_limit_ip_key)
async def save_settings(
    request: Request,
    request_data: AIConfigUpdate,
    uow: UnitOfWork = Depends(get_uow),
) -> OkResponse:
    await uow.ai_config_store.save(request_data)
    return OkResponse(ok=True)


@router.get(
    "",
    summary="Get AI provider settings",
    description="Return the configured provider and model. The credential is never returned.",
    response_model=AIConfigView,
    responses=unauthorized_response(),
)
async def get_settings(request: Request, uow: UnitOfWork = Depends(get_uow)) -> AIConfigView:
    try:
        return await uow.ai_config_store.view()
    except AIConfigError as exc:
        raise build_http_error(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error=exc.error_code,
            message=str(exc),
        ) from exc
