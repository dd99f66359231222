from __future__ import annotations

from fastapi import APIRouter, Request

from insightflow.api.chat_api import router as chat_router
from insightflow.api.insights_api import insights_router, items_router
from insightflow.api.openapi_responses import rate_limited_response
from insightflow.api.schemas.meta import HealthResponse
from insightflow.api.settings_api import router as settings_router
from insightflow.api.sources_api import router as sources_router
from insightflow.api.worker_api import router as worker_router
from insightflow.core.rate_limit import HEALTH_RATE_LIMIT, limit, rate_limit_ip_key

router = APIRouter()


@router.get(
    "/health",
    tags=["meta"],
    summary="Health check",
    response_model=HealthResponse,
    responses=rate_limited_response(),
)
@limit(HEALTH_RATE_LIMIT, key_func=rate_limit_ip_key)
def health(request: Request) -> HealthResponse:
    """Check the health of the application."""
    return HealthResponse(status="ok")


# Include sub-routers
router.include_router(sources_router, prefix="/sources", tags=["sources"])
router.include_router(insights_router, prefix="/insights", tags=["insights"])
router.include_router(items_router, prefix="/items", tags=["items"])
router.include_router(chat_router, prefix="/chat", tags=["chat"])
router.include_router(settings_router, prefix="/settings", tags=["settings"])

# Mounted at the application root, outside the /api prefix.
internal_router = APIRouter()
internal_router.include_router(worker_router, tags=["worker"])
