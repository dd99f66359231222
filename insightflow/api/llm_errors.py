from __future__ import annotations

from fastapi import HTTPException, status

from insightflow.core.errors import build_http_error
from insightflow.llm.embeddings import EmbeddingError
from insightflow.llm.gateway import (
    LLMServiceError,
    ProviderUnavailableError,
    UnsupportedProviderError,
)
from insightflow.services.ai_config_service import AIConfigError


def http_error_for_ai_failure(exc: LLMServiceError | AIConfigError) -> HTTPException:
    """Translate provider-side failures into the standard error payload."""
    if isinstance(exc, AIConfigError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, (ProviderUnavailableError, EmbeddingError)):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, UnsupportedProviderError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_502_BAD_GATEWAY
    return build_http_error(status_code=status_code, error=exc.error_code, message=str(exc))
