"""API request and response schemas.

Import request/response models from the submodules or from this package for a
single entry point.
"""

from __future__ import annotations

from insightflow.api.schemas.chat import ChatRequest
from insightflow.api.schemas.insights import AnalyzeRequest, AnalyzeResponse, InsightResponse
from insightflow.api.schemas.jobs import JobRecord, ProcessResponse
from insightflow.api.schemas.meta import HealthResponse, OkResponse
from insightflow.api.schemas.sources import (
    DeleteSourceResponse,
    SourceCreateRequest,
    SourceResponse,
    SourceUpdateRequest,
)

__all__ = [
    "AnalyzeRequest",
    "AnalyzeResponse",
    "ChatRequest",
    "DeleteSourceResponse",
    "HealthResponse",
    "InsightResponse",
    "JobRecord",
    "OkResponse",
    "ProcessResponse",
    "SourceCreateRequest",
    "SourceResponse",
    "SourceUpdateRequest",
]
