from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from insightflow.db.models.insight import MaturityRating, Pillar
from insightflow.llm.schemas import ThreePillarResult


class InsightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    item_id: str
    pillar: Pillar
    relevance_score: int
    summary: str
    action_items: list[str] = Field(default_factory=list)
    maturity_rating: MaturityRating
    tags: list[str] = Field(default_factory=list)
    model_version: str
    created_at: datetime


class AnalyzeRequest(BaseModel):
    """Request model for the internal analysis call.

    ``item_id`` and ``content`` are checked by the handler so that a missing
    field is reported as 400 rather than a schema validation error.
    """

    item_id: str | None = None
    content: str | None = None
    title: str = ""
    url: str = ""


class AnalyzeResponse(BaseModel):
    analysis: ThreePillarResult
    core_topic: str
