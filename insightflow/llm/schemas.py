from __future__ import annotations

import enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from insightflow.db.models.insight import MaturityRating, Pillar


class ProviderName(enum.StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class ChatMessage(BaseModel):
    """One message of a provider-agnostic chat exchange."""

    role: Literal["system", "user", "assistant"]
    content: str


class ProviderOptions(BaseModel):
    """Selects a provider variant and its request parameters."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    api_key: str = Field(..., repr=False)
    model: str
    base_url: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


class ProviderResponse(BaseModel):
    content: str
    raw: Any = None


class PillarAnalysis(BaseModel):
    relevance_score: int = Field(..., ge=0, le=100)
    insight: str
    action_items: list[str] = Field(default_factory=list)


class PillarSet(BaseModel):
    career_business: PillarAnalysis | None = None
    market_startup: PillarAnalysis | None = None
    self_growth: PillarAnalysis | None = None

    def present(self) -> list[tuple[Pillar, PillarAnalysis]]:
        """Non-null pillars in fixed pillar order."""
        pairs: list[tuple[Pillar, PillarAnalysis]] = []
        for pillar in Pillar:
            analysis = getattr(self, pillar.value)
            if analysis is not None:
                pairs.append((pillar, analysis))
        return pairs


class ThreePillarResult(BaseModel):
    """Normalized three-pillar analysis of one content item."""

    core_topic: str = ""
    pillars: PillarSet = Field(default_factory=PillarSet)
    maturity_rating: MaturityRating = MaturityRating.ASSESS
    tags: list[str] = Field(default_factory=list)
    key_quotes: list[str] = Field(default_factory=list)
