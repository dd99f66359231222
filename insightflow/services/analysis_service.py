"""Analysis service - runs three-pillar analysis and persists insight rows."""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from insightflow.db.models.insight import Insight, Pillar
from insightflow.llm.analysis import analyze_content
from insightflow.llm.gateway import ProviderGateway
from insightflow.llm.schemas import ThreePillarResult
from insightflow.services.ai_config_service import AIConfigStore

logger = logging.getLogger(__name__)

MAX_INSIGHT_LIMIT = 100
DEFAULT_INSIGHT_LIMIT = 50


async def persist_insights(
    session: AsyncSession, item_id: str, result: ThreePillarResult, model_version: str
) -> list[Insight]:
    """Insert one row per non-null pillar.

    Maturity rating and tags are item-level values copied onto every row.
    """
    rows = [
        Insight(
            item_id=item_id,
            pillar=pillar.value,
            relevance_score=analysis.relevance_score,
            summary=analysis.insight,
            action_items=list(analysis.action_items),
            maturity_rating=result.maturity_rating.value,
            tags=list(result.tags),
            model_version=model_version,
        )
        for pillar, analysis in result.pillars.present()
    ]
    session.add_all(rows)
    await session.flush()
    return rows


class AnalysisService:
    def __init__(
        self, session: AsyncSession, gateway: ProviderGateway, config_store: AIConfigStore
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._config_store = config_store

    async def analyze_item(
        self, item_id: str, *, content: str, title: str, url: str
    ) -> ThreePillarResult:
        """Analyze content with the configured provider and store the insights.

        Raises:
            AIConfigError: When no usable AI configuration exists.
            LLMServiceError: When the provider call or output parsing fails.
        """
        options = await self._config_store.provider_options()
        result = await analyze_content(
            self._gateway, options, content=content, title=title, url=url
        )
        rows = await persist_insights(self._session, item_id, result, options.model)
        logger.info("Stored %d insight(s)", len(rows), extra={"item_id": item_id})
        return result


class InsightService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_insights(
        self, pillar: Pillar | None = None, limit: int = DEFAULT_INSIGHT_LIMIT
    ) -> list[Insight]:
        """Newest insights first; ``limit`` is clamped to [1, 100]."""
        limit = max(1, min(MAX_INSIGHT_LIMIT, limit))
        stmt = select(Insight).order_by(Insight.created_at.desc(), Insight.id).limit(limit)
        if pillar is not None:
            stmt = stmt.where(Insight.pillar == pillar.value)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


def analysis_service_factory_provider(
    gateway: ProviderGateway, config_store: AIConfigStore
) -> Callable[[AsyncSession], AnalysisService]:
    def factory(session: AsyncSession) -> AnalysisService:
        return AnalysisService(session, gateway, config_store)

    return factory


def insight_service_factory_provider() -> Callable[[AsyncSession], InsightService]:
    def factory(session: AsyncSession) -> InsightService:
        return InsightService(session)

    return factory
