"""Three-pillar analysis: prompt the configured provider and normalize its JSON."""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from insightflow.db.models.insight import MaturityRating, Pillar
from insightflow.llm.gateway import LLMServiceError, ProviderGateway
from insightflow.llm.prompts import ANALYSIS_SYSTEM_PROMPT, get_three_pillar_prompt
from insightflow.llm.schemas import (
    ChatMessage,
    PillarAnalysis,
    PillarSet,
    ProviderOptions,
    ThreePillarResult,
)

logger = logging.getLogger(__name__)


class AnalysisParseError(LLMServiceError):
    """Model output did not contain a usable JSON object."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "analysis_unparseable")


def normalize_maturity(value: Any) -> MaturityRating:
    """Map a rating case-insensitively onto the enumeration, defaulting to ASSESS."""
    candidate = str(value).strip().upper() if value is not None else ""
    try:
        return MaturityRating(candidate)
    except ValueError:
        return MaturityRating.ASSESS


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(entry) for entry in value if entry is not None]


def _is_empty_score(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0


def _coerce_score(value: Any) -> int:
    """Clamp a score to 0..100; anything that is not a finite number scores 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0
    else:
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, min(100, round(number)))


def normalize_pillar(value: Any) -> PillarAnalysis | None:
    """A pillar scored 0 or null means "nothing to say", not a zero-value insight.

    Any other pillar object is kept; a missing or unreadable score becomes 0.
    """
    if not isinstance(value, dict):
        return None
    raw_score = value.get("relevance_score")
    if "relevance_score" in value and _is_empty_score(raw_score):
        return None
    return PillarAnalysis(
        relevance_score=_coerce_score(raw_score),
        insight=str(value.get("insight") or ""),
        action_items=_string_list(value.get("action_items")),
    )


def _extract_json_object(text: str) -> dict[str, Any]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise AnalysisParseError("No JSON found in response")
    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise AnalysisParseError(f"Invalid JSON in response: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise AnalysisParseError("No JSON object found in response")
    return parsed


def parse_analysis_response(text: str) -> ThreePillarResult:
    parsed = _extract_json_object(text)
    raw_pillars = parsed.get("pillars")
    if not isinstance(raw_pillars, dict):
        raw_pillars = {}

    pillars = PillarSet(
        **{pillar.value: normalize_pillar(raw_pillars.get(pillar.value)) for pillar in Pillar}
    )
    core_topic = parsed.get("core_topic")
    return ThreePillarResult(
        core_topic=core_topic if isinstance(core_topic, str) else "",
        pillars=pillars,
        maturity_rating=normalize_maturity(parsed.get("maturity_rating")),
        tags=_string_list(parsed.get("tags")),
        key_quotes=_string_list(parsed.get("key_quotes")),
    )


async def analyze_content(
    gateway: ProviderGateway,
    options: ProviderOptions,
    *,
    content: str,
    title: str,
    url: str,
) -> ThreePillarResult:
    """Run the three-pillar prompt through the gateway and parse the answer."""
    messages = [
        ChatMessage(role="system", content=ANALYSIS_SYSTEM_PROMPT),
        ChatMessage(role="user", content=get_three_pillar_prompt(content, title, url)),
    ]
    response = await gateway.send(options, messages)
    result = parse_analysis_response(response.content)
    logger.info(
        "Analysis produced %d pillar(s), rating %s",
        len(result.pillars.present()),
        result.maturity_rating.value,
        extra={"url": url},
    )
    return result
