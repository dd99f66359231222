"""Uniform chat-completion gateway over the supported AI providers.

Each provider is a tagged variant with its own request builder and response
parser. ``ProviderGateway.send`` is the only public entry point and is
provider-agnostic: it returns the assistant text plus the decoded raw body.
Non-success responses are fatal and are never retried here.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from insightflow.llm.schemas import ChatMessage, ProviderName, ProviderOptions, ProviderResponse

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 2000

OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class LLMServiceError(Exception):
    """Base error raised when the LLM service cannot fulfill a request."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class ProviderError(LLMServiceError):
    """Provider answered with a non-success HTTP status."""

    def __init__(self, provider: ProviderName, status_code: int, body: str) -> None:
        super().__init__(f"{provider.value} error: {status_code} {body}", "provider_error")
        self.provider = provider
        self.status_code = status_code
        self.body = body


class ProviderUnavailableError(LLMServiceError):
    """Provider could not be reached (connection failure or timeout)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "provider_unavailable")


class ProviderInvalidResponseError(LLMServiceError):
    """Provider returned a success status with an undecodable body."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "provider_response_invalid")


class UnsupportedProviderError(LLMServiceError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Unsupported provider: {provider}", "unsupported_provider")


@dataclass(frozen=True)
class ProviderRequest:
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


@dataclass(frozen=True)
class ProviderVariant:
    name: ProviderName
    build: Callable[[ProviderOptions, Sequence[ChatMessage]], ProviderRequest]
    parse: Callable[[Any], str]


def _temperature(options: ProviderOptions) -> float:
    return DEFAULT_TEMPERATURE if options.temperature is None else options.temperature


def _max_tokens(options: ProviderOptions) -> int:
    return DEFAULT_MAX_TOKENS if options.max_tokens is None else options.max_tokens


def _base_url(options: ProviderOptions, default: str) -> str:
    return (options.base_url or default).rstrip("/")


def _split_system(messages: Sequence[ChatMessage]) -> tuple[str | None, list[ChatMessage]]:
    system = next((m.content for m in messages if m.role == "system"), None)
    return system, [m for m in messages if m.role != "system"]


def _dig(raw: Any, *path: str | int) -> Any:
    current = raw
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
            current = current[key]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
    return current


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


# --- Variant A: OpenAI-compatible chat completions ---------------------------------


def build_openai_request(
    options: ProviderOptions, messages: Sequence[ChatMessage]
) -> ProviderRequest:
    return ProviderRequest(
        url=f"{_base_url(options, OPENAI_BASE_URL)}/chat/completions",
        headers={"Authorization": f"Bearer {options.api_key}"},
        body={
            "model": options.model,
            "messages": [m.model_dump() for m in messages],
            "temperature": _temperature(options),
            "max_tokens": _max_tokens(options),
        },
    )


def parse_openai_response(raw: Any) -> str:
    return _as_text(_dig(raw, "choices", 0, "message", "content"))


# --- Variant B: Anthropic messages ---------------------------------------------------


def build_anthropic_request(
    options: ProviderOptions, messages: Sequence[ChatMessage]
) -> ProviderRequest:
    system, rest = _split_system(messages)
    body: dict[str, Any] = {
        "model": options.model,
        "max_tokens": _max_tokens(options),
        "temperature": _temperature(options),
        "messages": [
            {"role": "assistant" if m.role == "assistant" else "user", "content": m.content}
            for m in rest
        ],
    }
    if system is not None:
        body["system"] = system
    return ProviderRequest(
        url=f"{_base_url(options, ANTHROPIC_BASE_URL)}/messages",
        headers={"x-api-key": options.api_key, "anthropic-version": ANTHROPIC_VERSION},
        body=body,
    )


def parse_anthropic_response(raw: Any) -> str:
    return _as_text(_dig(raw, "content", 0, "text"))


# --- Variant C: Gemini generateContent ----------------------------------------------


def build_gemini_request(
    options: ProviderOptions, messages: Sequence[ChatMessage]
) -> ProviderRequest:
    system, rest = _split_system(messages)
    body: dict[str, Any] = {
        "contents": [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in rest
        ],
        "generationConfig": {
            "temperature": _temperature(options),
            "maxOutputTokens": _max_tokens(options),
        },
    }
    if system is not None:
        body["systemInstruction"] = {"parts": [{"text": system}]}
    return ProviderRequest(
        url=f"{_base_url(options, GEMINI_BASE_URL)}/models/{options.model}:generateContent",
        headers={"x-goog-api-key": options.api_key},
        body=body,
    )


def parse_gemini_response(raw: Any) -> str:
    return _as_text(_dig(raw, "candidates", 0, "content", "parts", 0, "text"))


VARIANTS: dict[ProviderName, ProviderVariant] = {
    ProviderName.OPENAI: ProviderVariant(
        name=ProviderName.OPENAI, build=build_openai_request, parse=parse_openai_response
    ),
    ProviderName.ANTHROPIC: ProviderVariant(
        name=ProviderName.ANTHROPIC, build=build_anthropic_request, parse=parse_anthropic_response
    ),
    ProviderName.GEMINI: ProviderVariant(
        name=ProviderName.GEMINI, build=build_gemini_request, parse=parse_gemini_response
    ),
}


class ProviderGateway:
    """Sends chat exchanges to the provider selected by ``ProviderOptions``."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 120.0) -> None:
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self, options: ProviderOptions, messages: Sequence[ChatMessage]
    ) -> ProviderResponse:
        variant = VARIANTS.get(options.provider)
        if variant is None:
            raise UnsupportedProviderError(str(options.provider))

        request = variant.build(options, messages)
        try:
            response = await self._client.post(request.url, headers=request.headers, json=request.body)
        except httpx.TimeoutException as exc:
            logger.error("%s request timed out: %s", variant.name.value, exc)
            raise ProviderUnavailableError(f"{variant.name.value} request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("%s request failed: %s", variant.name.value, exc)
            raise ProviderUnavailableError(f"{variant.name.value} unreachable: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "%s returned status %s for model %s",
                variant.name.value,
                response.status_code,
                options.model,
            )
            raise ProviderError(variant.name, response.status_code, response.text)

        try:
            raw = response.json()
        except json.JSONDecodeError as exc:
            raise ProviderInvalidResponseError(
                f"{variant.name.value} returned a non-JSON body"
            ) from exc

        return ProviderResponse(content=variant.parse(raw), raw=raw)
