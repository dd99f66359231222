from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import status

from insightflow.core.errors import ErrorResponse


@dataclass(frozen=True)
class ErrorExample:
    status_code: int
    error: str
    message: str
    description: str
    summary: str | None = None
    details: Any | None = None
    example_name: str | None = None


def error_responses(*examples: ErrorExample) -> dict[int | str, dict[str, Any]]:
    responses: dict[int | str, dict[str, Any]] = {}
    for example in examples:
        response: dict[str, Any] | None = responses.get(example.status_code)
        if response is None:
            examples_payload: dict[str, dict[str, Any]] = {}
            content: dict[str, dict[str, dict[str, Any]]] = {
                "application/json": {"examples": examples_payload}
            }
            response = {
                "model": ErrorResponse,
                "description": example.description,
                "content": content,
            }
            responses[example.status_code] = response
        assert response is not None

        example_name = example.example_name or example.error
        payload: dict[str, Any] = {
            "error": example.error,
            "message": example.message,
        }
        if example.details is not None:
            payload["details"] = example.details

        example_entry: dict[str, Any] = {
            "summary": example.summary or example.description,
            "value": payload,
        }
        response_content: dict[str, dict[str, dict[str, Any]]] = response["content"]
        response_content["application/json"]["examples"][example_name] = example_entry

    return responses


def rate_limited_response(
    description: str = "Rate limit exceeded",
) -> dict[int | str, dict[str, Any]]:
    return error_responses(
        ErrorExample(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error="rate_limited",
            message="Too many requests",
            description=description,
            summary="Too many requests",
        )
    )


def unauthorized_response(
    description: str = "Missing or invalid token",
) -> dict[int | str, dict[str, Any]]:
    return error_responses(
        ErrorExample(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="unauthorized",
            message="Could not validate credentials",
            description=description,
            summary="Unauthorized",
        )
    )


def validation_error_response(
    description: str = "Invalid request body",
) -> dict[int | str, dict[str, Any]]:
    return error_responses(
        ErrorExample(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            error="validation_error",
            message="Request validation failed",
            description=description,
            summary="Request validation failed",
        )
    )


def not_found_response(
    error: str, message: str, description: str = "Resource not found"
) -> dict[int | str, dict[str, Any]]:
    return error_responses(
        ErrorExample(
            status_code=status.HTTP_404_NOT_FOUND,
            error=error,
            message=message,
            description=description,
        )
    )


def provider_error_responses() -> dict[int | str, dict[str, Any]]:
    """Upstream AI failures shared by every endpoint that calls a provider."""
    return error_responses(
        ErrorExample(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="provider_error",
            message="openai error: 401 {\"error\": \"invalid api key\"}",
            description="Provider rejected the request or returned unusable output",
            summary="Provider error",
        ),
        ErrorExample(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="analysis_unparseable",
            message="No JSON object found in model output",
            description="Provider rejected the request or returned unusable output",
            summary="Unparseable analysis",
        ),
        ErrorExample(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="ai_not_configured",
            message="AI config not set. Please configure in settings.",
            description="AI provider not configured or unreachable",
            summary="AI not configured",
        ),
        ErrorExample(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="provider_unavailable",
            message="openai request timed out",
            description="AI provider not configured or unreachable",
            summary="Provider unavailable",
        ),
    )


def merge_responses(
    *groups: dict[int | str, dict[str, Any]],
) -> dict[int | str, dict[str, Any]]:
    """Combine response maps, merging examples that share a status code."""
    merged: dict[int | str, dict[str, Any]] = {}
    for group in groups:
        for status_code, response in group.items():
            existing = merged.get(status_code)
            if existing is None:
                merged[status_code] = {
                    **response,
                    "content": {
                        "application/json": {
                            "examples": dict(response["content"]["application/json"]["examples"])
                        }
                    },
                }
                continue
            existing["content"]["application/json"]["examples"].update(
                response["content"]["application/json"]["examples"]
            )
    return merged
