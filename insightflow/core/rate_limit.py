"""Per-client request limits.

Counters live in Redis so the API and worker replicas share them. When Redis
is unreachable slowapi falls back to per-process memory at the default limit.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Final, ParamSpec, TypeVar, cast

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from insightflow.core.config import settings

DEFAULT_RATE_LIMIT: Final[str] = "120/minute"
HEALTH_RATE_LIMIT: Final[str] = "300/minute"
# Each chat request embeds the query and makes one provider call.
CHAT_RATE_LIMIT: Final[str] = "10/minute"
SETTINGS_RATE_LIMIT: Final[str] = "10/minute"

P = ParamSpec("P")
R = TypeVar("R")


def rate_limit_ip_key(request: Request) -> str:
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=rate_limit_ip_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=settings.rate_limit_storage_url,
    in_memory_fallback_enabled=True,
    in_memory_fallback=[DEFAULT_RATE_LIMIT],
)


def limit(
    limit_value: str,
    *,
    key_func: Callable[[Request], str] = rate_limit_ip_key,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Typed wrapper for SlowAPI's limit decorator; replaces the default limit."""
    limit_decorator = cast(
        Callable[..., Callable[[Callable[P, R]], Callable[P, R]]],
        limiter.limit,
    )
    return limit_decorator(limit_value, key_func=key_func, override_defaults=True)
