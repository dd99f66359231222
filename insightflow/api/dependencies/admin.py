"""Dependency that guards admin endpoints with the static bearer token."""

from __future__ import annotations

from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials

from insightflow.core.auth import bearer_scheme, verify_admin_token
from insightflow.core.errors import build_http_error


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """FastAPI dependency rejecting requests without the admin bearer token."""
    token = credentials.credentials if credentials is not None else None
    if not verify_admin_token(token):
        raise build_http_error(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="unauthorized",
            message="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
