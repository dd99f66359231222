from __future__ import annotations

import secrets

from fastapi.security import HTTPBearer

from insightflow.core.config import settings

# Bearer token extractor; missing headers are reported by the dependency, not by FastAPI.
bearer_scheme = HTTPBearer(auto_error=False)


def verify_admin_token(token: str | None) -> bool:
    """Constant-time comparison against the configured admin token."""
    if not token:
        return False
    return secrets.compare_digest(token.encode("utf-8"), settings.admin_token.encode("utf-8"))
