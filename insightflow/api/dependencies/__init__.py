"""API-layer dependencies: request-scoped wiring (UoW, admin guard)."""

from insightflow.api.dependencies.admin import require_admin
from insightflow.api.dependencies.unit_of_work import UnitOfWork, get_uow

__all__ = ["UnitOfWork", "get_uow", "require_admin"]
