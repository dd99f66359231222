from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from insightflow.db.models.job import JobStatus, JobType


class JobRecord(BaseModel):
    """Wire shape of a job passed from the scheduler to the worker."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1)
    type: JobType
    source_id: str | None = None
    status: JobStatus
    cursor: str | None = None
    retry_count: int = 0
    next_run_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None


class ProcessResponse(BaseModel):
    ok: bool
    error: str | None = None
