from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from insightflow.db.models.source import SourceStatus, SourceType


class SourceCreateRequest(BaseModel):
    """Request model for registering a source."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "type": "feed",
                    "name": "Example Engineering Blog",
                    "url": "https://example.com/feed.xml",
                    "poll_interval_minutes": 360,
                }
            ]
        }
    )

    type: SourceType = Field(..., description="Feed (RSS) or single page")
    name: str = Field(..., min_length=1, max_length=300, examples=["Example Engineering Blog"])
    url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="Absolute http(s) URL",
        examples=["https://example.com/feed.xml"],
    )
    poll_interval_minutes: int | None = Field(
        default=None, ge=1, le=60 * 24 * 30, description="Minutes between fetches"
    )

    @field_validator("url")
    @classmethod
    def validate_url_scheme(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class SourceUpdateRequest(BaseModel):
    """Request model for pausing or resuming a source."""

    model_config = ConfigDict(json_schema_extra={"examples": [{"status": "paused"}]})

    status: SourceStatus


class SourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: SourceType
    name: str
    url: str
    poll_interval_minutes: int
    status: SourceStatus
    last_fetched_at: datetime | None = None
    etag: str | None = None
    created_at: datetime


class DeleteSourceResponse(BaseModel):
    deleted_source_id: str
