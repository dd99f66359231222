from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Request model for a knowledge-base question."""

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"query": "What is new in vector databases?", "top_k": 5}]}
    )

    query: str = Field(..., min_length=1, max_length=4000, description="Free-text question")
    top_k: int | None = Field(
        default=None,
        description="Number of documents to retrieve; 0 or unset means 5, otherwise clamped to 1-10",
    )
