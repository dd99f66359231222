from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from insightflow.db.base import Base


class SourceType(enum.StrEnum):
    FEED = "feed"
    PAGE = "page"


class SourceStatus(enum.StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"


class Source(Base):
    __tablename__ = "sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type: Mapped[str] = mapped_column(String(16))
    name: Mapped[str] = mapped_column(String(300))
    url: Mapped[str] = mapped_column(Text)
    poll_interval_minutes: Mapped[int] = mapped_column(Integer, default=360)
    status: Mapped[str] = mapped_column(String(16), default=SourceStatus.ACTIVE.value, index=True)
    last_fetched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # Last conditional-fetch validator returned by the source (HTTP ETag).
    etag: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    jobs = relationship("Job", back_populates="source", passive_deletes=True)
    items = relationship("Item", back_populates="source", passive_deletes=True)
