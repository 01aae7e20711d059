"""Cached extraction results, one row per video."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class RecipeCacheEntry(Base):
    """Assembled recipe for a video, plus usage counters.

    Rows are created on the first successful extraction and overwritten by
    later ones; nothing in the extraction pipeline deletes them.
    """

    __tablename__ = "recipe_cache"

    video_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    extracted_json: Mapped[Any] = mapped_column(
        JSON, nullable=False, comment="Assembled recipe result as sent to clients"
    )
    times_accessed: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    times_made: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    last_accessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return (
            f"<RecipeCacheEntry(video_id={self.video_id}, "
            f"times_made={self.times_made})>"
        )
