"""CRUD operations for cached extraction results."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.recipe_cache import RecipeCacheEntry


async def get_entry(db: AsyncSession, video_id: str) -> RecipeCacheEntry | None:
    result = await db.execute(
        select(RecipeCacheEntry).where(RecipeCacheEntry.video_id == video_id)
    )
    return result.scalar_one_or_none()


async def upsert_entry(
    db: AsyncSession, video_id: str, extracted_json: dict[str, Any]
) -> RecipeCacheEntry:
    """Create or overwrite the entry for ``video_id``.

    Overwrites reset the timestamps and access count but keep ``times_made``,
    which is driven by users rather than by extraction.
    """
    now = datetime.now(UTC)
    entry = await get_entry(db, video_id)
    if entry is None:
        entry = RecipeCacheEntry(
            video_id=video_id,
            extracted_json=extracted_json,
            times_accessed=1,
            times_made=0,
            created_at=now,
            last_accessed_at=now,
        )
        db.add(entry)
    else:
        entry.extracted_json = extracted_json
        entry.times_accessed = 1
        entry.created_at = now
        entry.last_accessed_at = now
    await db.commit()
    return entry


async def record_access(db: AsyncSession, video_id: str) -> None:
    await db.execute(
        update(RecipeCacheEntry)
        .where(RecipeCacheEntry.video_id == video_id)
        .values(
            times_accessed=RecipeCacheEntry.times_accessed + 1,
            last_accessed_at=datetime.now(UTC),
        )
    )
    await db.commit()


async def increment_times_made(db: AsyncSession, video_id: str) -> int:
    """Bump ``times_made``; returns the new count, or 0 if there is no entry."""
    entry = await get_entry(db, video_id)
    if entry is None:
        return 0
    entry.times_made = (entry.times_made or 0) + 1
    await db.commit()
    return entry.times_made


async def list_popular(db: AsyncSession, limit: int = 10) -> list[RecipeCacheEntry]:
    result = await db.execute(
        select(RecipeCacheEntry)
        .order_by(RecipeCacheEntry.times_made.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
