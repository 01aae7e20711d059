"""Result cache implementations.

``InMemoryResultCache`` keeps entries for the life of the process and is the
default for development and tests. ``DatabaseResultCache`` persists entries in
the ``recipe_cache`` table. Both bump the access counter on reads without
letting that bookkeeping fail the read.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crud import recipe_cache as crud
from schemas.extraction import UNTITLED_RECIPE, PopularRecipe
from services.extraction.exceptions import CacheUnavailable


logger = logging.getLogger(__name__)


def _title_of(result: dict[str, Any]) -> str:
    title = result.get("title")
    return title if isinstance(title, str) and title else UNTITLED_RECIPE


@dataclass(slots=True)
class CacheEntry:
    result: dict[str, Any]
    times_accessed: int = 1
    times_made: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_accessed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryResultCache:
    """Process-local cache keyed by video id."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, video_id: str) -> CacheEntry | None:
        return self._entries.get(video_id)

    async def get(self, video_id: str) -> dict[str, Any] | None:
        async with self._lock:
            entry = self._entries.get(video_id)
            if entry is None:
                return None
            entry.times_accessed += 1
            entry.last_accessed_at = datetime.now(UTC)
            return dict(entry.result)

    async def put(self, video_id: str, result: dict[str, Any]) -> None:
        async with self._lock:
            previous = self._entries.get(video_id)
            self._entries[video_id] = CacheEntry(
                result=dict(result),
                times_made=previous.times_made if previous else 0,
            )

    async def increment_times_made(self, video_id: str) -> int:
        async with self._lock:
            entry = self._entries.get(video_id)
            if entry is None:
                return 0
            entry.times_made += 1
            return entry.times_made

    async def popular(self, limit: int = 10) -> list[PopularRecipe]:
        async with self._lock:
            ranked = sorted(
                self._entries.items(),
                key=lambda item: (item[1].times_made, item[1].times_accessed),
                reverse=True,
            )
        return [
            PopularRecipe(
                video_id=video_id,
                title=_title_of(entry.result),
                times_made=entry.times_made,
                times_accessed=entry.times_accessed,
            )
            for video_id, entry in ranked[:limit]
        ]


class DatabaseResultCache:
    """Cache backed by the ``recipe_cache`` table.

    Every operation opens its own session from ``session_factory`` so the
    cache can be shared across concurrent extractions.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self.session_factory = session_factory
        self._background: set[asyncio.Task[None]] = set()

    async def get(self, video_id: str) -> dict[str, Any] | None:
        try:
            async with self.session_factory() as db:
                entry = await crud.get_entry(db, video_id)
                result = dict(entry.extracted_json) if entry is not None else None
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cache read failed: {e}") from e
        if result is not None:
            task = asyncio.create_task(self._record_access(video_id))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return result

    async def _record_access(self, video_id: str) -> None:
        try:
            async with self.session_factory() as db:
                await crud.record_access(db, video_id)
        except Exception as e:
            logger.warning("Failed to record cache access for %s: %s", video_id, e)

    async def put(self, video_id: str, result: dict[str, Any]) -> None:
        try:
            async with self.session_factory() as db:
                await crud.upsert_entry(db, video_id, result)
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cache write failed: {e}") from e

    async def increment_times_made(self, video_id: str) -> int:
        try:
            async with self.session_factory() as db:
                return await crud.increment_times_made(db, video_id)
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cache update failed: {e}") from e

    async def popular(self, limit: int = 10) -> list[PopularRecipe]:
        try:
            async with self.session_factory() as db:
                entries = await crud.list_popular(db, limit)
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cache read failed: {e}") from e
        return [
            PopularRecipe(
                video_id=entry.video_id,
                title=_title_of(entry.extracted_json or {}),
                times_made=entry.times_made,
                times_accessed=entry.times_accessed,
            )
            for entry in entries
        ]
