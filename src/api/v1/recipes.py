"""Cached recipe statistics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from dependencies.extraction import ResultCacheDep
from schemas.extraction import PopularRecipe, TimesMadeResponse


router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.post(
    "/{video_id}/made",
    response_model=TimesMadeResponse,
    response_model_by_alias=True,
    summary="Record that a user cooked a cached recipe",
)
async def mark_recipe_made(video_id: str, cache: ResultCacheDep) -> TimesMadeResponse:
    times_made = await cache.increment_times_made(video_id)
    if times_made == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No cached recipe for this video",
        )
    return TimesMadeResponse(video_id=video_id, times_made=times_made)


@router.get(
    "/popular",
    response_model=list[PopularRecipe],
    response_model_by_alias=True,
    summary="List cached recipes ordered by how often they were made",
)
async def list_popular_recipes(
    cache: ResultCacheDep, limit: int = Query(10, ge=1, le=100)
) -> list[PopularRecipe]:
    return await cache.popular(limit)
