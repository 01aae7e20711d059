"""FastAPI providers for the extraction orchestrator and its collaborators.

Collaborators are built once per process and injected into the
orchestrator; tests replace ``get_orchestrator`` or ``get_result_cache``
through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

import httpx
from fastapi import Depends

from core.config import get_settings
from dependencies.db import get_sessionmaker
from services.extraction.backends import create_backend
from services.extraction.cache import DatabaseResultCache, InMemoryResultCache
from services.extraction.interfaces import (
    MetadataSource,
    ResultCache,
    TranscriptSource,
)
from services.extraction.orchestrator import ExtractionOrchestrator
from services.extraction.upstreams import OEmbedMetadataSource, SerpApiTranscriptSource


@lru_cache
def get_upstream_client() -> httpx.AsyncClient:
    settings = get_settings()
    return httpx.AsyncClient(timeout=settings.UPSTREAM_TIMEOUT_SECONDS)


@lru_cache
def get_result_cache() -> ResultCache:
    settings = get_settings()
    if settings.RESULT_CACHE_BACKEND == "database":
        return DatabaseResultCache(get_sessionmaker())
    return InMemoryResultCache()


def get_transcript_source() -> TranscriptSource:
    settings = get_settings()
    return SerpApiTranscriptSource(
        get_upstream_client(), settings.SERPAPI_KEY, settings.SERPAPI_BASE_URL
    )


def get_metadata_source() -> MetadataSource:
    return OEmbedMetadataSource(get_upstream_client(), get_settings().OEMBED_URL)


@lru_cache
def get_orchestrator() -> ExtractionOrchestrator:
    """Process-wide orchestrator; it holds no per-extraction state."""
    return ExtractionOrchestrator(
        transcripts=get_transcript_source(),
        metadata=get_metadata_source(),
        cache=get_result_cache(),
        backend=create_backend(get_settings()),
    )


async def close_upstream_client() -> None:
    if get_upstream_client.cache_info().currsize:
        await get_upstream_client().aclose()
        get_upstream_client.cache_clear()


Orchestrator = Annotated[ExtractionOrchestrator, Depends(get_orchestrator)]
TranscriptSourceDep = Annotated[TranscriptSource, Depends(get_transcript_source)]
MetadataSourceDep = Annotated[MetadataSource, Depends(get_metadata_source)]
ResultCacheDep = Annotated[ResultCache, Depends(get_result_cache)]
