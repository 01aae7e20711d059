"""Fakes and fixtures for the video extraction pipeline.

The fakes implement the orchestrator's collaborator contracts in memory so
tests can drive every phase transition without network or model access.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from schemas.extraction import ExtractionOutput, VideoDetails
from services.extraction.cache import InMemoryResultCache
from services.extraction.exceptions import ExtractionError, TranscriptError
from services.extraction.interfaces import (
    BatchBackend,
    FragmentCallback,
    StreamingBackend,
)
from services.extraction.orchestrator import ExtractionOrchestrator
from services.extraction.output import parse_output


SAMPLE_DOCUMENT: dict[str, Any] = {
    "servings": 4,
    "prep_time_minutes": 10,
    "cook_time_minutes": 20,
    "ingredients": [
        {"name": "spaghetti", "quantity": "400 g"},
        {"name": "garlic", "quantity": "3 cloves"},
        {"name": "olive oil", "quantity": "4 tbsp"},
    ],
    "instructions": [
        "Boil the pasta in salted water.",
        "Fry the garlic in the oil until golden.",
        "Toss the pasta with the garlic oil.",
    ],
    "allergens": ["gluten"],
    "calories_kcal": 1800,
    "difficulty": 1,
    "cuisine": "ITALIAN",
    "accompanying_recipes": ["Green salad"],
    "highlights": ["Ready in 30 minutes"],
}

SAMPLE_JSON = json.dumps(SAMPLE_DOCUMENT)


def chunk(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class FakeTranscriptSource:
    def __init__(
        self, transcript: str = "boil pasta, fry garlic", error: TranscriptError | None = None
    ) -> None:
        self.transcript = transcript
        self.error = error
        self.calls: list[str] = []

    async def get_transcript(self, video_id: str) -> str:
        self.calls.append(video_id)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.transcript


class FakeMetadataSource:
    def __init__(
        self, details: VideoDetails | None = None, delay: float = 0.0
    ) -> None:
        self.details = details or VideoDetails(
            title="Garlic Spaghetti", channel_title="Test Kitchen"
        )
        self.delay = delay
        self.calls: list[str] = []
        self.cancelled = False
        self.returned = False

    async def get_metadata(self, video_id: str) -> VideoDetails:
        self.calls.append(video_id)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        self.returned = True
        return self.details


class FailingCache(InMemoryResultCache):
    """Cache whose writes (and optionally reads) always fail."""

    def __init__(self, fail_reads: bool = False) -> None:
        super().__init__()
        self.fail_reads = fail_reads
        self.put_attempts = 0

    async def get(self, video_id: str) -> dict[str, Any] | None:
        if self.fail_reads:
            raise RuntimeError("cache offline")
        return await super().get(video_id)

    async def put(self, video_id: str, result: dict[str, Any]) -> None:
        self.put_attempts += 1
        raise RuntimeError("cache offline")


class FakeBatchBackend(BatchBackend):
    def __init__(
        self, text: str = SAMPLE_JSON, error: ExtractionError | None = None
    ) -> None:
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> ExtractionOutput:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return parse_output(self.text)


class FakeStreamingBackend(FakeBatchBackend, StreamingBackend):
    """Replays ``text`` in fixed-size fragments, optionally failing midway."""

    def __init__(
        self,
        text: str = SAMPLE_JSON,
        chunk_size: int = 7,
        error: ExtractionError | None = None,
        fail_after: int | None = None,
    ) -> None:
        super().__init__(text, error)
        self.chunk_size = chunk_size
        self.fail_after = fail_after
        self.finished = False

    async def generate_streaming(
        self, prompt: str, on_fragment: FragmentCallback
    ) -> ExtractionOutput:
        self.prompts.append(prompt)
        for i, fragment in enumerate(chunk(self.text, self.chunk_size)):
            if self.error is not None and self.fail_after is not None and i >= self.fail_after:
                raise self.error
            await on_fragment(fragment)
            await asyncio.sleep(0)
        if self.error is not None and self.fail_after is None:
            raise self.error
        self.finished = True
        return parse_output(self.text)


@pytest.fixture
def transcripts() -> FakeTranscriptSource:
    return FakeTranscriptSource()


@pytest.fixture
def metadata() -> FakeMetadataSource:
    return FakeMetadataSource()


@pytest.fixture
def cache() -> InMemoryResultCache:
    return InMemoryResultCache()


@pytest.fixture
def streaming_backend() -> FakeStreamingBackend:
    return FakeStreamingBackend()


@pytest.fixture
def orchestrator(
    transcripts: FakeTranscriptSource,
    metadata: FakeMetadataSource,
    cache: InMemoryResultCache,
    streaming_backend: FakeStreamingBackend,
) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(transcripts, metadata, cache, streaming_backend)
