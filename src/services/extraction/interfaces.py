"""Collaborator contracts for the extraction orchestrator.

The orchestrator only ever talks to these interfaces; concrete transcript,
metadata, cache and backend implementations are injected at construction so
no state is shared implicitly between concurrent extractions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from schemas.events import ProgressEvent
from schemas.extraction import ExtractionOutput, PopularRecipe, VideoDetails


FragmentCallback = Callable[[str], Awaitable[None]]


class TranscriptSource(Protocol):
    """Caption transcript lookup.

    Raises ``TranscriptError`` with kind ``no_transcript``, ``rate_limited``
    or ``other`` on failure.
    """

    async def get_transcript(self, video_id: str) -> str: ...


class MetadataSource(Protocol):
    """Display metadata lookup; returns placeholders instead of failing."""

    async def get_metadata(self, video_id: str) -> VideoDetails: ...


class ResultCache(Protocol):
    """Previously assembled results keyed by video id."""

    async def get(self, video_id: str) -> dict[str, Any] | None:
        """Return the cached result and bump its access count (best effort)."""
        ...

    async def put(self, video_id: str, result: dict[str, Any]) -> None:
        """Store ``result``, overwriting any previous entry."""
        ...

    async def increment_times_made(self, video_id: str) -> int: ...

    async def popular(self, limit: int = 10) -> list[PopularRecipe]: ...


class EventSink(Protocol):
    """Ordered event channel; sending after close is a silent no-op."""

    async def send(self, event: ProgressEvent) -> None: ...


class BatchBackend(ABC):
    """Generation backend that returns one complete document per call."""

    @abstractmethod
    async def generate(self, prompt: str) -> ExtractionOutput:
        """Run the prompt and return the normalized output.

        Raises:
            ExtractionError: exactly one classified error on failure.
        """


class StreamingBackend(BatchBackend):
    """Generation backend that can also deliver text fragments as they arrive."""

    @abstractmethod
    async def generate_streaming(
        self, prompt: str, on_fragment: FragmentCallback
    ) -> ExtractionOutput:
        """Stream the prompt's output.

        ``on_fragment`` is awaited once per non-empty chunk, in arrival order.
        The concatenation of all chunks is parsed once the stream ends.
        """
