"""Extraction orchestrator: the phase machine behind both extraction endpoints.

Phases run ``CacheCheck -> Fetching -> Extracting -> Complete | Failed``. A
cache hit short-circuits to ``Complete``. On a miss the metadata and
transcript lookups start together; only the transcript gates the backend
call, and the metadata task is awaited when the result is assembled.

In streaming mode every backend fragment goes through an
:class:`IncrementalScanner` and the resulting events are forwarded to the
sink as they appear. The orchestrator emits its own ``complete`` event after
merging the final output with metadata, then writes the cache in the
background so a cache failure can never fail a finished extraction.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any

from core.error_handler import structured_logger
from schemas.events import (
    CompleteEvent,
    ErrorEvent,
    PhaseEvent,
    ProgressEvent,
)
from schemas.extraction import ExtractionOutput, RecipeResult, VideoDetails
from services.extraction.exceptions import (
    CacheUnavailable,
    ExtractionError,
    NoIngredientsExtracted,
    TranscriptError,
    UpstreamUnavailable,
    classify_transcript_error,
)
from services.extraction.interfaces import (
    BatchBackend,
    EventSink,
    MetadataSource,
    ResultCache,
    StreamingBackend,
    TranscriptSource,
)
from services.extraction.prompt import build_extraction_prompt
from services.extraction.scanner import IncrementalScanner


logger = logging.getLogger(__name__)


class ExtractionPhase(str, Enum):
    CACHE_CHECK = "cache_check"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    COMPLETE = "complete"
    FAILED = "failed"


class _Run:
    """Per-extraction bookkeeping for phase transitions and timings."""

    def __init__(self, video_id: str, mode: str) -> None:
        self.video_id = video_id
        self.mode = mode
        self.phase = ExtractionPhase.CACHE_CHECK
        self.started = time.monotonic()

    def enter(self, phase: ExtractionPhase) -> None:
        logger.debug(
            "[%s] %s -> %s at %dms",
            self.video_id,
            self.phase.value,
            phase.value,
            self.elapsed_ms(),
        )
        self.phase = phase

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class ExtractionOrchestrator:
    """Sequences cache, upstream lookups, generation, and result assembly.

    All collaborators are injected; one instance can serve concurrent
    extractions because no per-extraction state lives on it.
    """

    def __init__(
        self,
        transcripts: TranscriptSource,
        metadata: MetadataSource,
        cache: ResultCache,
        backend: BatchBackend,
    ) -> None:
        self.transcripts = transcripts
        self.metadata = metadata
        self.cache = cache
        self.backend = backend
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Shared stages
    # ------------------------------------------------------------------

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _cached(self, video_id: str) -> dict[str, Any] | None:
        try:
            return await self.cache.get(video_id)
        except CacheUnavailable as e:
            logger.warning("Cache lookup failed for %s: %s", video_id, e.message)
        except Exception as e:
            logger.warning("Cache lookup failed for %s: %s", video_id, e)
        return None

    async def _fetch_transcript(
        self, video_id: str, metadata_task: asyncio.Task[VideoDetails]
    ) -> str:
        try:
            return await self.transcripts.get_transcript(video_id)
        except TranscriptError as e:
            metadata_task.cancel()
            raise classify_transcript_error(e) from e
        except Exception as e:
            metadata_task.cancel()
            raise UpstreamUnavailable(f"Failed to fetch transcript: {e}") from e

    async def _details(self, metadata_task: asyncio.Task[VideoDetails]) -> VideoDetails:
        try:
            return await metadata_task
        except Exception as e:
            logger.warning("Metadata lookup failed, using placeholders: %s", e)
            return VideoDetails()

    async def _assemble(
        self, output: ExtractionOutput, metadata_task: asyncio.Task[VideoDetails]
    ) -> dict[str, Any]:
        if not output.ingredients:
            raise NoIngredientsExtracted()
        details = await self._details(metadata_task)
        return RecipeResult.assemble(details, output).to_wire()

    async def _write_cache(self, video_id: str, result: dict[str, Any]) -> None:
        try:
            await self.cache.put(video_id, result)
            logger.info("Cached extraction result for %s", video_id)
        except Exception as e:
            structured_logger.error(
                "Cache write failed",
                video_id=video_id,
                error_code=CacheUnavailable().error_code,
                error=str(e),
            )

    def _schedule_cache_write(self, video_id: str, result: dict[str, Any]) -> None:
        self._spawn(self._write_cache(video_id, result))

    async def drain(self) -> None:
        """Wait for outstanding background cache writes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def extract(self, video_id: str) -> dict[str, Any]:
        """Run one extraction and return the assembled result.

        Raises:
            ExtractionError: the classified failure.
        """
        run = _Run(video_id, "batch")
        cached = await self._cached(video_id)
        if cached is not None:
            logger.info("Cache hit for %s", video_id)
            run.enter(ExtractionPhase.COMPLETE)
            return cached

        run.enter(ExtractionPhase.FETCHING)
        metadata_task = self._spawn(self.metadata.get_metadata(video_id))
        try:
            transcript = await self._fetch_transcript(video_id, metadata_task)
            run.enter(ExtractionPhase.EXTRACTING)
            output = await self.backend.generate(build_extraction_prompt(transcript))
            result = await self._assemble(output, metadata_task)
        except ExtractionError as e:
            metadata_task.cancel()
            run.enter(ExtractionPhase.FAILED)
            self._log_failure(run, e)
            raise

        run.enter(ExtractionPhase.COMPLETE)
        self._schedule_cache_write(video_id, result)
        self._log_success(run, len(output.ingredients), len(output.instructions))
        return result

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(self, video_id: str, sink: EventSink) -> None:
        """Drive one extraction, reporting progress to ``sink``.

        Never raises: every failure becomes exactly one terminal ``error``
        event, and success ends with exactly one ``complete`` event.
        """
        run = _Run(video_id, "stream")
        cached = await self._cached(video_id)
        if cached is not None:
            logger.info("Cache hit for %s", video_id)
            run.enter(ExtractionPhase.COMPLETE)
            await self._emit(sink, CompleteEvent(result=cached))
            return

        run.enter(ExtractionPhase.FETCHING)
        await self._emit(sink, PhaseEvent(phase="fetching"))
        metadata_task = self._spawn(self.metadata.get_metadata(video_id))
        try:
            transcript = await self._fetch_transcript(video_id, metadata_task)
            run.enter(ExtractionPhase.EXTRACTING)
            await self._emit(sink, PhaseEvent(phase="extracting"))
            output = await self._generate(build_extraction_prompt(transcript), sink)
            result = await self._assemble(output, metadata_task)
        except ExtractionError as e:
            metadata_task.cancel()
            run.enter(ExtractionPhase.FAILED)
            self._log_failure(run, e)
            await self._emit(sink, ErrorEvent(message=e.message, code=e.error_code))
            return
        except Exception as e:
            metadata_task.cancel()
            run.enter(ExtractionPhase.FAILED)
            logger.exception("Unexpected extraction failure for %s", video_id)
            await self._emit(
                sink,
                ErrorEvent(message=f"Extraction failed: {e}", code="internal_error"),
            )
            return

        run.enter(ExtractionPhase.COMPLETE)
        await self._emit(sink, CompleteEvent(result=result))
        self._schedule_cache_write(video_id, result)
        self._log_success(run, len(output.ingredients), len(output.instructions))

    async def _generate(self, prompt: str, sink: EventSink) -> ExtractionOutput:
        if not isinstance(self.backend, StreamingBackend):
            return await self.backend.generate(prompt)

        scanner = IncrementalScanner()

        async def forward(fragment: str) -> None:
            for event in scanner.feed(fragment):
                await self._emit(sink, event)

        output = await self.backend.generate_streaming(prompt, forward)
        logger.info(
            "Scanned %d fragments (%d chars): %d ingredients, %d instructions reported",
            scanner.fragments,
            len(scanner.buffer),
            scanner.state.reported_ingredient_count,
            scanner.state.reported_instruction_count,
        )
        return output

    async def _emit(self, sink: EventSink, event: ProgressEvent) -> None:
        try:
            await sink.send(event)
        except Exception as e:
            logger.warning("Dropping %s event, sink failed: %s", event.event, e)

    def start_stream(self, video_id: str, sink: EventSink) -> asyncio.Task[None]:
        """Run :meth:`stream` as its own task so it outlives the client."""
        return self._spawn(self.stream(video_id, sink))

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def _log_success(self, run: _Run, ingredients: int, instructions: int) -> None:
        structured_logger.info(
            "Extraction complete",
            video_id=run.video_id,
            mode=run.mode,
            duration_ms=run.elapsed_ms(),
            ingredients=ingredients,
            instructions=instructions,
        )

    def _log_failure(self, run: _Run, error: ExtractionError) -> None:
        structured_logger.warning(
            "Extraction failed",
            video_id=run.video_id,
            mode=run.mode,
            duration_ms=run.elapsed_ms(),
            error_code=error.error_code,
            status_code=error.status_code,
        )
