"""Video recipe extraction endpoints.

``/extract`` returns the assembled recipe in one response; ``/extract-stream``
reports progress over Server-Sent Events while the model is generating.
Extraction failures are raised as ``ExtractionError`` and rendered by the
application-level handler as ``{"detail": ...}`` with the mapped status.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from dependencies.extraction import (
    MetadataSourceDep,
    Orchestrator,
    TranscriptSourceDep,
)
from schemas.extraction import TranscriptResponse, VideoDetails
from services.extraction.exceptions import TranscriptError, classify_transcript_error
from services.extraction.sink import QueueEventSink


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/video", tags=["video"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get(
    "/{video_id}/extract",
    summary="Extract a recipe from a video's transcript",
)
async def extract_recipe(video_id: str, orchestrator: Orchestrator) -> dict[str, Any]:
    return await orchestrator.extract(video_id)


@router.get(
    "/{video_id}/extract-stream",
    summary="Stream recipe extraction progress via Server-Sent Events",
)
async def extract_recipe_stream(
    video_id: str, orchestrator: Orchestrator
) -> StreamingResponse:
    """Stream extraction progress.

    Events (``event:`` name, JSON ``data:`` payload):
      phase: {"phase": "fetching" | "extracting"}
      metadata: {"<field>": value} for each top-level scalar
      ingredient: {"name", "quantity"}
      instruction: {"index", "text"}
      complete: the assembled recipe (terminal)
      error: {"message", "code"} (terminal)

    Generation continues after a client disconnect so the result still
    reaches the cache.
    """
    sink = QueueEventSink()
    orchestrator.start_stream(video_id, sink)
    return StreamingResponse(
        sink.frames(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.get(
    "/{video_id}/transcript",
    response_model=TranscriptResponse,
    summary="Fetch the raw caption transcript",
)
async def get_transcript(
    video_id: str, transcripts: TranscriptSourceDep
) -> TranscriptResponse:
    try:
        transcript = await transcripts.get_transcript(video_id)
    except TranscriptError as e:
        logger.info("Transcript lookup failed for %s: %s", video_id, e.kind)
        raise classify_transcript_error(e) from e
    return TranscriptResponse(transcript=transcript)


@router.get(
    "/{video_id}/details",
    response_model=VideoDetails,
    response_model_by_alias=True,
    summary="Fetch display metadata for a video",
)
async def get_video_details(video_id: str, metadata: MetadataSourceDep) -> VideoDetails:
    return await metadata.get_metadata(video_id)
