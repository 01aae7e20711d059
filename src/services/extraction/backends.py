"""pydantic-ai generation backends in batch and streaming variants."""

from __future__ import annotations

import logging
import time

import httpx
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError
from pydantic_ai.models import Model

from core.config import Settings, get_settings
from schemas.extraction import ExtractionOutput
from services.extraction.exceptions import (
    ExtractionError,
    UpstreamRateLimited,
    UpstreamUnavailable,
)
from services.extraction.interfaces import (
    BatchBackend,
    FragmentCallback,
    StreamingBackend,
)
from services.extraction.model_factory import (
    create_resilient_http_client,
    get_extraction_model,
)
from services.extraction.output import parse_output


logger = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = ("rate limit", "resource_exhausted", "quota", "429")


def classify_backend_error(exc: BaseException) -> ExtractionError:
    """Map a backend failure onto the extraction taxonomy.

    Structured HTTP status codes win; the message is inspected only for
    exceptions that carry nothing better.
    """
    if isinstance(exc, ExtractionError):
        return exc
    if isinstance(exc, ModelHTTPError):
        if exc.status_code == 429:
            return UpstreamRateLimited()
        return UpstreamUnavailable(
            f"Model request failed with status {exc.status_code}"
        )
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code == 429:
            return UpstreamRateLimited()
        return UpstreamUnavailable(
            f"Model request failed with status {exc.response.status_code}"
        )
    if isinstance(exc, AgentRunError | httpx.HTTPError):
        return UpstreamUnavailable(f"Model request failed: {exc}")

    message = str(exc).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return UpstreamRateLimited()
    return UpstreamUnavailable(f"Model request failed: {exc}")


def create_extraction_agent(
    model: Model | None = None, settings: Settings | None = None
) -> Agent[None, str]:
    """Plain-text agent; the JSON document is parsed by us, not the agent."""
    settings = settings or get_settings()
    if model is None:
        model = get_extraction_model(settings, create_resilient_http_client(settings))
    return Agent(
        model,
        output_type=str,
        model_settings={"temperature": settings.EXTRACTION_TEMPERATURE},
        name="recipe-extractor",
    )


class AgentBatchBackend(BatchBackend):
    """Single-shot extraction through a pydantic-ai agent."""

    def __init__(self, agent: Agent[None, str]) -> None:
        self.agent = agent

    async def generate(self, prompt: str) -> ExtractionOutput:
        started = time.monotonic()
        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            raise classify_backend_error(e) from e
        text = result.output
        logger.info(
            "Batch generation done in %dms (%d chars)",
            (time.monotonic() - started) * 1000,
            len(text),
        )
        return parse_output(text)


class AgentStreamingBackend(AgentBatchBackend, StreamingBackend):
    """Extraction that forwards text deltas while the model is generating."""

    async def generate_streaming(
        self, prompt: str, on_fragment: FragmentCallback
    ) -> ExtractionOutput:
        started = time.monotonic()
        parts: list[str] = []
        try:
            async with self.agent.run_stream(prompt) as result:
                async for delta in result.stream_text(delta=True, debounce_by=None):
                    if not delta:
                        continue
                    if not parts:
                        logger.info(
                            "First chunk at %dms", (time.monotonic() - started) * 1000
                        )
                    parts.append(delta)
                    await on_fragment(delta)
        except Exception as e:
            raise classify_backend_error(e) from e

        text = "".join(parts)
        logger.info(
            "Streaming done: %d chunks, %d chars, %dms",
            len(parts),
            len(text),
            (time.monotonic() - started) * 1000,
        )
        return parse_output(text)


def create_backend(settings: Settings | None = None) -> BatchBackend:
    """Build the configured backend variant."""
    settings = settings or get_settings()
    agent = create_extraction_agent(settings=settings)
    if settings.EXTRACTION_STREAMING:
        return AgentStreamingBackend(agent)
    return AgentBatchBackend(agent)
