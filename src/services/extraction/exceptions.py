"""Domain exceptions for the video recipe extraction pipeline.

Each failure is classified exactly once, where it is first observed, into one
of the types below. The non-streaming API maps them to HTTP status codes and
the streaming orchestrator maps them to a terminal ``error`` event. Each
exception carries a stable ``error_code`` for log and metrics tagging.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(slots=True)
class ExtractionError(Exception):
    """Base class for extraction domain errors."""

    message: str
    error_code: str
    status_code: int = 500

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class NoCaptions(ExtractionError):
    def __init__(
        self, message: str = "This video does not have captions available."
    ) -> None:
        super().__init__(message=message, error_code="no_captions", status_code=404)


class UpstreamRateLimited(ExtractionError):
    def __init__(
        self, message: str = "Rate limit exceeded. Please try again later."
    ) -> None:
        super().__init__(message=message, error_code="rate_limited", status_code=429)


class UpstreamUnavailable(ExtractionError):
    def __init__(self, message: str = "Upstream service unavailable") -> None:
        super().__init__(
            message=message, error_code="upstream_unavailable", status_code=500
        )


class MalformedOutput(ExtractionError):
    def __init__(
        self, message: str = "The model returned output that could not be parsed"
    ) -> None:
        super().__init__(message=message, error_code="malformed_output", status_code=500)


class NoIngredientsExtracted(ExtractionError):
    def __init__(
        self, message: str = "No ingredients could be extracted from this video."
    ) -> None:
        super().__init__(message=message, error_code="no_ingredients", status_code=400)


class CacheUnavailable(ExtractionError):
    """Result cache failure; logged and bypassed, never surfaced to clients."""

    def __init__(self, message: str = "Result cache unavailable") -> None:
        super().__init__(
            message=message, error_code="cache_unavailable", status_code=500
        )


TranscriptErrorKind = Literal["no_transcript", "rate_limited", "other"]


class TranscriptError(Exception):
    """Raised by transcript sources with a structured failure kind."""

    def __init__(self, kind: TranscriptErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind: TranscriptErrorKind = kind
        self.message = message


def classify_transcript_error(exc: TranscriptError) -> ExtractionError:
    """Map a transcript source failure onto the extraction taxonomy."""
    if exc.kind == "no_transcript":
        return NoCaptions()
    if exc.kind == "rate_limited":
        return UpstreamRateLimited()
    return UpstreamUnavailable(f"Failed to fetch transcript: {exc.message}")
