"""Final parse of a complete backend document into ``ExtractionOutput``.

Used identically for batch responses and for the accumulated buffer of a
streaming response, so both paths normalize the same way.
"""

from __future__ import annotations

import json

from schemas.extraction import ExtractionOutput
from services.extraction.exceptions import MalformedOutput


FENCE = "```"


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence if the model added one."""
    cleaned = text.strip()
    if cleaned.startswith(FENCE):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
    if cleaned.endswith(FENCE):
        cleaned = cleaned[: -len(FENCE)].strip()
    return cleaned


def parse_output(text: str) -> ExtractionOutput:
    """Parse and normalize a finished document.

    Raises:
        MalformedOutput: the text is not JSON or not a JSON object.
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise MalformedOutput("Empty response from the model")
    try:
        document = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedOutput(f"Model output is not valid JSON: {e.msg}") from e
    if not isinstance(document, dict):
        raise MalformedOutput(
            f"Model output must be a JSON object, got {type(document).__name__}"
        )
    return ExtractionOutput.model_validate(document)
