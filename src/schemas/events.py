"""Progress events emitted during a streaming extraction.

One model per event kind; ``ProgressEvent`` is the tagged union. Each event
renders its own SSE frame (``event: <name>`` + one JSON ``data:`` line) so the
wire format is produced in a single place. ``complete`` and ``error`` are
terminal: nothing follows them within one extraction.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    event: str

    @property
    def terminal(self) -> bool:
        return False

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"event"})

    def to_sse(self) -> str:
        return f"event: {self.event}\ndata: {json.dumps(self.payload())}\n\n"


class PhaseEvent(_Event):
    event: Literal["phase"] = "phase"
    phase: Literal["fetching", "extracting"]


class MetadataEvent(_Event):
    """A top-level scalar field became complete in the generated document."""

    event: Literal["metadata"] = "metadata"
    field: str
    value: int | float | str

    def payload(self) -> dict[str, Any]:
        return {self.field: self.value}


class IngredientEvent(_Event):
    event: Literal["ingredient"] = "ingredient"
    name: str
    quantity: str


class InstructionEvent(_Event):
    event: Literal["instruction"] = "instruction"
    index: int = Field(..., ge=0)
    text: str


class CompleteEvent(_Event):
    event: Literal["complete"] = "complete"
    result: dict[str, Any]

    @property
    def terminal(self) -> bool:
        return True

    def payload(self) -> dict[str, Any]:
        return self.result


class ErrorEvent(_Event):
    event: Literal["error"] = "error"
    message: str
    code: str | None = None

    @property
    def terminal(self) -> bool:
        return True


ProgressEvent = Annotated[
    PhaseEvent
    | MetadataEvent
    | IngredientEvent
    | InstructionEvent
    | CompleteEvent
    | ErrorEvent,
    Field(discriminator="event"),
]
