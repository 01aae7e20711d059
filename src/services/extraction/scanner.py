"""Incremental scanning of a partially generated JSON recipe document.

The generation backend streams a single JSON object in fragments. After each
fragment the scanner looks at the accumulated buffer (always a prefix of a
well-formed document, possibly cut mid-token) and reports every top-level
scalar and every ``ingredients``/``instructions`` element that has become
syntactically complete since the previous call.

Array elements are found with a three-flag lexer (in-string, escaped, nesting
depth) expressed as pure data plus the pure transition :func:`advance`. Each
array keeps a resumable cursor, so every byte is lexed once over the life of
an extraction and re-scanning an unchanged buffer yields nothing.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Literal

from schemas.events import (
    IngredientEvent,
    InstructionEvent,
    MetadataEvent,
    ProgressEvent,
)
from schemas.extraction import DEFAULT_QUANTITY, DIFFICULTY_MAX, DIFFICULTY_MIN


logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------
# Lexer
# --------------------------------------------------------------------------


class Token(Enum):
    NONE = auto()
    ELEMENT_START = auto()
    ELEMENT_END = auto()
    ARRAY_END = auto()


@dataclass(frozen=True, slots=True)
class LexState:
    """Lexer flags for the inside of one JSON array.

    ``depth`` counts open brackets/braces *within* the array, so an element
    boundary is any transition to or from depth zero.
    """

    in_string: bool = False
    escaped: bool = False
    depth: int = 0


def advance(state: LexState, ch: str) -> tuple[LexState, Token]:
    """Consume one character and report any element boundary it creates."""
    if state.in_string:
        if state.escaped:
            return replace(state, escaped=False), Token.NONE
        if ch == "\\":
            return replace(state, escaped=True), Token.NONE
        if ch == '"':
            token = Token.ELEMENT_END if state.depth == 0 else Token.NONE
            return replace(state, in_string=False), token
        return state, Token.NONE

    if ch == '"':
        token = Token.ELEMENT_START if state.depth == 0 else Token.NONE
        return replace(state, in_string=True), token
    if ch in "{[":
        token = Token.ELEMENT_START if state.depth == 0 else Token.NONE
        return replace(state, depth=state.depth + 1), token
    if ch in "}]":
        if state.depth == 0:
            return state, Token.ARRAY_END if ch == "]" else Token.NONE
        closed = replace(state, depth=state.depth - 1)
        return closed, Token.ELEMENT_END if closed.depth == 0 else Token.NONE
    return state, Token.NONE


# --------------------------------------------------------------------------
# Scan state
# --------------------------------------------------------------------------


@dataclass(slots=True)
class ArrayCursor:
    """Resumable scan position for one array-valued member."""

    key: str
    position: int = -1  # next buffer index to lex; -1 until the key is found
    lex: LexState = field(default_factory=LexState)
    element_start: int | None = None
    reported: int = 0
    closed: bool = False
    stalled: bool = False


@dataclass(slots=True)
class ScanState:
    """Per-extraction bookkeeping; never shared between extractions."""

    reported_scalars: set[str] = field(default_factory=set)
    ingredients: ArrayCursor = field(
        default_factory=lambda: ArrayCursor("ingredients")
    )
    instructions: ArrayCursor = field(
        default_factory=lambda: ArrayCursor("instructions")
    )
    scanned_length: int = 0

    @property
    def reported_ingredient_count(self) -> int:
        return self.ingredients.reported

    @property
    def reported_instruction_count(self) -> int:
        return self.instructions.reported


# --------------------------------------------------------------------------
# Scalars
# --------------------------------------------------------------------------

# A number is complete once its digit run, fraction and exponent are followed
# by a character that cannot extend it.
_NUMBER_VALUE = r"(-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)(?=[^\d.eE+-])"
_STRING_VALUE = r'"((?:[^"\\]|\\.)*)"'


@dataclass(frozen=True, slots=True)
class ScalarField:
    name: str
    kind: Literal["number", "string"]
    pattern: re.Pattern[str]

    @classmethod
    def build(cls, name: str, kind: Literal["number", "string"]) -> ScalarField:
        value = _NUMBER_VALUE if kind == "number" else _STRING_VALUE
        return cls(name, kind, re.compile(rf'"{re.escape(name)}"\s*:\s*{value}'))

    def parse(self, raw: str) -> int | float | str:
        if self.kind == "string":
            decoded: str = json.loads(f'"{raw}"')
            return decoded
        if any(marker in raw for marker in ".eE"):
            number = float(raw)
            if not math.isfinite(number):
                raise ValueError(f"{self.name} overflows: {raw}")
            return number
        return int(raw)


SCALAR_FIELDS: tuple[ScalarField, ...] = (
    ScalarField.build("servings", "number"),
    ScalarField.build("prep_time_minutes", "number"),
    ScalarField.build("cook_time_minutes", "number"),
    ScalarField.build("calories_kcal", "number"),
    ScalarField.build("difficulty", "number"),
    ScalarField.build("cuisine", "string"),
)


def _scan_scalars(
    buffer: str, state: ScanState
) -> list[tuple[int, ProgressEvent]]:
    found: list[tuple[int, ProgressEvent]] = []
    for scalar in SCALAR_FIELDS:
        if scalar.name in state.reported_scalars:
            continue
        match = scalar.pattern.search(buffer)
        if match is None:
            continue
        try:
            value = scalar.parse(match.group(1))
        except ValueError:
            # Undecodable escape or overflow; leave it to the final parse
            continue
        if scalar.name == "difficulty":
            value = min(DIFFICULTY_MAX, max(DIFFICULTY_MIN, int(value)))
        state.reported_scalars.add(scalar.name)
        found.append((match.end(), MetadataEvent(field=scalar.name, value=value)))
    return found


# --------------------------------------------------------------------------
# Arrays
# --------------------------------------------------------------------------


def _array_key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf'"{re.escape(key)}"\s*:\s*\[')


_ARRAY_KEYS = {
    "ingredients": _array_key_pattern("ingredients"),
    "instructions": _array_key_pattern("instructions"),
}


def scan_array(buffer: str, cursor: ArrayCursor) -> list[tuple[int, Any]]:
    """Advance ``cursor`` over ``buffer``; return newly completed elements.

    Each element is returned with the buffer offset at which it completed.
    """
    if cursor.closed or cursor.stalled:
        return []
    if cursor.position < 0:
        match = _ARRAY_KEYS[cursor.key].search(buffer)
        if match is None:
            return []
        cursor.position = match.end()

    completed: list[tuple[int, Any]] = []
    lex = cursor.lex
    i = cursor.position
    end = len(buffer)
    while i < end:
        lex, token = advance(lex, buffer[i])
        if token is Token.ELEMENT_START:
            cursor.element_start = i
        elif token is Token.ELEMENT_END and cursor.element_start is not None:
            text = buffer[cursor.element_start : i + 1]
            cursor.element_start = None
            try:
                completed.append((i + 1, json.loads(text)))
            except ValueError:
                logger.warning(
                    "Unparseable %s element at offset %d; no further elements "
                    "will be streamed for this array",
                    cursor.key,
                    i,
                )
                cursor.stalled = True
                i += 1
                break
        elif token is Token.ARRAY_END:
            cursor.closed = True
            i += 1
            break
        i += 1

    cursor.lex = lex
    cursor.position = i
    return completed


def _ingredient_events(
    buffer: str, cursor: ArrayCursor
) -> list[tuple[int, ProgressEvent]]:
    found: list[tuple[int, ProgressEvent]] = []
    for offset, element in scan_array(buffer, cursor):
        cursor.reported += 1
        if not isinstance(element, dict):
            continue
        name = element.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        quantity = element.get("quantity")
        if isinstance(quantity, int | float) and not isinstance(quantity, bool):
            quantity = str(quantity)
        if not isinstance(quantity, str) or not quantity.strip():
            quantity = DEFAULT_QUANTITY
        found.append(
            (offset, IngredientEvent(name=name.strip(), quantity=quantity.strip()))
        )
    return found


def _instruction_events(
    buffer: str, cursor: ArrayCursor
) -> list[tuple[int, ProgressEvent]]:
    found: list[tuple[int, ProgressEvent]] = []
    for offset, element in scan_array(buffer, cursor):
        index = cursor.reported
        cursor.reported += 1
        if isinstance(element, str):
            found.append((offset, InstructionEvent(index=index, text=element)))
    return found


# --------------------------------------------------------------------------
# Entry points
# --------------------------------------------------------------------------


def scan(buffer: str, state: ScanState) -> list[ProgressEvent]:
    """Report everything in ``buffer`` that completed since the last call.

    ``buffer`` is the whole accumulation so far, never a delta. Events come
    back ordered by where they completed in the document, so the overall
    sequence is the same however the text was fragmented.
    """
    if len(buffer) < state.scanned_length:
        raise ValueError("scan buffer must only grow between calls")
    state.scanned_length = len(buffer)

    found = _scan_scalars(buffer, state)
    found += _ingredient_events(buffer, state.ingredients)
    found += _instruction_events(buffer, state.instructions)
    found.sort(key=lambda pair: pair[0])
    return [event for _, event in found]


class IncrementalScanner:
    """Accumulates fragments and scans after each one."""

    def __init__(self) -> None:
        self.state = ScanState()
        self._buffer = ""
        self.fragments = 0

    @property
    def buffer(self) -> str:
        return self._buffer

    def feed(self, fragment: str) -> list[ProgressEvent]:
        if not fragment:
            return []
        self.fragments += 1
        self._buffer += fragment
        return scan(self._buffer, self.state)
