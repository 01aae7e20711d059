"""Schemas for recipe extraction output and the assembled recipe result.

``ExtractionOutput`` is the normalized document produced by the generation
backend. Every field has a type-safe default and the ``before`` validator
coerces absent or wrongly shaped values onto those defaults, so a parsed
backend response can never be missing a field. ``RecipeResult`` is the
client-facing object (camelCase on the wire) that merges the output with
video metadata; it is what the cache stores and what ``complete`` carries.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Cuisine(StrEnum):
    AMERICAN = "AMERICAN"
    ITALIAN = "ITALIAN"
    FRENCH = "FRENCH"
    SPANISH = "SPANISH"
    MEXICAN = "MEXICAN"
    BRAZILIAN = "BRAZILIAN"
    MEDITERRANEAN = "MEDITERRANEAN"
    MIDDLE_EASTERN = "MIDDLE_EASTERN"
    INDIAN = "INDIAN"
    CHINESE = "CHINESE"
    JAPANESE = "JAPANESE"
    KOREAN = "KOREAN"
    THAI = "THAI"
    VIETNAMESE = "VIETNAMESE"
    ASIAN_OTHER = "ASIAN_OTHER"
    AFRICAN = "AFRICAN"
    CARIBBEAN = "CARIBBEAN"
    LATIN_AMERICAN = "LATIN_AMERICAN"
    EUROPEAN_OTHER = "EUROPEAN_OTHER"
    OTHER = "OTHER"


ALLERGENS: tuple[str, ...] = (
    "dairy",
    "gluten",
    "eggs",
    "nuts",
    "peanuts",
    "soy",
    "shellfish",
    "fish",
    "sesame",
)

MAX_HIGHLIGHTS = 4
DEFAULT_QUANTITY = "as needed"
DIFFICULTY_MIN = 1
DIFFICULTY_MAX = 5
UNTITLED_RECIPE = "Untitled Recipe"


def _number(value: object, default: int, *, low: int = 0, high: int | None = None) -> int:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    result = max(low, int(value))
    if high is not None:
        result = min(high, result)
    return result


def _strings(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _ingredients(value: object) -> list[dict[str, str]]:
    if not isinstance(value, list):
        return []
    items: list[dict[str, str]] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        quantity = item.get("quantity")
        if isinstance(quantity, int | float) and not isinstance(quantity, bool):
            quantity = str(quantity)
        if not isinstance(quantity, str) or not quantity.strip():
            quantity = DEFAULT_QUANTITY
        items.append({"name": name.strip(), "quantity": quantity.strip()})
    return items


def _cuisine(value: object) -> Cuisine:
    if isinstance(value, str):
        try:
            return Cuisine(value.strip().upper())
        except ValueError:
            pass
    return Cuisine.OTHER


def _allergens(value: object) -> list[str]:
    seen: list[str] = []
    for item in _strings(value):
        lowered = item.lower()
        if lowered in ALLERGENS and lowered not in seen:
            seen.append(lowered)
    return seen


class Ingredient(BaseModel):
    name: str
    quantity: str = DEFAULT_QUANTITY


class ExtractionOutput(BaseModel):
    """Normalized backend document for one video."""

    ingredients: list[Ingredient] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    servings: int = 0
    prep_time_minutes: int = 0
    cook_time_minutes: int = 0
    calories_kcal: int = 0
    difficulty: int = Field(default=DIFFICULTY_MIN, ge=DIFFICULTY_MIN, le=DIFFICULTY_MAX)
    cuisine: Cuisine = Cuisine.OTHER
    allergens: list[str] = Field(default_factory=list)
    accompanying_recipes: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list, max_length=MAX_HIGHLIGHTS)

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if isinstance(data, ExtractionOutput):
            return data
        raw: dict[str, Any] = data if isinstance(data, dict) else {}
        return {
            "ingredients": _ingredients(raw.get("ingredients")),
            "instructions": _strings(raw.get("instructions")),
            "servings": _number(raw.get("servings"), 0),
            "prep_time_minutes": _number(raw.get("prep_time_minutes"), 0),
            "cook_time_minutes": _number(raw.get("cook_time_minutes"), 0),
            "calories_kcal": _number(raw.get("calories_kcal"), 0),
            "difficulty": _number(
                raw.get("difficulty"),
                DIFFICULTY_MIN,
                low=DIFFICULTY_MIN,
                high=DIFFICULTY_MAX,
            ),
            "cuisine": _cuisine(raw.get("cuisine")),
            "allergens": _allergens(raw.get("allergens")),
            "accompanying_recipes": _strings(raw.get("accompanying_recipes")),
            "highlights": _strings(raw.get("highlights"))[:MAX_HIGHLIGHTS],
        }


class VideoDetails(BaseModel):
    """Display metadata for a video."""

    title: str = UNTITLED_RECIPE
    channel_title: str = ""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecipeResult(BaseModel):
    """Client-facing recipe assembled from backend output and video metadata."""

    title: str
    video_title: str
    channel_title: str
    ingredients: list[Ingredient]
    instructions: list[str]
    servings: int
    prep_time_minutes: int
    cook_time_minutes: int
    allergens: list[str]
    calories_kcal: int
    difficulty: int
    cuisine: Cuisine
    accompanying_recipes: list[str]
    highlights: list[str]

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def assemble(cls, details: VideoDetails, output: ExtractionOutput) -> RecipeResult:
        return cls(
            title=details.title or UNTITLED_RECIPE,
            video_title=details.title,
            channel_title=details.channel_title,
            ingredients=output.ingredients,
            instructions=output.instructions,
            servings=output.servings,
            prep_time_minutes=output.prep_time_minutes,
            cook_time_minutes=output.cook_time_minutes,
            allergens=output.allergens,
            calories_kcal=output.calories_kcal,
            difficulty=output.difficulty,
            cuisine=output.cuisine,
            accompanying_recipes=output.accompanying_recipes,
            highlights=output.highlights,
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PopularRecipe(BaseModel):
    """Cache statistics row for the popular-recipes listing."""

    video_id: str
    title: str
    times_made: int
    times_accessed: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimesMadeResponse(BaseModel):
    video_id: str
    times_made: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TranscriptResponse(BaseModel):
    transcript: str
