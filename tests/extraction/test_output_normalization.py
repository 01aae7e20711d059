"""Tests for final document parsing and field normalization."""

from __future__ import annotations

import json

import pytest

from schemas.extraction import (
    ExtractionOutput,
    RecipeResult,
    VideoDetails,
)
from services.extraction.exceptions import MalformedOutput
from services.extraction.output import parse_output, strip_code_fences
from tests.fixtures.extraction_fixtures import SAMPLE_JSON


class TestStripCodeFences:
    def test_plain_text_unchanged(self) -> None:
        assert strip_code_fences(' {"a": 1} ') == '{"a": 1}'

    def test_json_fence_removed(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence_removed(self) -> None:
        assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'


class TestParseOutput:
    def test_full_document(self) -> None:
        output = parse_output(SAMPLE_JSON)
        assert output.servings == 4
        assert output.cuisine == "ITALIAN"
        assert len(output.ingredients) == 3
        assert output.allergens == ["gluten"]

    def test_fenced_document(self) -> None:
        output = parse_output(f"```json\n{SAMPLE_JSON}\n```")
        assert output.prep_time_minutes == 10

    @pytest.mark.parametrize("text", ["", "   ", "```\n```"])
    def test_empty_is_malformed(self, text: str) -> None:
        with pytest.raises(MalformedOutput):
            parse_output(text)

    def test_truncated_is_malformed(self) -> None:
        with pytest.raises(MalformedOutput) as exc_info:
            parse_output(SAMPLE_JSON[:-5])
        assert exc_info.value.error_code == "malformed_output"

    def test_non_object_is_malformed(self) -> None:
        with pytest.raises(MalformedOutput):
            parse_output("[1, 2, 3]")


class TestNormalization:
    def test_empty_object_gets_defaults(self) -> None:
        output = ExtractionOutput.model_validate({})
        assert output.ingredients == []
        assert output.instructions == []
        assert output.servings == 0
        assert output.calories_kcal == 0
        assert output.difficulty == 1
        assert output.cuisine == "OTHER"
        assert output.highlights == []

    def test_wrong_shapes_fall_back(self) -> None:
        output = ExtractionOutput.model_validate(
            {
                "ingredients": "eggs",
                "instructions": {"1": "mix"},
                "servings": "four",
                "prep_time_minutes": True,
                "difficulty": "hard",
                "cuisine": 7,
                "allergens": "nuts",
            }
        )
        assert output.ingredients == []
        assert output.instructions == []
        assert output.servings == 0
        assert output.prep_time_minutes == 0
        assert output.difficulty == 1
        assert output.cuisine == "OTHER"
        assert output.allergens == []

    def test_numbers_are_clamped_and_truncated(self) -> None:
        output = ExtractionOutput.model_validate(
            {"servings": 2.7, "cook_time_minutes": -5, "difficulty": 9}
        )
        assert output.servings == 2
        assert output.cook_time_minutes == 0
        assert output.difficulty == 5

    def test_ingredients_filtered_and_defaulted(self) -> None:
        output = ExtractionOutput.model_validate(
            {
                "ingredients": [
                    {"name": " salt ", "quantity": ""},
                    {"name": "", "quantity": "1"},
                    {"quantity": "2 cups"},
                    "pepper",
                    {"name": "eggs", "quantity": 3},
                ]
            }
        )
        assert [i.model_dump() for i in output.ingredients] == [
            {"name": "salt", "quantity": "as needed"},
            {"name": "eggs", "quantity": "3"},
        ]

    def test_cuisine_is_case_insensitive(self) -> None:
        assert ExtractionOutput.model_validate({"cuisine": "thai"}).cuisine == "THAI"
        assert ExtractionOutput.model_validate({"cuisine": "martian"}).cuisine == "OTHER"

    def test_allergens_keep_known_values_once(self) -> None:
        output = ExtractionOutput.model_validate(
            {"allergens": ["Dairy", "dairy", "glitter", "eggs"]}
        )
        assert output.allergens == ["dairy", "eggs"]

    def test_highlights_capped(self) -> None:
        output = ExtractionOutput.model_validate({"highlights": list("abcdef")})
        assert output.highlights == ["a", "b", "c", "d"]


class TestRecipeResult:
    def test_assemble_uses_camel_case_on_the_wire(self) -> None:
        details = VideoDetails(title="Garlic Spaghetti", channel_title="Test Kitchen")
        wire = RecipeResult.assemble(details, parse_output(SAMPLE_JSON)).to_wire()
        assert wire["title"] == "Garlic Spaghetti"
        assert wire["videoTitle"] == "Garlic Spaghetti"
        assert wire["channelTitle"] == "Test Kitchen"
        assert wire["prepTimeMinutes"] == 10
        assert wire["caloriesKcal"] == 1800
        assert wire["cuisine"] == "ITALIAN"
        assert wire["accompanyingRecipes"] == ["Green salad"]
        json.dumps(wire)

    def test_missing_title_defaults(self) -> None:
        wire = RecipeResult.assemble(
            VideoDetails(title=""), parse_output(SAMPLE_JSON)
        ).to_wire()
        assert wire["title"] == "Untitled Recipe"
