"""Extraction prompt shared by every generation backend."""

from schemas.extraction import ALLERGENS, MAX_HIGHLIGHTS, Cuisine


_CUISINES = ", ".join(c.value for c in Cuisine)
_ALLERGENS = ", ".join(f'"{a}"' for a in ALLERGENS)

RECIPE_EXTRACTION_PROMPT = f"""
You are a recipe extractor. Extract structured recipe information from this
cooking video transcript.

Return ONLY a valid JSON object that strictly follows the schema below, with
the keys in this order.

{{
  "servings": 0,
  "prep_time_minutes": 0,
  "cook_time_minutes": 0,
  "ingredients": [
    {{ "name": "ingredient name", "quantity": "amount with unit or as needed" }}
  ],
  "instructions": [
    "Step 1 text...",
    "Step 2 text..."
  ],
  "allergens": [],
  "calories_kcal": 0,
  "difficulty": 1,
  "cuisine": "OTHER",
  "accompanying_recipes": ["recipe name 1", "recipe name 2"],
  "highlights": ["short, catchy bullet 1", "bullet 2"]
}}

Rules for servings, prep_time_minutes, cook_time_minutes and calories_kcal:
- Integers only. Use the stated value when given, otherwise infer a
  reasonable value; return 0 when it cannot be inferred.
- Prep time includes washing, chopping, marinating and setup.
- Cook time includes active cooking and baking, not resting or cooling.
- Calories are for the entire dish.

Rules for ingredients:
- Include every ingredient mentioned, each with name and quantity.
- If no quantity is stated, use "as needed".

Rules for instructions:
- Chronological, one clear sentence per step; combine closely related actions.
- Do not list ingredients, commentary, tips or serving suggestions.

Rules for allergens:
- Lowercase values from: {_ALLERGENS}. Return [] if none.

Rules for difficulty:
- 1 = very easy, 2 = easy, 3 = intermediate, 4 = advanced, 5 = expert.

Rules for cuisine:
- Exactly ONE of: {_CUISINES}.

Rules for accompanying_recipes:
- 3-4 short, searchable names (2-4 words) of dishes that pair well. [] if none.

Rules for highlights:
- 0-{MAX_HIGHLIGHTS} short bullets (under 80 characters) on what stands out:
  quick, one-pot, meal-prep friendly, kid-friendly, high protein, etc.

Return ONLY valid JSON. No markdown, explanations, or extra text.

Transcript:
"""


def build_extraction_prompt(transcript: str) -> str:
    return RECIPE_EXTRACTION_PROMPT.lstrip() + transcript
