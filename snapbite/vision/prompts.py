"""Prompt templates sent to the generative vision backend.

The wording determines the answer shape the parsers expect, so changes here
must be mirrored in ``snapbite.nutrition.parser``.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable

from ..nutrition.model import FoodAnalysis
from ..nutrition.parser import parse, parse_compact

NUTRITION_PROMPT = """\
Act as a certified nutritionist specialized in visual food analysis.

CONTEXT: You are going to analyze a food photograph to extract nutritional information.

SPECIFIC INSTRUCTIONS:
- Identify each individual visible ingredient
- Estimate the weight in grams (use visual references like plate size, cutlery, etc.)
- Calculate calories based on standard nutritional values
- Estimate protein, carbohydrates, fats and fiber in grams
- Consider the cooking method if visible (fried, baked, boiled)
- If there are sauces or dressings, include them separately

MANDATORY FORMAT:
Answer with ONLY a JSON object, no other text. Each key is an ingredient name
and each value is an object with exactly these numeric fields:
weight (grams), calories (kcal), protein (grams), carbs (grams), fats (grams), fiber (grams)

CORRECT EXAMPLE:
{
  "grilled chicken breast": {"weight": 200, "calories": 330, "protein": 62, "carbs": 0, "fats": 7, "fiber": 0},
  "cooked white rice": {"weight": 150, "calories": 195, "protein": 4, "carbs": 42, "fats": 0.4, "fiber": 0.6}
}

Now analyze this image:"""

COMPACT_PROMPT = """\
Act as a certified nutritionist specialized in visual food analysis.

CONTEXT: You are going to analyze a food photograph to extract nutritional information.

SPECIFIC INSTRUCTIONS:
- Identify each individual visible ingredient
- Estimate the weight in grams (use visual references like plate size, cutlery, etc.)
- Calculate calories based on standard nutritional values
- Consider the cooking method if visible (fried, baked, boiled)
- If there are sauces or dressings, include them separately

MANDATORY FORMAT:
ingredient: weight_in_gr, total_calories; ingredient: weight_in_gr, total_calories

CORRECT EXAMPLE:
grilled chicken breast: 200gr, 330cal; cooked white rice: 150gr, 195cal; mixed salad: 80gr, 20cal; ranch dressing: 30gr, 145cal

Now analyze this image:"""


class PromptStrategy(Enum):
    """Pairs a prompt with the parser that understands its answers."""

    JSON = "json"
    COMPACT = "compact"

    @property
    def prompt(self) -> str:
        if self is PromptStrategy.JSON:
            return NUTRITION_PROMPT
        return COMPACT_PROMPT

    @property
    def json_format(self) -> bool:
        """Whether the backend should be asked for ``format: "json"``."""
        return self is PromptStrategy.JSON

    def parser(self, strict: bool = True) -> Callable[[str], FoodAnalysis]:
        if self is PromptStrategy.JSON:
            return lambda text: parse(text, strict=strict)
        return parse_compact
