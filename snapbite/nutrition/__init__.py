"""Nutrition data model and response parsing."""

from .model import (
    NUTRIENT_FIELDS,
    FoodAnalysis,
    NutrientRecord,
    NutritionTotals,
    aggregate,
)
from .parser import parse, parse_compact

__all__ = [
    "NUTRIENT_FIELDS",
    "FoodAnalysis",
    "NutrientRecord",
    "NutritionTotals",
    "aggregate",
    "parse",
    "parse_compact",
]
