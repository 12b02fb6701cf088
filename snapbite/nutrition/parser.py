"""Turn raw inference-backend text into a validated FoodAnalysis."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from ..errors import ParseError
from .model import NUTRIENT_FIELDS, FoodAnalysis, NutrientRecord

logger = logging.getLogger(__name__)

# Unit suffixes the model sometimes attaches to numbers -> multiplier
_UNIT_FACTORS: dict[str, float] = {
    "": 1.0,
    "g": 1.0,
    "gr": 1.0,
    "gram": 1.0,
    "grams": 1.0,
    "kg": 1000.0,
    "mg": 0.001,
    "kcal": 1.0,
    "cal": 1.0,
    "calories": 1.0,
}

_NUMBER_WITH_UNIT = re.compile(
    r"^\s*(-?\d+(?:\.\d+)?)\s*([a-zA-Z]*)\.?\s*$"
)

# "grilled chicken breast: 200gr, 330cal"
_COMPACT_ENTRY = re.compile(
    r"^\s*(?P<name>[^:;]+?)\s*:\s*"
    r"(?P<weight>\d+(?:\.\d+)?)\s*(?:g|gr|grams?)\.?\s*,\s*"
    r"(?P<calories>\d+(?:\.\d+)?)\s*(?:k?cal|calories)\.?\s*$",
    re.IGNORECASE,
)


def parse(raw_text: str, *, strict: bool = True) -> FoodAnalysis:
    """Decode a JSON food analysis answer.

    The top-level object maps ingredient names to objects with the six
    NutrientRecord fields. With ``strict`` any malformed record raises
    ParseError; otherwise bad fields are coerced to 0.0 and bad records
    skipped, both with a warning.

    Raises:
        ParseError: with ``raw_text`` set to the untouched input.
    """
    cleaned = _strip_fences(raw_text)
    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"Response is not valid JSON: {e}", raw_text) from e

    if not isinstance(decoded, dict):
        raise ParseError(
            f"Expected a JSON object of ingredients, got {type(decoded).__name__}",
            raw_text,
        )

    analysis: FoodAnalysis = {}
    for name, value in decoded.items():
        if not name.strip():
            if strict:
                raise ParseError("Ingredient with an empty name", raw_text)
            logger.warning("Skipping ingredient with an empty name")
            continue

        if not isinstance(value, dict):
            if strict:
                raise ParseError(
                    f"Ingredient {name!r} is not an object: {value!r}", raw_text
                )
            logger.warning("Skipping ingredient %r: not an object", name)
            continue

        analysis[name] = _build_record(name, value, raw_text, strict)

    return analysis


def parse_compact(raw_text: str) -> FoodAnalysis:
    """Parse ``ingredient: 200gr, 330cal; ingredient: ...`` answers.

    Only weight and calories are present in this format; macros are zero.
    """
    entries = [e for e in re.split(r"[;\n]", raw_text) if e.strip()]
    if not entries:
        raise ParseError("Response contains no ingredients", raw_text)

    analysis: FoodAnalysis = {}
    for entry in entries:
        m = _COMPACT_ENTRY.match(entry)
        if m is None:
            raise ParseError(
                f"Unrecognized ingredient entry: {entry.strip()!r}", raw_text
            )
        analysis[m.group("name")] = NutrientRecord(
            weight=float(m.group("weight")),
            calories=float(m.group("calories")),
            protein=0.0,
            carbs=0.0,
            fats=0.0,
            fiber=0.0,
        )
    return analysis


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def _build_record(
    name: str, value: dict[str, Any], raw_text: str, strict: bool
) -> NutrientRecord:
    values: dict[str, float] = {}
    for field_name in NUTRIENT_FIELDS:
        if field_name not in value:
            if strict:
                raise ParseError(
                    f"Ingredient {name!r} is missing {field_name!r}", raw_text
                )
            logger.warning("Ingredient %r missing %r, using 0", name, field_name)
            values[field_name] = 0.0
            continue

        number = _coerce_number(value[field_name])
        if number is None or not math.isfinite(number) or number < 0:
            if strict:
                raise ParseError(
                    f"Ingredient {name!r} has invalid {field_name!r}: "
                    f"{value[field_name]!r}",
                    raw_text,
                )
            logger.warning(
                "Ingredient %r has invalid %r (%r), using 0",
                name,
                field_name,
                value[field_name],
            )
            number = 0.0
        values[field_name] = number

    return NutrientRecord(**values)


def _coerce_number(value: Any) -> float | None:
    """Accept numbers and numeric strings like ``"200"`` or ``"330 kcal"``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return None
    if isinstance(value, str):
        m = _NUMBER_WITH_UNIT.match(value)
        if m is None:
            return None
        factor = _UNIT_FACTORS.get(m.group(2).lower())
        if factor is None:
            return None
        return float(m.group(1)) * factor
    return None
