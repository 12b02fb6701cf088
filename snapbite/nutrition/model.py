"""Nutrition data types and aggregation arithmetic."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields

NUTRIENT_FIELDS: tuple[str, ...] = (
    "weight",
    "calories",
    "protein",
    "carbs",
    "fats",
    "fiber",
)


@dataclass(frozen=True)
class NutrientRecord:
    """One ingredient's estimated contribution to a meal."""

    weight: float  # g
    calories: float  # kcal
    protein: float  # g
    carbs: float  # g
    fats: float  # g
    fiber: float  # g

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value) or value < 0:
                raise ValueError(
                    f"{f.name} must be finite and non-negative, got {value!r}"
                )

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


# Ingredient name -> record, in the order the model reported them.
FoodAnalysis = dict[str, NutrientRecord]


@dataclass(frozen=True)
class NutritionTotals:
    """Sum of every NutrientRecord field over one FoodAnalysis."""

    weight: float = 0.0
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fats: float = 0.0
    fiber: float = 0.0

    @property
    def macro_energy(self) -> float:
        """Energy accounted for by macros (4/4/9 kcal per gram)."""
        return self.protein * 4 + self.carbs * 4 + self.fats * 9

    @property
    def protein_pct(self) -> float:
        """Share of macro energy coming from protein."""
        if self.macro_energy == 0:
            return 0.0
        return self.protein * 4 / self.macro_energy * 100

    @property
    def carbs_pct(self) -> float:
        if self.macro_energy == 0:
            return 0.0
        return self.carbs * 4 / self.macro_energy * 100

    @property
    def fats_pct(self) -> float:
        if self.macro_energy == 0:
            return 0.0
        return self.fats * 9 / self.macro_energy * 100

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def aggregate(analysis: FoodAnalysis) -> NutritionTotals:
    """Sum each nutrient field across all records.

    ``math.fsum`` is exactly rounded, so the totals do not depend on the
    order the ingredients are iterated in.
    """
    records = list(analysis.values())
    return NutritionTotals(
        **{
            name: math.fsum(getattr(r, name) for r in records)
            for name in NUTRIENT_FIELDS
        }
    )
