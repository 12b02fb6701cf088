"""Outcome types produced by one analysis attempt."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from .nutrition.model import FoodAnalysis, NutrientRecord, NutritionTotals, aggregate


@dataclass(frozen=True)
class Success:
    """The backend answered and the answer parsed."""

    data: FoodAnalysis
    raw_text: str

    @property
    def totals(self) -> NutritionTotals:
        return aggregate(self.data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success",
            "data": {name: r.to_dict() for name, r in self.data.items()},
            "raw_text": self.raw_text,
        }


@dataclass(frozen=True)
class PartialFailure:
    """The backend answered but the answer could not be parsed."""

    raw_text: str
    parse_error: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "partial_failure",
            "raw_text": self.raw_text,
            "parse_error": self.parse_error,
        }


@dataclass(frozen=True)
class Failure:
    """No usable answer was produced."""

    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": "failure", "error": self.error}


AnalysisOutcome = Union[Success, PartialFailure, Failure]


@dataclass(frozen=True)
class Prediction:
    label: str
    probability: float  # 0.0〜1.0


@dataclass(frozen=True)
class ClassificationResult:
    """Ranked classifier predictions, most confident first."""

    predictions: tuple[Prediction, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.predictions:
            raise ValueError("ClassificationResult needs at least one prediction")

    @property
    def top_prediction(self) -> str:
        return self.predictions[0].label

    @property
    def confidence(self) -> float:
        return self.predictions[0].probability

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "classification",
            "top_prediction": self.top_prediction,
            "confidence": self.confidence,
            "predictions": [
                {"label": p.label, "probability": p.probability}
                for p in self.predictions
            ],
        }


def outcome_from_dict(
    data: dict[str, Any],
) -> AnalysisOutcome | ClassificationResult:
    """Rebuild an outcome serialized with ``to_dict``."""
    status = data.get("status")

    match status:
        case "success":
            return Success(
                data={
                    name: NutrientRecord(**record)
                    for name, record in data["data"].items()
                },
                raw_text=data["raw_text"],
            )
        case "partial_failure":
            return PartialFailure(
                raw_text=data["raw_text"], parse_error=data["parse_error"]
            )
        case "failure":
            return Failure(error=data["error"])
        case "classification":
            return ClassificationResult(
                predictions=tuple(
                    Prediction(label=p["label"], probability=p["probability"])
                    for p in data["predictions"]
                )
            )
        case _:
            raise ValueError(f"Unknown outcome status: {status!r}")


def dumps(outcome: AnalysisOutcome | ClassificationResult) -> str:
    return json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2)


def loads(text: str) -> AnalysisOutcome | ClassificationResult:
    return outcome_from_dict(json.loads(text))
