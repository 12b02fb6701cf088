"""Terminal rendering of analysis results."""

from __future__ import annotations

from .models import (
    AnalysisOutcome,
    ClassificationResult,
    Failure,
    PartialFailure,
    Success,
)
from .nutrition.model import aggregate


def format_outcome(outcome: AnalysisOutcome | ClassificationResult) -> str:
    """Format a result view for terminal display."""
    match outcome:
        case Success():
            return _format_success(outcome)
        case PartialFailure():
            return _format_partial(outcome)
        case Failure():
            return f"❌ Analysis failed: {outcome.error}"
        case ClassificationResult():
            return _format_classification(outcome)
        case _:
            raise TypeError(f"Cannot display {type(outcome).__name__}")


def _format_success(outcome: Success) -> str:
    lines: list[str] = []
    if not outcome.data:
        lines.append("🍽  No ingredients detected.")
        return "\n".join(lines)

    lines.append(f"🍽  Detected ingredients ({len(outcome.data)})")
    lines.append("")
    lines.append(
        f"  {'Ingredient':<24} {'Weight':>8} {'Calories':>9} "
        f"{'Protein':>8} {'Carbs':>7} {'Fats':>7} {'Fiber':>7}"
    )
    lines.append(f"  {'─' * 76}")
    for name, r in outcome.data.items():
        lines.append(
            f"  {name[:24]:<24} {r.weight:>7.0f}g {r.calories:>5.0f}kcal "
            f"{r.protein:>7.1f}g {r.carbs:>6.1f}g {r.fats:>6.1f}g {r.fiber:>6.1f}g"
        )

    # Totals are derived at display time, never stored.
    t = aggregate(outcome.data)
    lines.append(f"  {'─' * 76}")
    lines.append(
        f"  {'Total':<24} {t.weight:>7.0f}g {t.calories:>5.0f}kcal "
        f"{t.protein:>7.1f}g {t.carbs:>6.1f}g {t.fats:>6.1f}g {t.fiber:>6.1f}g"
    )
    if t.macro_energy:
        lines.append("")
        lines.append(
            f"  Energy split: protein {t.protein_pct:.0f}% · "
            f"carbs {t.carbs_pct:.0f}% · fats {t.fats_pct:.0f}%"
        )
    return "\n".join(lines)


def _format_partial(outcome: PartialFailure) -> str:
    lines = [
        "⚠  Could not read the analysis as structured data; showing the raw answer.",
        f"   ({outcome.parse_error})",
        "",
        outcome.raw_text,
    ]
    return "\n".join(lines)


def _format_classification(result: ClassificationResult) -> str:
    lines = [
        f"🔍 {result.top_prediction} ({result.confidence:.0%})",
        "",
    ]
    for p in result.predictions:
        bar = "█" * int(p.probability * 10)
        lines.append(f"  {p.label:<30} {p.probability:>4.0%} {bar}")
    return "\n".join(lines)
