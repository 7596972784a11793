"""Revenue-qualification analysis (pure, no DB access).

A quarter qualifies when revenue fell by 50% or more from the baseline year
to the comparison year. The verdict is taken from the percentage as it is
displayed, i.e. after rounding to two decimals, so "50.00%" always reads as
qualifying even when the unrounded ratio is 49.996%.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from ertc_webhook.schemas.qualification import (
    QualificationSummary,
    QuarterAnalysisResult,
    QuarterRevenuePair,
)

QUARTERS: tuple[str, ...] = ("q1", "q2", "q3")
QUALIFYING_DECREASE_PCT = 50.0


def parse_revenue(value: Any) -> float:
    """Coerce a submitted revenue figure to a float.

    Numbers and numeric strings (optionally with a leading ``$`` and
    thousands separators) are accepted. Anything else, including booleans,
    NaN and infinities, is 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return 0.0
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if text.startswith("$"):
            text = text[1:]
        elif text.startswith("-$"):
            text = "-" + text[2:]
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def quarter_label(quarter: str) -> str:
    """``"q2"`` -> ``"Quarter 2"``."""
    return f"Quarter {quarter[1:]}"


def round_percent(value: float) -> float:
    """Round to two decimals the way the report displays it."""
    return float(f"{value:.2f}")


def _by_quarter(revenue_by_quarter: Mapping[Any, Any] | None) -> dict[str, Any]:
    if not isinstance(revenue_by_quarter, Mapping):
        return {}
    return {str(k).strip().lower(): v for k, v in revenue_by_quarter.items()}


def quarter_pairs(
    baseline_by_quarter: Mapping[Any, Any] | None,
    comparison_by_quarter: Mapping[Any, Any] | None,
) -> list[QuarterRevenuePair]:
    """Pair up both years' revenue for q1..q3, missing entries as 0."""
    baseline = _by_quarter(baseline_by_quarter)
    comparison = _by_quarter(comparison_by_quarter)
    return [
        QuarterRevenuePair(
            quarter=q,
            baseline_revenue=parse_revenue(baseline.get(q)),
            comparison_revenue=parse_revenue(comparison.get(q)),
        )
        for q in QUARTERS
    ]


def analyze_quarter(pair: QuarterRevenuePair) -> QuarterAnalysisResult:
    """Compute change, percent decrease and verdict for a single quarter.

    Figures whose difference or ratio overflows a float degrade to 0.
    """
    baseline = pair.baseline_revenue
    change = baseline - pair.comparison_revenue
    if not math.isfinite(change):
        change = 0.0

    percent_decrease = 0.0
    qualifies = False
    if baseline > 0:
        ratio = change / baseline * 100
        if math.isfinite(ratio):
            percent_decrease = round_percent(ratio)
            qualifies = percent_decrease >= QUALIFYING_DECREASE_PCT

    return QuarterAnalysisResult(
        quarter=quarter_label(pair.quarter),
        baseline_revenue=baseline,
        comparison_revenue=pair.comparison_revenue,
        change=change,
        percent_decrease=percent_decrease,
        qualifies=qualifies,
    )


def analyze(
    baseline_by_quarter: Mapping[Any, Any] | None,
    comparison_by_quarter: Mapping[Any, Any] | None,
) -> QualificationSummary:
    """Turn two years of quarterly revenue into a qualification summary.

    Never raises: malformed or missing figures are treated as 0, and the
    result always holds exactly three quarters in order q1, q2, q3.
    """
    results = tuple(
        analyze_quarter(pair) for pair in quarter_pairs(baseline_by_quarter, comparison_by_quarter)
    )
    return QualificationSummary(
        results=results,
        qualifying_quarters=tuple(r.quarter for r in results if r.qualifies),
    )


def summary_from_records(records: list[dict[str, Any]]) -> QualificationSummary:
    """Rebuild a summary from persisted result dicts."""
    results = tuple(QuarterAnalysisResult.model_validate(r) for r in records)
    return QualificationSummary(
        results=results,
        qualifying_quarters=tuple(r.quarter for r in results if r.qualifies),
    )
