"""Revenue-qualification value types."""

from __future__ import annotations

from pydantic import ConfigDict

from ertc_webhook.schemas.common import CamelModel


class QuarterRevenuePair(CamelModel):
    """Baseline and comparison revenue for one quarter, already normalized."""

    model_config = ConfigDict(frozen=True)

    quarter: str
    baseline_revenue: float = 0.0
    comparison_revenue: float = 0.0

    @property
    def ordinal(self) -> int:
        return int(self.quarter[1:])


class QuarterAnalysisResult(CamelModel):
    """Qualification verdict for one quarter."""

    model_config = ConfigDict(frozen=True)

    quarter: str
    baseline_revenue: float
    comparison_revenue: float
    change: float
    percent_decrease: float
    qualifies: bool

    @property
    def percent_label(self) -> str:
        return f"{self.percent_decrease:.2f}%"


class QualificationSummary(CamelModel):
    """Ordered per-quarter results plus the labels of qualifying quarters."""

    model_config = ConfigDict(frozen=True)

    results: tuple[QuarterAnalysisResult, ...]
    qualifying_quarters: tuple[str, ...]

    @property
    def qualifies(self) -> bool:
        return bool(self.qualifying_quarters)
