"""
Exposure evaluation for a single state.

Selects the sales and transaction figures the state's measurement period
calls for, expresses them as a percentage of each threshold, and buckets
the higher percentage into an exposure status.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from nexus_engine.aggregator import ExposureTotals
from nexus_engine.thresholds import MeasurementPeriod, StateThreshold


class ExposureStatus(Enum):
    SAFE = "safe"
    APPROACHING = "approaching"
    WARNING = "warning"
    EXCEEDED = "exceeded"

    @property
    def urgency(self) -> int:
        """Sort rank; lower is more urgent."""
        return _URGENCY[self]


_URGENCY = {
    ExposureStatus.EXCEEDED: 0,
    ExposureStatus.WARNING: 1,
    ExposureStatus.APPROACHING: 2,
    ExposureStatus.SAFE: 3,
}

# Percent-of-threshold cutoffs, checked from the top down
EXCEEDED_PCT = 100.0
WARNING_PCT = 80.0
APPROACHING_PCT = 50.0


@dataclass(frozen=True)
class ExposureResult:
    """Evaluation of one state's totals against its threshold."""

    current_sales: Decimal
    current_transactions: int
    sales_percentage: float
    transaction_percentage: float
    highest_percentage: float
    status: ExposureStatus


_NOT_APPLICABLE = ExposureResult(
    current_sales=Decimal("0"),
    current_transactions=0,
    sales_percentage=0.0,
    transaction_percentage=0.0,
    highest_percentage=0.0,
    status=ExposureStatus.SAFE,
)


def classify_percentage(pct: float) -> ExposureStatus:
    if pct >= EXCEEDED_PCT:
        return ExposureStatus.EXCEEDED
    if pct >= WARNING_PCT:
        return ExposureStatus.WARNING
    if pct >= APPROACHING_PCT:
        return ExposureStatus.APPROACHING
    return ExposureStatus.SAFE


def select_period_values(
    totals: ExposureTotals, period: MeasurementPeriod
) -> tuple[Decimal, int]:
    """
    Pick (sales, transactions) for the state's measurement period.

    For the higher-of-two period the metrics are maximized independently,
    so sales may come from one window and transactions from the other.
    """
    if period is MeasurementPeriod.ROLLING_12_MONTHS:
        return (
            totals.rolling_12_month_sales,
            totals.rolling_12_month_transactions,
        )
    return (
        max(totals.rolling_12_month_sales, totals.calendar_year_sales),
        max(
            totals.rolling_12_month_transactions,
            totals.calendar_year_transactions,
        ),
    )


def evaluate_exposure(
    totals: ExposureTotals, threshold: StateThreshold
) -> ExposureResult:
    """Classify a state's exposure. Pure; never divides by a null threshold."""
    if not threshold.is_applicable:
        return _NOT_APPLICABLE

    sales, transactions = select_period_values(
        totals, threshold.measurement_period
    )

    sales_pct = (
        float(sales * 100 / threshold.sales_threshold)
        if threshold.sales_threshold
        else 0.0
    )
    txn_pct = (
        transactions * 100 / threshold.transaction_threshold
        if threshold.transaction_threshold
        else 0.0
    )
    highest = max(sales_pct, txn_pct)

    return ExposureResult(
        current_sales=sales,
        current_transactions=transactions,
        sales_percentage=sales_pct,
        transaction_percentage=txn_pct,
        highest_percentage=highest,
        status=classify_percentage(highest),
    )
