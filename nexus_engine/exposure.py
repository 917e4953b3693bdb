"""
Nexus exposure report assembly.

Evaluates every state in the registry for one seller, ranks the results
by urgency and computes the summary counts shown on the dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from nexus_engine.aggregator import ExposureTotals
from nexus_engine.evaluator import ExposureStatus, evaluate_exposure
from nexus_engine.thresholds import StateThreshold, ThresholdRegistry


@dataclass(frozen=True)
class StateExposure:
    """Exposure of one seller in one state, plus the raw window totals."""

    state_code: str
    state_name: str
    has_sales_tax: bool
    current_sales: Decimal
    current_transactions: int
    sales_threshold: Optional[Decimal]
    transaction_threshold: Optional[int]
    sales_percentage: float
    transaction_percentage: float
    highest_percentage: float
    status: ExposureStatus
    measurement_period: str
    notes: str
    rolling_12_month_sales: Decimal
    rolling_12_month_transactions: int
    calendar_year_sales: Decimal
    calendar_year_transactions: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "stateCode": self.state_code,
            "stateName": self.state_name,
            "hasSalesTax": self.has_sales_tax,
            "currentSales": self.current_sales,
            "currentTransactions": self.current_transactions,
            "salesThreshold": self.sales_threshold,
            "transactionThreshold": self.transaction_threshold,
            "salesPercentage": self.sales_percentage,
            "transactionPercentage": self.transaction_percentage,
            "highestPercentage": self.highest_percentage,
            "status": self.status.value,
            "measurementPeriod": self.measurement_period,
            "notes": self.notes,
            "rolling12MonthSales": self.rolling_12_month_sales,
            "rolling12MonthTransactions": self.rolling_12_month_transactions,
            "calendarYearSales": self.calendar_year_sales,
            "calendarYearTransactions": self.calendar_year_transactions,
        }


@dataclass(frozen=True)
class ExposureSummary:
    total_states_with_sales: int
    exceeded_count: int
    warning_count: int
    approaching_count: int
    safe_count: int
    no_sales_tax_count: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalStatesWithSales": self.total_states_with_sales,
            "exceededCount": self.exceeded_count,
            "warningCount": self.warning_count,
            "approachingCount": self.approaching_count,
            "safeCount": self.safe_count,
            "noSalesTaxCount": self.no_sales_tax_count,
        }


@dataclass(frozen=True)
class ExposureReport:
    exposures: tuple[StateExposure, ...]
    summary: ExposureSummary

    def get(self, state_code: str) -> Optional[StateExposure]:
        code = state_code.strip().upper()
        return next((e for e in self.exposures if e.state_code == code), None)

    def by_status(self, status: ExposureStatus) -> list[StateExposure]:
        return [e for e in self.exposures if e.status is status]

    def to_dict(self) -> dict[str, Any]:
        return {
            "exposures": [e.to_dict() for e in self.exposures],
            "summary": self.summary.to_dict(),
        }


def build_state_exposure(
    threshold: StateThreshold, totals: ExposureTotals
) -> StateExposure:
    result = evaluate_exposure(totals, threshold)
    return StateExposure(
        state_code=threshold.state_code,
        state_name=threshold.state_name,
        has_sales_tax=threshold.has_sales_tax,
        current_sales=result.current_sales,
        current_transactions=result.current_transactions,
        sales_threshold=threshold.sales_threshold,
        transaction_threshold=threshold.transaction_threshold,
        sales_percentage=result.sales_percentage,
        transaction_percentage=result.transaction_percentage,
        highest_percentage=result.highest_percentage,
        status=result.status,
        measurement_period=threshold.measurement_period.value,
        notes=threshold.notes,
        rolling_12_month_sales=totals.rolling_12_month_sales,
        rolling_12_month_transactions=totals.rolling_12_month_transactions,
        calendar_year_sales=totals.calendar_year_sales,
        calendar_year_transactions=totals.calendar_year_transactions,
    )


def exposure_sort_key(e: StateExposure) -> tuple[bool, int, float, str]:
    """
    Ranking: taxing states first, then by urgency, then by percentage
    descending. State code breaks remaining ties.
    """
    return (not e.has_sales_tax, e.status.urgency, -e.highest_percentage, e.state_code)


def summarize(exposures: list[StateExposure]) -> ExposureSummary:
    def count(status: ExposureStatus) -> int:
        return sum(1 for e in exposures if e.status is status and e.has_sales_tax)

    return ExposureSummary(
        total_states_with_sales=sum(
            1
            for e in exposures
            if e.rolling_12_month_transactions > 0 or e.calendar_year_transactions > 0
        ),
        exceeded_count=count(ExposureStatus.EXCEEDED),
        warning_count=count(ExposureStatus.WARNING),
        approaching_count=count(ExposureStatus.APPROACHING),
        safe_count=count(ExposureStatus.SAFE),
        no_sales_tax_count=sum(1 for e in exposures if not e.has_sales_tax),
    )


def build_exposure_report(
    totals_by_state: Mapping[str, ExposureTotals],
    registry: ThresholdRegistry,
) -> ExposureReport:
    """
    Evaluate every registry state and rank the results.

    States missing from totals_by_state are evaluated as all-zero.
    """
    exposures = [
        build_state_exposure(
            threshold,
            totals_by_state.get(threshold.state_code) or ExposureTotals.zero(),
        )
        for threshold in registry.list_all()
    ]
    exposures.sort(key=exposure_sort_key)
    return ExposureReport(exposures=tuple(exposures), summary=summarize(exposures))
