"""Tests for single-state exposure evaluation."""

from decimal import Decimal

import pytest

from nexus_engine.aggregator import ExposureTotals
from nexus_engine.evaluator import (
    ExposureStatus,
    classify_percentage,
    evaluate_exposure,
    select_period_values,
)
from nexus_engine.thresholds import MeasurementPeriod, StateThreshold


def _threshold(
    sales="100000",
    transactions=200,
    period=MeasurementPeriod.ROLLING_12_MONTHS,
    has_tax=True,
) -> StateThreshold:
    return StateThreshold(
        state_code="ZZ",
        state_name="Testland",
        has_sales_tax=has_tax,
        sales_threshold=Decimal(sales) if sales is not None else None,
        transaction_threshold=transactions,
        measurement_period=period,
    )


def _totals(r_sales="0", r_txn=0, c_sales="0", c_txn=0) -> ExposureTotals:
    return ExposureTotals(
        rolling_12_month_sales=Decimal(r_sales),
        rolling_12_month_transactions=r_txn,
        calendar_year_sales=Decimal(c_sales),
        calendar_year_transactions=c_txn,
    )


# ── Status cutoffs ───────────────────────────────────────────────────


@pytest.mark.parametrize(
    "pct, expected",
    [
        (0.0, ExposureStatus.SAFE),
        (49.99, ExposureStatus.SAFE),
        (50.0, ExposureStatus.APPROACHING),
        (79.99, ExposureStatus.APPROACHING),
        (80.0, ExposureStatus.WARNING),
        (99.99, ExposureStatus.WARNING),
        (100.0, ExposureStatus.EXCEEDED),
        (250.0, ExposureStatus.EXCEEDED),
    ],
)
def test_classify_percentage(pct, expected):
    assert classify_percentage(pct) is expected


def test_urgency_order():
    ranked = sorted(ExposureStatus, key=lambda s: s.urgency)
    assert ranked == [
        ExposureStatus.EXCEEDED,
        ExposureStatus.WARNING,
        ExposureStatus.APPROACHING,
        ExposureStatus.SAFE,
    ]


# ── Not applicable ───────────────────────────────────────────────────


def test_no_sales_tax_is_always_safe():
    t = _threshold(sales=None, transactions=None, has_tax=False)
    result = evaluate_exposure(_totals("5000000", 9000, "5000000", 9000), t)
    assert result.status is ExposureStatus.SAFE
    assert result.sales_percentage == 0
    assert result.transaction_percentage == 0
    assert result.highest_percentage == 0


def test_no_thresholds_is_safe():
    t = _threshold(sales=None, transactions=None)
    result = evaluate_exposure(_totals("5000000", 9000), t)
    assert result.status is ExposureStatus.SAFE
    assert result.highest_percentage == 0


# ── Period selection ─────────────────────────────────────────────────


def test_rolling_period_ignores_calendar_year():
    totals = _totals("10000", 5, "90000", 50)
    sales, txns = select_period_values(totals, MeasurementPeriod.ROLLING_12_MONTHS)
    assert sales == Decimal("10000")
    assert txns == 5


def test_higher_period_maximizes_each_metric_independently():
    totals = _totals("90000", 50, "40000", 150)
    sales, txns = select_period_values(
        totals, MeasurementPeriod.CALENDAR_YEAR_OR_ROLLING
    )
    assert sales == Decimal("90000")
    assert txns == 150


def test_evaluation_uses_selected_period():
    t = _threshold(period=MeasurementPeriod.CALENDAR_YEAR_OR_ROLLING)
    result = evaluate_exposure(_totals("40000", 50, "60000", 180), t)
    assert result.current_sales == Decimal("60000")
    assert result.current_transactions == 180
    assert result.sales_percentage == pytest.approx(60.0)
    assert result.transaction_percentage == pytest.approx(90.0)
    assert result.highest_percentage == pytest.approx(90.0)
    assert result.status is ExposureStatus.WARNING


# ── Percentages ──────────────────────────────────────────────────────


def test_sales_exactly_at_threshold_exceeds():
    result = evaluate_exposure(_totals("100000"), _threshold())
    assert result.sales_percentage == 100.0
    assert result.status is ExposureStatus.EXCEEDED


def test_sales_one_cent_below_threshold_does_not_exceed():
    result = evaluate_exposure(_totals("99999.99"), _threshold())
    assert result.sales_percentage < 100.0
    assert result.status is ExposureStatus.WARNING


def test_transactions_alone_can_exceed():
    result = evaluate_exposure(_totals("10", 200), _threshold())
    assert result.transaction_percentage == 100.0
    assert result.status is ExposureStatus.EXCEEDED


def test_transaction_only_threshold():
    t = _threshold(sales=None, transactions=200)
    result = evaluate_exposure(_totals("900000", 100), t)
    assert result.sales_percentage == 0
    assert result.transaction_percentage == 50.0
    assert result.status is ExposureStatus.APPROACHING


def test_missing_transaction_threshold_reports_zero():
    t = _threshold(transactions=None)
    result = evaluate_exposure(_totals("30000", 10000), t)
    assert result.transaction_percentage == 0
    assert result.highest_percentage == pytest.approx(30.0)
    assert result.status is ExposureStatus.SAFE


def test_increasing_sales_never_lowers_exposure():
    t = _threshold()
    previous = None
    for sales in range(0, 200001, 2500):
        result = evaluate_exposure(_totals(str(sales), 20), t)
        if previous is not None:
            assert result.highest_percentage >= previous.highest_percentage
            assert result.status.urgency <= previous.status.urgency
        previous = result


def test_increasing_transactions_never_lowers_exposure():
    t = _threshold(period=MeasurementPeriod.CALENDAR_YEAR_OR_ROLLING)
    previous = None
    for txns in range(0, 400, 7):
        result = evaluate_exposure(_totals("20000", txns, "0", txns // 2), t)
        if previous is not None:
            assert result.highest_percentage >= previous.highest_percentage
            assert result.status.urgency <= previous.status.urgency
        previous = result


def test_evaluation_is_deterministic():
    t = _threshold()
    totals = _totals("81234.56", 17)
    assert evaluate_exposure(totals, t) == evaluate_exposure(totals, t)
