"""Tests for nexus threshold-crossing alerts."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from nexus_engine.aggregator import aggregate_exposure_totals
from nexus_engine.alerts import MAX_STORED_PERCENTAGE, NexusAlertTracker, alert_message
from nexus_engine.evaluator import ExposureStatus
from nexus_engine.exposure import build_exposure_report
from nexus_engine.orders import Order
from nexus_engine.thresholds import MeasurementPeriod, StateThreshold, ThresholdRegistry

NOW = datetime(2025, 6, 30, 12, 0)


@pytest.fixture
def registry() -> ThresholdRegistry:
    return ThresholdRegistry()


def _report(registry, sales: dict[str, str]):
    orders = [
        Order(
            order_date=NOW - timedelta(days=3),
            total_amount=Decimal(amount),
            state_code=state,
            country_code="US",
        )
        for state, amount in sales.items()
    ]
    return build_exposure_report(
        aggregate_exposure_totals(orders, NOW, registry), registry
    )


# ── Raising ──────────────────────────────────────────────────────────


def test_exceeded_records_all_lower_levels(registry):
    tracker = NexusAlertTracker()
    alerts = tracker.check(_report(registry, {"CA": "510000"}))

    assert len(alerts) == 1
    assert alerts[0].state_code == "CA"
    assert alerts[0].level is ExposureStatus.EXCEEDED
    assert tracker.raised == {
        ("CA", ExposureStatus.EXCEEDED),
        ("CA", ExposureStatus.WARNING),
        ("CA", ExposureStatus.APPROACHING),
    }


def test_same_level_is_not_raised_twice(registry):
    tracker = NexusAlertTracker()
    report = _report(registry, {"CA": "510000"})
    tracker.check(report)
    assert tracker.check(report) == []


def test_escalation_raises_only_the_new_level(registry):
    tracker = NexusAlertTracker(existing=[("FL", ExposureStatus.APPROACHING)])
    alerts = tracker.check(_report(registry, {"FL": "85000"}))

    assert [a.level for a in alerts] == [ExposureStatus.WARNING]
    assert ("FL", ExposureStatus.WARNING) in tracker.raised


def test_existing_keys_are_case_insensitive(registry):
    tracker = NexusAlertTracker(existing=[("fl", ExposureStatus.WARNING)])
    alerts = tracker.check(_report(registry, {"FL": "85000"}))
    assert [a.level for a in alerts] == [ExposureStatus.APPROACHING]


def test_safe_states_do_not_alert(registry):
    tracker = NexusAlertTracker()
    assert tracker.check(_report(registry, {"CA": "1000"})) == []
    assert tracker.raised == set()


def test_no_sales_tax_states_never_alert(registry):
    tracker = NexusAlertTracker()
    assert tracker.check(_report(registry, {"OR": "5000000"})) == []


def test_clear_state_allows_raising_again(registry):
    tracker = NexusAlertTracker()
    report = _report(registry, {"CA": "510000", "TX": "510000"})
    tracker.check(report)

    tracker.clear_state("ca")
    alerts = tracker.check(report)
    assert [a.state_code for a in alerts] == ["CA"]


# ── Alert content ────────────────────────────────────────────────────


def test_marked_nexus_flag(registry):
    tracker = NexusAlertTracker(marked_nexus_states=["tx"])
    alerts = tracker.check(_report(registry, {"CA": "510000", "TX": "510000"}))
    flags = {a.state_code: a.has_marked_nexus for a in alerts}
    assert flags == {"CA": False, "TX": True}


def test_percentage_is_capped(registry):
    tracker = NexusAlertTracker()
    (alert,) = tracker.check(_report(registry, {"CA": "6000000"}))
    assert alert.percentage == MAX_STORED_PERCENTAGE


def test_exceeded_message(registry):
    exposure = _report(registry, {"CA": "510000"}).get("CA")
    message = alert_message(exposure, ExposureStatus.EXCEEDED)
    assert "California" in message
    assert "$510,000" in message
    assert "$500,000" in message
    assert "register" in message


def test_warning_message_includes_percentage(registry):
    exposure = _report(registry, {"FL": "85000"}).get("FL")
    message = alert_message(exposure, ExposureStatus.WARNING)
    assert "85%" in message
    assert "$100,000" in message


def test_states_without_sales_threshold_never_alert():
    registry = ThresholdRegistry.from_records(
        [
            StateThreshold(
                state_code="ZT",
                state_name="Transaction Only",
                has_sales_tax=True,
                sales_threshold=None,
                transaction_threshold=10,
                measurement_period=MeasurementPeriod.CALENDAR_YEAR_OR_ROLLING,
            )
        ]
    )
    orders = [
        Order(NOW - timedelta(days=i), Decimal("10"), "ZT", "US") for i in range(12)
    ]
    report = build_exposure_report(
        aggregate_exposure_totals(orders, NOW, registry), registry
    )
    assert report.get("ZT").status is ExposureStatus.EXCEEDED

    tracker = NexusAlertTracker()
    assert tracker.check(report) == []
    assert tracker.raised == set()
