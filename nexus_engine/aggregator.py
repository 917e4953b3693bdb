"""
Per-state sales aggregation over nexus measurement windows.

Two independent windows are computed for every state in a single pass:
- Rolling 12 months: [now - 12 months, now]
- Calendar year:     [Jan 1 of now's year, now]

An order falling in both windows counts toward both totals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

import pandas as pd

from nexus_engine.config import COUNTRY_CODE
from nexus_engine.orders import Order
from nexus_engine.thresholds import ThresholdRegistry

logger = logging.getLogger(__name__)


@dataclass
class ExposureTotals:
    """Aggregated sales for one state over both measurement windows."""

    rolling_12_month_sales: Decimal = Decimal("0")
    rolling_12_month_transactions: int = 0
    calendar_year_sales: Decimal = Decimal("0")
    calendar_year_transactions: int = 0

    @classmethod
    def zero(cls) -> "ExposureTotals":
        return cls()

    @property
    def has_sales(self) -> bool:
        return (
            self.rolling_12_month_transactions > 0
            or self.calendar_year_transactions > 0
        )


def rolling_12_month_window(now: datetime) -> tuple[datetime, datetime]:
    """Return (start, end) of the trailing 12-month window ending at now."""
    try:
        start = now.replace(year=now.year - 1)
    except ValueError:
        # Feb 29 has no counterpart in the prior year
        start = now.replace(year=now.year - 1, day=28)
    return start, now


def calendar_year_window(now: datetime) -> tuple[datetime, datetime]:
    """Return (start, end) of the calendar year to date."""
    start = now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return start, now


def _align(moment: datetime, reference: datetime) -> datetime:
    """
    Make moment comparable with reference.

    Naive datetimes are taken to be UTC whenever the other side is aware.
    """
    moment_aware = moment.tzinfo is not None
    reference_aware = reference.tzinfo is not None
    if moment_aware == reference_aware:
        return moment
    if reference_aware:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def is_qualifying_order(
    order: Order, registry: Optional[ThresholdRegistry] = None
) -> bool:
    """
    True when the order may count toward a state's nexus totals.

    Only shipped-to-US orders with a destination state that are neither
    cancelled nor refunded qualify. With a registry, the state must also
    be one it knows.
    """
    if order.country_code != COUNTRY_CODE:
        return False
    if not order.state_code:
        return False
    if order.is_excluded_status:
        return False
    if registry is not None and order.state_code not in registry:
        logger.debug(
            "Ignoring order %s for unrecognized state %s",
            order.order_id or "<unnamed>",
            order.state_code,
        )
        return False
    return True


def aggregate_exposure_totals(
    orders: Iterable[Order],
    now: datetime,
    registry: Optional[ThresholdRegistry] = None,
) -> dict[str, ExposureTotals]:
    """
    Aggregate a user's orders into per-state exposure totals.

    States without a qualifying order inside either window are absent
    from the result. Input order is irrelevant.
    """
    rolling_start, _ = rolling_12_month_window(now)
    calendar_start, _ = calendar_year_window(now)

    totals: dict[str, ExposureTotals] = {}
    seen = 0
    counted = 0

    for order in orders:
        seen += 1
        if not is_qualifying_order(order, registry):
            continue

        order_date = _align(order.order_date, now)
        in_rolling = rolling_start <= order_date <= now
        in_calendar = calendar_start <= order_date <= now
        if not (in_rolling or in_calendar):
            continue

        state = totals.get(order.state_code)
        if state is None:
            state = totals[order.state_code] = ExposureTotals()

        if in_rolling:
            state.rolling_12_month_sales += order.total_amount
            state.rolling_12_month_transactions += 1
        if in_calendar:
            state.calendar_year_sales += order.total_amount
            state.calendar_year_transactions += 1
        counted += 1

    logger.debug(
        "Aggregated %d of %d orders into %d states", counted, seen, len(totals)
    )
    return totals


_SUMMARY_COLUMNS = ["state_code", "period", "total_sales", "order_count", "platforms"]


def monthly_sales_summary(
    orders: Iterable[Order],
    start: datetime,
    end: datetime,
    registry: Optional[ThresholdRegistry] = None,
) -> pd.DataFrame:
    """
    Summarize qualifying orders by state and calendar month (YYYY-MM).

    Both bounds are inclusive. Returns one row per (state, month) with at
    least one order, sorted by state then month.
    """
    rows = []
    for order in orders:
        if not is_qualifying_order(order, registry):
            continue
        order_date = _align(order.order_date, end)
        if not (_align(start, end) <= order_date <= end):
            continue
        rows.append(
            {
                "state_code": order.state_code,
                "period": f"{order_date.year:04d}-{order_date.month:02d}",
                "total_amount": float(order.total_amount),
                "platform": order.platform,
            }
        )

    if not rows:
        return pd.DataFrame(columns=_SUMMARY_COLUMNS)

    frame = pd.DataFrame(rows)
    summary = (
        frame.groupby(["state_code", "period"], sort=True)
        .agg(
            total_sales=("total_amount", "sum"),
            order_count=("total_amount", "size"),
            platforms=(
                "platform",
                lambda s: ", ".join(sorted({p for p in s if p})),
            ),
        )
        .reset_index()
    )
    summary["total_sales"] = summary["total_sales"].round(2)
    return summary[_SUMMARY_COLUMNS]
