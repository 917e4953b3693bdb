#!/usr/bin/env python3
"""
Quick Start Example
===================

Builds a nexus exposure report for a seller with orders in a few states
and prints the states that need attention.

Usage:
    python examples/quick_start.py
"""

from datetime import datetime, timedelta
from decimal import Decimal

from nexus_engine import ExposureService, InMemoryOrderSource, Order


def main() -> None:
    now = datetime(2025, 6, 30, 12, 0)

    # 220 orders to Georgia and a handful of large orders to Texas
    orders = [
        Order(
            order_date=now - timedelta(days=i),
            total_amount=Decimal("85.00"),
            state_code="GA",
            country_code="US",
            order_id=f"GA-{i}",
        )
        for i in range(220)
    ]
    orders += [
        Order(
            order_date=now - timedelta(days=30 * i),
            total_amount=Decimal("45000.00"),
            state_code="TX",
            country_code="US",
            order_id=f"TX-{i}",
        )
        for i in range(8)
    ]

    service = ExposureService(InMemoryOrderSource({"seller-1": orders}))
    report = service.generate_report("seller-1", now)

    for e in report.exposures:
        if e.status.value == "safe":
            continue
        print(
            f"{e.state_code}: {e.status.value:<11} "
            f"sales ${e.current_sales:,.2f} | "
            f"{e.current_transactions} txns | "
            f"{e.highest_percentage:.1f}% of threshold"
        )

    s = report.summary
    print(
        f"\n{s.total_states_with_sales} states with sales, "
        f"{s.exceeded_count} exceeded, {s.warning_count} warning, "
        f"{s.approaching_count} approaching"
    )


if __name__ == "__main__":
    main()
