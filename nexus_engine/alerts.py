"""
Nexus threshold-crossing alerts.

A seller is alerted the first time a state reaches each exposure level.
Once a (state, level) pair has been raised it is not raised again until
the state is cleared, e.g. after sales fall back below the threshold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from nexus_engine.evaluator import ExposureStatus
from nexus_engine.exposure import ExposureReport, StateExposure

logger = logging.getLogger(__name__)

# Stored percentages are capped to fit the alert record
MAX_STORED_PERCENTAGE = 999.99

_LEVELS_TO_RAISE: dict[ExposureStatus, tuple[ExposureStatus, ...]] = {
    ExposureStatus.EXCEEDED: (
        ExposureStatus.EXCEEDED,
        ExposureStatus.WARNING,
        ExposureStatus.APPROACHING,
    ),
    ExposureStatus.WARNING: (ExposureStatus.WARNING, ExposureStatus.APPROACHING),
    ExposureStatus.APPROACHING: (ExposureStatus.APPROACHING,),
    ExposureStatus.SAFE: (),
}


@dataclass
class NexusAlert:
    """A newly raised nexus alert for one state."""

    state_code: str
    state_name: str
    level: ExposureStatus
    sales_amount: Decimal
    threshold: Optional[Decimal]
    percentage: float
    message: str
    has_marked_nexus: bool = False


def _money(amount: Optional[Decimal]) -> str:
    if amount is None:
        return "n/a"
    return f"${amount:,.0f}"


def alert_message(exposure: StateExposure, level: ExposureStatus) -> str:
    """Human-readable message for an alert level."""
    sales = _money(exposure.current_sales)
    threshold = _money(exposure.sales_threshold)
    pct = round(exposure.highest_percentage)
    name = exposure.state_name

    if level is ExposureStatus.EXCEEDED:
        return (
            f"Your sales in {name} have reached {sales}, exceeding the "
            f"{threshold} economic nexus threshold. You need to register "
            f"and start collecting sales tax."
        )
    if level is ExposureStatus.WARNING:
        return (
            f"Your sales in {name} have reached {sales}, {pct}% of the "
            f"{threshold} nexus threshold. You may need to register soon."
        )
    if level is ExposureStatus.APPROACHING:
        return (
            f"Your sales in {name} have reached {sales}, {pct}% of the "
            f"{threshold} nexus threshold. Keep an eye on this."
        )
    return f"Sales in {name}: {sales}"


class NexusAlertTracker:
    """
    Raises alerts for new threshold crossings in an exposure report.

    Holds the (state_code, level) keys already alerted for one seller.
    """

    def __init__(
        self,
        existing: Optional[Iterable[tuple[str, ExposureStatus]]] = None,
        marked_nexus_states: Optional[Iterable[str]] = None,
    ) -> None:
        self._raised: set[tuple[str, ExposureStatus]] = {
            (code.upper(), level) for code, level in (existing or [])
        }
        self._marked = {s.upper() for s in (marked_nexus_states or [])}

    @property
    def raised(self) -> set[tuple[str, ExposureStatus]]:
        return set(self._raised)

    def clear_state(self, state_code: str) -> None:
        """Forget every level raised for a state."""
        code = state_code.upper()
        self._raised = {k for k in self._raised if k[0] != code}

    def check(self, report: ExposureReport) -> list[NexusAlert]:
        """
        Record new crossings and return the most severe new alert per state.

        Lower levels crossed at the same time are recorded but not returned.
        States without a sales threshold are not alerted on.
        """
        alerts: list[NexusAlert] = []

        for exposure in report.exposures:
            if not exposure.has_sales_tax or exposure.sales_threshold is None:
                continue
            levels = [
                level
                for level in _LEVELS_TO_RAISE[exposure.status]
                if (exposure.state_code, level) not in self._raised
            ]
            if not levels:
                continue

            for level in levels:
                self._raised.add((exposure.state_code, level))

            top = levels[0]
            alerts.append(
                NexusAlert(
                    state_code=exposure.state_code,
                    state_name=exposure.state_name,
                    level=top,
                    sales_amount=exposure.current_sales,
                    threshold=exposure.sales_threshold,
                    percentage=min(exposure.highest_percentage, MAX_STORED_PERCENTAGE),
                    message=alert_message(exposure, top),
                    has_marked_nexus=exposure.state_code in self._marked,
                )
            )
            logger.info(
                "Nexus alert for %s: %s (%.1f%%)",
                exposure.state_code,
                top.value,
                exposure.highest_percentage,
            )

        return alerts
