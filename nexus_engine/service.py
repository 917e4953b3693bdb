"""
Exposure report service.

Wires the order source, aggregator and assembler together for one request
and shapes the response for the HTTP layer. Each report is one bulk order
read followed by a pure computation.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from nexus_engine.aggregator import aggregate_exposure_totals
from nexus_engine.exceptions import OrderSourceError
from nexus_engine.exposure import ExposureReport, build_exposure_report
from nexus_engine.orders import OrderSource
from nexus_engine.thresholds import ThresholdRegistry, default_registry

logger = logging.getLogger(__name__)

UNAUTHORIZED_BODY = {"error": "Unauthorized"}
FAILURE_BODY = {"error": "Failed to fetch nexus exposure data"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExposureService:
    """
    Computes nexus exposure reports for sellers.

    With cache_ttl_seconds > 0, reports are reused for requests from the
    same user within the same clock hour until the entry expires.
    """

    def __init__(
        self,
        order_source: OrderSource,
        registry: Optional[ThresholdRegistry] = None,
        cache_ttl_seconds: int = 0,
        clock: Callable[[], datetime] = _utcnow,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.order_source = order_source
        self.registry = registry or default_registry()
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._timer = timer
        self._cache: dict[tuple[str, datetime], tuple[float, ExposureReport]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Report generation
    # ------------------------------------------------------------------

    def _fetch_orders(self, user_id: str) -> list:
        try:
            return list(self.order_source.list_orders(user_id))
        except OrderSourceError:
            raise
        except Exception as e:
            raise OrderSourceError(
                "Order source failed", user_id=user_id, original_error=e
            ) from e

    def _compute(self, user_id: str, now: datetime) -> ExposureReport:
        orders = self._fetch_orders(user_id)
        totals = aggregate_exposure_totals(orders, now, self.registry)
        report = build_exposure_report(totals, self.registry)
        logger.info(
            "Built exposure report for user %s: %d orders, %d states with sales, "
            "%d exceeded",
            user_id,
            len(orders),
            report.summary.total_states_with_sales,
            report.summary.exceeded_count,
        )
        return report

    def generate_report(
        self, user_id: str, now: Optional[datetime] = None
    ) -> ExposureReport:
        """
        Build the exposure report for a user as of now.

        Raises OrderSourceError when the order history cannot be read.
        """
        now = now or self._clock()
        if self.cache_ttl_seconds <= 0:
            return self._compute(user_id, now)

        key = (user_id, now.replace(minute=0, second=0, microsecond=0))
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None and cached[0] > self._timer():
                logger.debug("Exposure cache hit for user %s", user_id)
                return cached[1]

        report = self._compute(user_id, now)
        with self._lock:
            self._cache[key] = (self._timer() + self.cache_ttl_seconds, report)
            self._evict_expired()
        return report

    def _evict_expired(self) -> None:
        current = self._timer()
        for key in [k for k, (expires, _) in self._cache.items() if expires <= current]:
            del self._cache[key]

    def invalidate(self, user_id: Optional[str] = None) -> None:
        """Drop cached reports for one user, or for everyone."""
        with self._lock:
            if user_id is None:
                self._cache.clear()
            else:
                for key in [k for k in self._cache if k[0] == user_id]:
                    del self._cache[key]

    # ------------------------------------------------------------------
    # HTTP boundary
    # ------------------------------------------------------------------

    def handle_request(
        self, user_id: Optional[str], now: Optional[datetime] = None
    ) -> tuple[int, dict[str, Any]]:
        """
        Serve GET /api/nexus/exposure for the authenticated user.

        Returns (status_code, body). Failures are logged with detail and
        answered with a generic message.
        """
        if not user_id:
            return 401, dict(UNAUTHORIZED_BODY)
        try:
            report = self.generate_report(user_id, now)
        except Exception:
            logger.exception("Error fetching nexus exposure for user %s", user_id)
            return 500, dict(FAILURE_BODY)
        return 200, report.to_dict()
