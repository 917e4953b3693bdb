"""
Imported order records and the sources that supply them.

Orders are owned by the platform import subsystem; the engine only reads
them, one bulk read per report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

import pandas as pd

from nexus_engine.exceptions import InvalidOrderError, OrderSourceError

logger = logging.getLogger(__name__)

EXCLUDED_STATUSES = frozenset({"cancelled", "refunded"})


def _parse_order_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            raise InvalidOrderError(f"Invalid order date: {value!r}") from None
    raise InvalidOrderError(f"Missing order date: {value!r}")


def _parse_amount(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidOrderError(f"Invalid order amount: {value!r}") from None
    if not amount.is_finite():
        raise InvalidOrderError(f"Invalid order amount: {value!r}")
    return amount


def _clean_code(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().upper()
    return text or None


@dataclass(frozen=True)
class Order:
    """A single imported order as seen by the exposure engine."""

    order_date: datetime
    total_amount: Decimal
    state_code: Optional[str]
    country_code: Optional[str]
    status: str = "completed"
    order_id: str = ""
    platform: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "state_code", _clean_code(self.state_code))
        object.__setattr__(self, "country_code", _clean_code(self.country_code))

    @property
    def is_excluded_status(self) -> bool:
        return self.status.strip().lower() in EXCLUDED_STATUSES

    @classmethod
    def from_dict(cls, data: dict, row_number: Optional[int] = None) -> "Order":
        """
        Build an Order from a loosely-typed mapping.

        Accepts either the engine's field names or the import subsystem's
        ``shipping_state`` / ``shipping_country`` columns.
        """
        try:
            amount_raw = data.get("total_amount", data.get("amount"))
            if amount_raw is None or str(amount_raw).strip() == "":
                raise InvalidOrderError("Missing order amount")
            return cls(
                order_date=_parse_order_date(data.get("order_date")),
                total_amount=_parse_amount(amount_raw),
                state_code=_clean_code(
                    data.get("state_code", data.get("shipping_state"))
                ),
                country_code=_clean_code(
                    data.get("country_code", data.get("shipping_country"))
                ),
                status=str(data.get("status") or "completed").strip().lower(),
                order_id=str(data.get("order_id") or ""),
                platform=str(data.get("platform") or ""),
            )
        except InvalidOrderError as e:
            if row_number is not None and e.row_number is None:
                raise InvalidOrderError(str(e), row_number=row_number) from None
            raise


class OrderSource(Protocol):
    """Anything that can return one user's complete order history."""

    def list_orders(self, user_id: str) -> Iterable[Order]:
        ...


class InMemoryOrderSource:
    """Order source backed by a dict of user id to orders."""

    def __init__(self, orders_by_user: Optional[dict[str, list[Order]]] = None) -> None:
        self._orders: dict[str, list[Order]] = {
            user: list(orders) for user, orders in (orders_by_user or {}).items()
        }

    def add_orders(self, user_id: str, orders: Iterable[Order]) -> None:
        self._orders.setdefault(user_id, []).extend(orders)

    def list_orders(self, user_id: str) -> list[Order]:
        return list(self._orders.get(user_id, []))


class CsvOrderSource:
    """
    Order source reading an exported CSV of imported orders.

    Expected columns: order_date, total_amount, state_code, country_code,
    status, and optionally order_id, platform and user_id. Without a
    user_id column (or with user_column=None) every row belongs to
    whichever user asks. Rows that cannot be parsed are skipped with a
    warning.
    """

    def __init__(
        self, path: str | Path, user_column: Optional[str] = "user_id"
    ) -> None:
        self.path = Path(path)
        self.user_column = user_column
        self.skipped_rows: list[str] = []

    def _read_frame(self, user_id: str) -> pd.DataFrame:
        if not self.path.exists():
            raise OrderSourceError(
                f"Order file not found: {self.path}", user_id=user_id
            )
        try:
            return pd.read_csv(self.path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            logger.warning("Order file %s is empty", self.path)
            return pd.DataFrame()
        except (OSError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise OrderSourceError(
                f"Unable to read order file {self.path}",
                user_id=user_id,
                original_error=e,
            ) from e

    def list_orders(self, user_id: str) -> list[Order]:
        self.skipped_rows = []
        frame = self._read_frame(user_id)
        if frame.empty:
            return []

        if self.user_column and self.user_column in frame.columns:
            frame = frame[frame[self.user_column].str.strip() == str(user_id)]

        orders: list[Order] = []
        records = frame.to_dict(orient="records")
        for index, row in zip(frame.index, records):
            try:
                orders.append(Order.from_dict(row, row_number=int(index) + 1))
            except InvalidOrderError as e:
                self.skipped_rows.append(str(e))
                logger.warning("Skipping order: %s", e)

        logger.info(
            "Loaded %d orders for user %s from %s (%d skipped)",
            len(orders),
            user_id,
            self.path,
            len(self.skipped_rows),
        )
        return orders
