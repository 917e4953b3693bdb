"""
State economic nexus threshold registry.

Reference data for every US state, DC and Puerto Rico: whether the
jurisdiction imposes a sales tax, the dollar and transaction-count
thresholds that create economic nexus (post-Wayfair), and the measurement
period the state applies. The table is edited and redeployed, never
mutated at runtime.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional

from nexus_engine.config import Settings
from nexus_engine.exceptions import RegistryConfigurationError

logger = logging.getLogger(__name__)


class MeasurementPeriod(Enum):
    ROLLING_12_MONTHS = "rolling_12_months"
    # Whichever of the rolling 12 months or the current calendar year
    # shows more activity, per metric.
    CALENDAR_YEAR_OR_ROLLING = "calendar_year_or_rolling"


@dataclass(frozen=True)
class StateThreshold:
    """
    Economic nexus rule for a single state.

    A null threshold means the state has no trigger of that kind. States
    without a sales tax carry no thresholds at all.
    """

    state_code: str
    state_name: str
    has_sales_tax: bool
    sales_threshold: Optional[Decimal]
    transaction_threshold: Optional[int]
    measurement_period: MeasurementPeriod
    notes: str = ""

    @property
    def is_applicable(self) -> bool:
        """True when the state can be evaluated against a threshold."""
        return self.has_sales_tax and (
            self.sales_threshold is not None
            or self.transaction_threshold is not None
        )


# -----------------------------------------------------------------------
# Economic nexus thresholds by state
# -----------------------------------------------------------------------

_ROLLING = "rolling_12_months"
_HIGHER = "calendar_year_or_rolling"

_STATE_THRESHOLDS: dict[str, dict[str, Any]] = {
    "AL": {
        "name": "Alabama", "has_tax": True,
        "sales": 250000, "transactions": None, "period": _HIGHER,
        "notes": "Simplified Sellers Use Tax (SSUT) program. $250K threshold.",
    },
    "AK": {
        "name": "Alaska", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": (
            "No statewide sales tax. Local jurisdictions in the ARSSTC "
            "impose remote seller nexus; check local rules."
        ),
    },
    "AZ": {
        "name": "Arizona", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "Transaction privilege tax (TPT). No transaction count threshold.",
    },
    "AR": {
        "name": "Arkansas", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "CA": {
        "name": "California", "has_tax": True,
        "sales": 500000, "transactions": None, "period": _HIGHER,
        "notes": "$500K threshold. No transaction count threshold.",
    },
    "CO": {
        "name": "Colorado", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "Retail delivery fee also applies. No transaction count threshold.",
    },
    "CT": {
        "name": "Connecticut", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _ROLLING,
        "notes": "$100K in sales AND 200 transactions (both must be met).",
    },
    "DE": {
        "name": "Delaware", "has_tax": False,
        "sales": None, "transactions": None, "period": _HIGHER,
        "notes": "No sales tax.",
    },
    "FL": {
        "name": "Florida", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "Effective July 2021. No transaction count threshold.",
    },
    "GA": {
        "name": "Georgia", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "HI": {
        "name": "Hawaii", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "General excise tax (GET), not technically a sales tax.",
    },
    "ID": {
        "name": "Idaho", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "IL": {
        "name": "Illinois", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _ROLLING,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "IN": {
        "name": "Indiana", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "IA": {
        "name": "Iowa", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "KS": {
        "name": "Kansas", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "KY": {
        "name": "Kentucky", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "LA": {
        "name": "Louisiana", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "ME": {
        "name": "Maine", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "MD": {
        "name": "Maryland", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "MA": {
        "name": "Massachusetts", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "MI": {
        "name": "Michigan", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "MN": {
        "name": "Minnesota", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _ROLLING,
        "notes": "$100K in sales OR 200 transactions over 12 months.",
    },
    "MS": {
        "name": "Mississippi", "has_tax": True,
        "sales": 250000, "transactions": None, "period": _ROLLING,
        "notes": "$250K threshold. No transaction count threshold.",
    },
    "MO": {
        "name": "Missouri", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "Effective January 2023. No transaction count threshold.",
    },
    "MT": {
        "name": "Montana", "has_tax": False,
        "sales": None, "transactions": None, "period": _HIGHER,
        "notes": "No sales tax.",
    },
    "NE": {
        "name": "Nebraska", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "NV": {
        "name": "Nevada", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "NH": {
        "name": "New Hampshire", "has_tax": False,
        "sales": None, "transactions": None, "period": _HIGHER,
        "notes": "No sales tax.",
    },
    "NJ": {
        "name": "New Jersey", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "NM": {
        "name": "New Mexico", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "Gross receipts tax (GRT). No transaction count threshold.",
    },
    "NY": {
        "name": "New York", "has_tax": True,
        "sales": 500000, "transactions": 100, "period": _HIGHER,
        "notes": "$500K in sales AND 100 transactions (both must be met).",
    },
    "NC": {
        "name": "North Carolina", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "ND": {
        "name": "North Dakota", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "OH": {
        "name": "Ohio", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "OK": {
        "name": "Oklahoma", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "OR": {
        "name": "Oregon", "has_tax": False,
        "sales": None, "transactions": None, "period": _HIGHER,
        "notes": "No sales tax.",
    },
    "PA": {
        "name": "Pennsylvania", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "RI": {
        "name": "Rhode Island", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "SC": {
        "name": "South Carolina", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "SD": {
        "name": "South Dakota", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions. Wayfair v. South Dakota origin state.",
    },
    "TN": {
        "name": "Tennessee", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _ROLLING,
        "notes": "No transaction count threshold.",
    },
    "TX": {
        "name": "Texas", "has_tax": True,
        "sales": 500000, "transactions": None, "period": _ROLLING,
        "notes": "$500K threshold. No transaction count threshold.",
    },
    "UT": {
        "name": "Utah", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "VT": {
        "name": "Vermont", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _ROLLING,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "VA": {
        "name": "Virginia", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "WA": {
        "name": "Washington", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "B&O tax also applies. No transaction count threshold.",
    },
    "WV": {
        "name": "West Virginia", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "WI": {
        "name": "Wisconsin", "has_tax": True,
        "sales": 100000, "transactions": None, "period": _HIGHER,
        "notes": "No transaction count threshold.",
    },
    "WY": {
        "name": "Wyoming", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "DC": {
        "name": "District of Columbia", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "$100K in sales OR 200 transactions.",
    },
    "PR": {
        "name": "Puerto Rico", "has_tax": True,
        "sales": 100000, "transactions": 200, "period": _HIGHER,
        "notes": "Sales and use tax (IVU). $100K in sales OR 200 transactions.",
    },
}

_STATE_CODE_RE = re.compile(r"^[A-Z]{2}$")


def _parse_sales_threshold(code: str, value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise RegistryConfigurationError(
            f"Sales threshold is not a number: {value!r}", state_code=code
        ) from None
    if not amount.is_finite() or amount <= 0:
        raise RegistryConfigurationError(
            f"Sales threshold must be positive: {value!r}", state_code=code
        )
    return amount


def _parse_transaction_threshold(code: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise RegistryConfigurationError(
            f"Transaction threshold must be a positive integer: {value!r}",
            state_code=code,
        )
    return value


def _build_threshold(code: str, data: Mapping[str, Any]) -> StateThreshold:
    """Validate one raw registry entry and turn it into a StateThreshold."""
    if not _STATE_CODE_RE.match(code):
        raise RegistryConfigurationError(f"Malformed state code: {code!r}")

    try:
        name = data["name"]
        has_tax = data["has_tax"]
        period_value = data["period"]
    except KeyError as e:
        raise RegistryConfigurationError(
            f"Missing field {e.args[0]!r}", state_code=code
        ) from None

    if not isinstance(has_tax, bool):
        raise RegistryConfigurationError(
            f"has_tax must be a boolean: {has_tax!r}", state_code=code
        )

    try:
        period = MeasurementPeriod(period_value)
    except ValueError:
        raise RegistryConfigurationError(
            f"Unknown measurement period: {period_value!r}", state_code=code
        ) from None

    sales = _parse_sales_threshold(code, data.get("sales"))
    transactions = _parse_transaction_threshold(code, data.get("transactions"))

    if not has_tax and (sales is not None or transactions is not None):
        raise RegistryConfigurationError(
            "A state without sales tax cannot carry nexus thresholds",
            state_code=code,
        )

    return StateThreshold(
        state_code=code,
        state_name=str(name),
        has_sales_tax=has_tax,
        sales_threshold=sales,
        transaction_threshold=transactions,
        measurement_period=period,
        notes=str(data.get("notes", "")),
    )


class ThresholdRegistry:
    """
    Read-only lookup of nexus thresholds keyed by state code.

    Built once from the bundled table, or from a synthetic table for tests.
    Any malformed entry aborts construction.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Mapping[str, Any]]] = None,
        source: str = "built-in",
    ) -> None:
        raw = _STATE_THRESHOLDS if data is None else data
        if not raw:
            raise RegistryConfigurationError(
                "Threshold registry is empty", source=source
            )

        self._thresholds: dict[str, StateThreshold] = {}
        for code, entry in raw.items():
            if not isinstance(entry, Mapping):
                raise RegistryConfigurationError(
                    "Registry entry must be a mapping",
                    state_code=str(code),
                    source=source,
                )
            normalized = str(code).strip().upper()
            if normalized in self._thresholds:
                raise RegistryConfigurationError(
                    "Duplicate state code", state_code=normalized, source=source
                )
            self._thresholds[normalized] = _build_threshold(normalized, entry)

        self.source = source
        logger.debug(
            "Loaded %d nexus thresholds from %s", len(self._thresholds), source
        )

    @classmethod
    def from_records(
        cls, records: Iterable[StateThreshold]
    ) -> "ThresholdRegistry":
        """Build a registry from ready-made StateThreshold records."""
        data: dict[str, dict[str, Any]] = {}
        for r in records:
            if r.state_code in data:
                raise RegistryConfigurationError(
                    "Duplicate state code", state_code=r.state_code
                )
            data[r.state_code] = {
                "name": r.state_name,
                "has_tax": r.has_sales_tax,
                "sales": r.sales_threshold,
                "transactions": r.transaction_threshold,
                "period": r.measurement_period.value,
                "notes": r.notes,
            }
        return cls(data, source="records")

    @classmethod
    def from_json(cls, path: str | Path) -> "ThresholdRegistry":
        """
        Load a registry from a JSON file.

        The file holds an object keyed by state code, each value using the
        same fields as the bundled table.
        """
        json_path = Path(path)
        if not json_path.exists():
            raise RegistryConfigurationError(
                "Threshold file not found", source=str(json_path)
            )
        try:
            data = json.loads(json_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RegistryConfigurationError(
                f"Threshold file is unreadable: {e}", source=str(json_path)
            ) from e
        if not isinstance(data, dict):
            raise RegistryConfigurationError(
                "Threshold file must contain an object keyed by state code",
                source=str(json_path),
            )
        return cls(data, source=str(json_path))

    def __len__(self) -> int:
        return len(self._thresholds)

    def __contains__(self, state_code: object) -> bool:
        return (
            isinstance(state_code, str)
            and state_code.strip().upper() in self._thresholds
        )

    def __iter__(self) -> Iterator[StateThreshold]:
        return iter(self._thresholds.values())

    @property
    def state_codes(self) -> list[str]:
        return list(self._thresholds)

    def get_threshold(self, state_code: str) -> Optional[StateThreshold]:
        """Retrieve the nexus rule for a state, or None if unknown."""
        return self._thresholds.get(state_code.strip().upper())

    def list_all(self) -> list[StateThreshold]:
        """Return every threshold record in registry order."""
        return list(self._thresholds.values())

    def sales_tax_states(self) -> list[StateThreshold]:
        return [t for t in self._thresholds.values() if t.has_sales_tax]

    def no_sales_tax_states(self) -> list[StateThreshold]:
        return [t for t in self._thresholds.values() if not t.has_sales_tax]


_default_registry: Optional[ThresholdRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> ThresholdRegistry:
    """
    Return the process-wide registry, building it on first use.

    NEXUS_THRESHOLDS_FILE points at a JSON override of the bundled table.
    """
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            override = Settings.from_env().thresholds_file
            if override:
                _default_registry = ThresholdRegistry.from_json(override)
            else:
                _default_registry = ThresholdRegistry()
        return _default_registry
