"""
Exposure report generator.

Produces:
- Nexus exposure reports (ranked states plus summary counts)
- Nexus alert reports
- CSV, JSON and console text export
"""

from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from nexus_engine.alerts import NexusAlert
from nexus_engine.exposure import ExposureReport


class _DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, date and Enum objects."""

    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, (date, datetime)):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def _decimal_to_float(obj: Any) -> Any:
    """Recursively convert Decimal values to float for serialization."""
    if isinstance(obj, dict):
        return {k: _decimal_to_float(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_decimal_to_float(i) for i in obj]
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj


class ReportGenerator:
    """
    Generates exposure reports with export capabilities.

    Reports are structured dicts that can be rendered to console text or
    exported to CSV/JSON files under output_dir.
    """

    def __init__(self, output_dir: Optional[str] = None) -> None:
        self.output_dir = Path(output_dir) if output_dir else Path("reports")
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Nexus exposure report
    # ------------------------------------------------------------------

    def exposure_report(
        self,
        report: ExposureReport,
        as_of: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Generate a nexus exposure report with one row per state."""
        s = report.summary
        return {
            "report_type": "nexus_exposure",
            "generated_date": date.today().isoformat(),
            "as_of": as_of.isoformat() if as_of else "",
            "summary": {
                "states_with_sales": s.total_states_with_sales,
                "exceeded": s.exceeded_count,
                "warning": s.warning_count,
                "approaching": s.approaching_count,
                "safe": s.safe_count,
                "no_sales_tax": s.no_sales_tax_count,
            },
            "exposures": [
                {
                    "state": e.state_code,
                    "name": e.state_name,
                    "status": e.status.value,
                    "has_sales_tax": e.has_sales_tax,
                    "current_sales": e.current_sales,
                    "current_transactions": e.current_transactions,
                    "sales_threshold": e.sales_threshold,
                    "transaction_threshold": e.transaction_threshold,
                    "sales_pct": round(e.sales_percentage, 2),
                    "transaction_pct": round(e.transaction_percentage, 2),
                    "highest_pct": round(e.highest_percentage, 2),
                    "measurement_period": e.measurement_period,
                    "rolling_12_month_sales": e.rolling_12_month_sales,
                    "rolling_12_month_transactions": e.rolling_12_month_transactions,
                    "calendar_year_sales": e.calendar_year_sales,
                    "calendar_year_transactions": e.calendar_year_transactions,
                }
                for e in report.exposures
            ],
        }

    # ------------------------------------------------------------------
    # Alert report
    # ------------------------------------------------------------------

    def alerts_report(self, alerts: list[NexusAlert]) -> dict[str, Any]:
        """Generate a report of newly raised nexus alerts."""
        return {
            "report_type": "nexus_alerts",
            "generated_date": date.today().isoformat(),
            "summary": {
                "new_alerts": len(alerts),
                "exceeded": sum(1 for a in alerts if a.level.value == "exceeded"),
            },
            "alerts": [
                {
                    "severity": a.level.value,
                    "state": a.state_code,
                    "message": a.message,
                    "percentage": round(a.percentage, 2),
                    "marked_nexus": a.has_marked_nexus,
                }
                for a in alerts
            ],
        }

    # ------------------------------------------------------------------
    # Export methods
    # ------------------------------------------------------------------

    def to_json(
        self,
        report: dict[str, Any],
        filename: Optional[str] = None,
    ) -> str:
        """Export a report to JSON. Returns the JSON string."""
        serializable = _decimal_to_float(report)
        json_str = json.dumps(serializable, indent=2, cls=_DecimalEncoder)

        if filename:
            path = self.output_dir / filename
            path.write_text(json_str, encoding="utf-8")

        return json_str

    def to_csv(
        self,
        report: dict[str, Any],
        filename: Optional[str] = None,
        section: str = "exposures",
    ) -> str:
        """
        Export a report section to CSV. Returns the CSV string.

        The section parameter names the list or dict in the report to
        export as rows.
        """
        data = report.get(section, [])
        if not data:
            return ""

        output = io.StringIO()

        if isinstance(data, list) and isinstance(data[0], dict):
            writer = csv.DictWriter(output, fieldnames=list(data[0].keys()))
            writer.writeheader()
            for row in data:
                writer.writerow(
                    {k: "" if v is None else _decimal_to_float(v) for k, v in row.items()}
                )
        elif isinstance(data, dict):
            writer = csv.writer(output)
            writer.writerow(["key", "value"])
            for k, v in data.items():
                writer.writerow([k, _decimal_to_float(v)])

        csv_str = output.getvalue()

        if filename:
            path = self.output_dir / filename
            path.write_text(csv_str, encoding="utf-8")

        return csv_str

    # ------------------------------------------------------------------
    # Console-formatted text output
    # ------------------------------------------------------------------

    def format_text(self, report: dict[str, Any], include_safe: bool = False) -> str:
        """Format a report as human-readable text for console output."""
        lines: list[str] = []
        report_type = report.get("report_type", "report").replace("_", " ").title()
        lines.append(f"{'=' * 60}")
        lines.append(f"  {report_type}")
        lines.append(f"  Generated: {report.get('generated_date', '')}")
        if report.get("as_of"):
            lines.append(f"  As of: {report['as_of']}")
        lines.append(f"{'=' * 60}")
        lines.append("")

        summary = report.get("summary", {})
        if summary:
            lines.append("SUMMARY")
            lines.append("-" * 40)
            for key, value in summary.items():
                label = key.replace("_", " ").title()
                lines.append(f"  {label}: {value}")
            lines.append("")

        exposures = report.get("exposures", [])
        shown = [
            e for e in exposures if include_safe or e.get("status") != "safe"
        ]
        if shown:
            lines.append("STATE EXPOSURE")
            lines.append("-" * 40)
            for e in shown:
                lines.append(
                    f"  {e['state']}: {e['status'].upper():<11} "
                    f"${float(e['current_sales']):>12,.2f} | "
                    f"{e['current_transactions']:>5} txns | "
                    f"{float(e['highest_pct']):>6.1f}%"
                )
            lines.append("")

        alerts = report.get("alerts", [])
        if alerts:
            lines.append("ALERTS")
            lines.append("-" * 40)
            for a in alerts:
                sev = a.get("severity", "info").upper()
                lines.append(f"  [{sev}] {a.get('state', '')}: {a.get('message', '')}")
            lines.append("")

        return "\n".join(lines)
