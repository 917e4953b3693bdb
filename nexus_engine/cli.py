"""
Command-line interface for the nexus exposure engine.

Provides subcommands for exposure reports, threshold lookup, alert checks
and monthly sales summaries from an exported order CSV.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from nexus_engine.aggregator import monthly_sales_summary, rolling_12_month_window
from nexus_engine.alerts import NexusAlertTracker
from nexus_engine.config import Settings
from nexus_engine.evaluator import ExposureStatus
from nexus_engine.exceptions import NexusEngineError
from nexus_engine.logging_config import configure_logging
from nexus_engine.orders import CsvOrderSource, Order
from nexus_engine.report_generator import ReportGenerator
from nexus_engine.service import ExposureService
from nexus_engine.thresholds import default_registry

console = Console()

_STATUS_STYLE = {
    ExposureStatus.EXCEEDED: "bold red",
    ExposureStatus.WARNING: "yellow",
    ExposureStatus.APPROACHING: "cyan",
    ExposureStatus.SAFE: "green",
}


def _parse_moment(text: Optional[str], end_of_day: bool = True) -> datetime:
    """Parse an ISO date or datetime; a bare date means end of that day."""
    if not text:
        return datetime.now(timezone.utc)
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        console.print(f"[red]Invalid date: {text}[/red]")
        sys.exit(1)
    if end_of_day and len(text) == 10:
        moment = moment.replace(hour=23, minute=59, second=59)
    return moment


def _order_source(args: argparse.Namespace) -> CsvOrderSource:
    if not Path(args.file).exists():
        console.print(f"[red]File not found: {args.file}[/red]")
        sys.exit(1)
    return CsvOrderSource(args.file, user_column="user_id" if args.user else None)


def _user(args: argparse.Namespace) -> str:
    return args.user or "cli"


def _load_orders(args: argparse.Namespace) -> list[Order]:
    source = _order_source(args)
    orders = source.list_orders(_user(args))
    for skipped in source.skipped_rows:
        console.print(f"[yellow]Skipping {skipped}[/yellow]")
    return orders


def _build_service(args: argparse.Namespace, settings: Settings) -> ExposureService:
    return ExposureService(
        _order_source(args),
        registry=default_registry(),
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )


# -----------------------------------------------------------------------
# Subcommand: exposure
# -----------------------------------------------------------------------


def cmd_exposure(args: argparse.Namespace, settings: Settings) -> None:
    """Show nexus exposure for every state, most urgent first."""
    as_of = _parse_moment(args.as_of)
    service = _build_service(args, settings)
    report = service.generate_report(_user(args), as_of)

    table = Table(
        title=f"Nexus Exposure as of {as_of.date().isoformat()}",
        box=box.ROUNDED,
    )
    table.add_column("State", style="bold")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Sales", justify="right")
    table.add_column("Sales Threshold", justify="right")
    table.add_column("Txns", justify="right")
    table.add_column("Txn Threshold", justify="right")
    table.add_column("% of Threshold", justify="right")
    table.add_column("Period", style="dim")

    for e in report.exposures:
        if not args.all and e.status is ExposureStatus.SAFE:
            continue
        style = _STATUS_STYLE[e.status]
        table.add_row(
            e.state_code,
            e.state_name,
            f"[{style}]{e.status.value}[/{style}]",
            f"${e.current_sales:,.2f}",
            f"${e.sales_threshold:,.0f}" if e.sales_threshold else "-",
            str(e.current_transactions),
            str(e.transaction_threshold) if e.transaction_threshold else "-",
            f"{e.highest_percentage:.1f}%",
            e.measurement_period,
            style="dim" if not e.has_sales_tax else "",
        )

    if table.row_count:
        console.print(table)
    else:
        console.print("[green]All states are safe.[/green]")

    exceeded = report.by_status(ExposureStatus.EXCEEDED)
    if exceeded:
        console.print(
            "[bold red]Registration needed in:[/bold red] "
            + ", ".join(e.state_code for e in exceeded)
        )

    s = report.summary
    console.print()
    console.print(
        Panel(
            f"[bold]States with Sales:[/bold] {s.total_states_with_sales}\n"
            f"[bold red]Exceeded:[/bold red] {s.exceeded_count}\n"
            f"[bold yellow]Warning:[/bold yellow] {s.warning_count}\n"
            f"[bold cyan]Approaching:[/bold cyan] {s.approaching_count}\n"
            f"[bold green]Safe:[/bold green] {s.safe_count}\n"
            f"[bold]No Sales Tax:[/bold] {s.no_sales_tax_count}",
            title="Exposure Summary",
            border_style="red" if s.exceeded_count else "green",
        )
    )

    if args.export_json or args.export_csv:
        rg = ReportGenerator(args.output_dir or settings.reports_dir)
        exported = rg.exposure_report(report, as_of=as_of)
        if args.export_json:
            rg.to_json(exported, args.export_json)
            console.print(f"[green]JSON exported to {args.export_json}[/green]")
        if args.export_csv:
            rg.to_csv(exported, args.export_csv, section="exposures")
            console.print(f"[green]CSV exported to {args.export_csv}[/green]")


# -----------------------------------------------------------------------
# Subcommand: thresholds
# -----------------------------------------------------------------------


def cmd_thresholds(args: argparse.Namespace, settings: Settings) -> None:
    """Display nexus thresholds for a state or all states."""
    registry = default_registry()

    if args.state:
        t = registry.get_threshold(args.state)
        if t is None:
            console.print(f"[red]Unknown state: {args.state}[/red]")
            sys.exit(1)

        console.print(
            Panel(
                f"[bold]State:[/bold] {t.state_name} ({t.state_code})\n"
                f"[bold]Sales Tax:[/bold] {'Yes' if t.has_sales_tax else 'No'}\n"
                f"[bold]Sales Threshold:[/bold] "
                f"{f'${t.sales_threshold:,.0f}' if t.sales_threshold else 'None'}\n"
                f"[bold]Transaction Threshold:[/bold] "
                f"{t.transaction_threshold or 'None'}\n"
                f"[bold]Measurement Period:[/bold] {t.measurement_period.value}\n"
                f"[bold]Notes:[/bold] {t.notes}",
                title=f"{t.state_name} Nexus Rules",
                border_style="cyan",
            )
        )
        return

    table = Table(title="Economic Nexus Thresholds - All States", box=box.ROUNDED)
    table.add_column("State", style="bold")
    table.add_column("Name")
    table.add_column("Sales", justify="right")
    table.add_column("Transactions", justify="right")
    table.add_column("Period")

    if args.taxing:
        records = registry.sales_tax_states()
    elif args.no_tax:
        records = registry.no_sales_tax_states()
    else:
        records = registry.list_all()

    for t in sorted(records, key=lambda t: t.state_code):
        table.add_row(
            t.state_code,
            t.state_name,
            f"${t.sales_threshold:,.0f}" if t.sales_threshold else "None",
            str(t.transaction_threshold) if t.transaction_threshold else "-",
            t.measurement_period.value,
            style="dim" if not t.has_sales_tax else "",
        )
    console.print(table)


# -----------------------------------------------------------------------
# Subcommand: alerts
# -----------------------------------------------------------------------


def _parse_existing(text: Optional[str]) -> list[tuple[str, ExposureStatus]]:
    existing: list[tuple[str, ExposureStatus]] = []
    for item in (text or "").split(","):
        item = item.strip()
        if not item:
            continue
        try:
            state, level = item.split(":")
            existing.append((state.strip().upper(), ExposureStatus(level.strip().lower())))
        except ValueError:
            console.print(f"[yellow]Ignoring malformed alert key: {item}[/yellow]")
    return existing


def cmd_alerts(args: argparse.Namespace, settings: Settings) -> None:
    """Check for new nexus threshold crossings."""
    as_of = _parse_moment(args.as_of)
    service = _build_service(args, settings)
    report = service.generate_report(_user(args), as_of)

    marked = [s.strip() for s in (args.marked or "").split(",") if s.strip()]
    tracker = NexusAlertTracker(_parse_existing(args.existing), marked)
    alerts = tracker.check(report)

    if not alerts:
        console.print("[green]No new nexus alerts.[/green]")
        return

    for alert in alerts:
        color = {
            ExposureStatus.EXCEEDED: "red",
            ExposureStatus.WARNING: "yellow",
            ExposureStatus.APPROACHING: "blue",
        }.get(alert.level, "white")
        footer = (
            "\n\n[dim]Nexus already marked for this state.[/dim]"
            if alert.has_marked_nexus
            else ""
        )
        console.print(
            Panel(
                f"{alert.message}{footer}",
                title=f"[{color}]{alert.level.value.upper()}[/{color}] - {alert.state_code}",
                border_style=color,
            )
        )

    if args.export_json:
        rg = ReportGenerator(args.output_dir or settings.reports_dir)
        rg.to_json(rg.alerts_report(alerts), args.export_json)
        console.print(f"[green]Alerts exported to {args.export_json}[/green]")


# -----------------------------------------------------------------------
# Subcommand: sales
# -----------------------------------------------------------------------


def cmd_sales(args: argparse.Namespace, settings: Settings) -> None:
    """Summarize sales by state and month."""
    end = _parse_moment(args.end)
    start = (
        _parse_moment(args.start, end_of_day=False)
        if args.start
        else rolling_12_month_window(end)[0]
    )
    orders = _load_orders(args)
    summary = monthly_sales_summary(orders, start, end, default_registry())

    if summary.empty:
        console.print("[yellow]No qualifying orders in range.[/yellow]")
        return

    table = Table(title="Sales by State and Month", box=box.ROUNDED)
    table.add_column("State", style="bold")
    table.add_column("Month")
    table.add_column("Sales", justify="right")
    table.add_column("Orders", justify="right")
    table.add_column("Platforms", style="dim")

    for row in summary.itertuples(index=False):
        table.add_row(
            row.state_code,
            row.period,
            f"${row.total_sales:,.2f}",
            str(row.order_count),
            row.platforms or "-",
        )
    console.print(table)
    console.print(
        f"\n[bold]Total: ${summary['total_sales'].sum():,.2f} across "
        f"{summary['state_code'].nunique()} states[/bold]"
    )


# -----------------------------------------------------------------------
# Argument parser
# -----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nexus-engine",
        description="Nexus Exposure Engine - Track economic nexus exposure across US states",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # exposure
    exp_p = subparsers.add_parser("exposure", help="Show nexus exposure by state")
    exp_p.add_argument("--file", "-f", required=True, help="CSV file with orders")
    exp_p.add_argument("--user", help="Only orders for this user_id")
    exp_p.add_argument("--as-of", help="Reference date (ISO); defaults to now")
    exp_p.add_argument(
        "--all", "-a", action="store_true", help="Include safe states"
    )
    exp_p.add_argument("--export-json", help="Export report to JSON")
    exp_p.add_argument("--export-csv", help="Export report to CSV")
    exp_p.add_argument("--output-dir", help="Output directory for exports")
    exp_p.set_defaults(func=cmd_exposure)

    # thresholds
    thr_p = subparsers.add_parser("thresholds", help="View nexus thresholds")
    thr_p.add_argument("--state", "-s", help="State code to look up")
    thr_group = thr_p.add_mutually_exclusive_group()
    thr_group.add_argument(
        "--taxing", action="store_true", help="Only states with a sales tax"
    )
    thr_group.add_argument(
        "--no-tax", action="store_true", help="Only states without a sales tax"
    )
    thr_p.set_defaults(func=cmd_thresholds)

    # alerts
    alert_p = subparsers.add_parser("alerts", help="Check for new nexus alerts")
    alert_p.add_argument("--file", "-f", required=True, help="CSV file with orders")
    alert_p.add_argument("--user", help="Only orders for this user_id")
    alert_p.add_argument("--as-of", help="Reference date (ISO); defaults to now")
    alert_p.add_argument(
        "--existing",
        help="Comma-separated alerts already raised, e.g. CA:warning,TX:approaching",
    )
    alert_p.add_argument(
        "--marked", help="Comma-separated states already marked as having nexus"
    )
    alert_p.add_argument("--export-json", help="Export alerts to JSON")
    alert_p.add_argument("--output-dir", help="Output directory")
    alert_p.set_defaults(func=cmd_alerts)

    # sales
    sales_p = subparsers.add_parser("sales", help="Monthly sales by state")
    sales_p.add_argument("--file", "-f", required=True, help="CSV file with orders")
    sales_p.add_argument("--user", help="Only orders for this user_id")
    sales_p.add_argument("--start", help="Start date (ISO); defaults to 12 months ago")
    sales_p.add_argument("--end", help="End date (ISO); defaults to now")
    sales_p.set_defaults(func=cmd_sales)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except NexusEngineError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    try:
        args.func(args, settings)
    except NexusEngineError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
