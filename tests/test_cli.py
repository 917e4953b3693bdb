"""Tests for the command-line interface."""

import io
import json

import pytest
from rich.console import Console

from nexus_engine import cli, thresholds

CSV_HEADER = "order_id,user_id,order_date,total_amount,state_code,country_code,status,platform\n"


@pytest.fixture(autouse=True)
def isolated(monkeypatch):
    """Wide in-memory console, no global logging changes, bundled thresholds."""
    for name in (
        "NEXUS_LOG_LEVEL",
        "NEXUS_THRESHOLDS_FILE",
        "NEXUS_CACHE_TTL_SECONDS",
        "NEXUS_REPORTS_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(thresholds, "_default_registry", None)
    monkeypatch.setattr(cli, "console", Console(file=io.StringIO(), width=200))
    levels = []
    monkeypatch.setattr(cli, "configure_logging", lambda level: levels.append(level))
    return levels


def _output() -> str:
    return cli.console.file.getvalue()


@pytest.fixture
def orders_csv(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        CSV_HEADER
        + "1,u1,2025-05-01T10:00:00,260000.00,CA,US,paid,shopify\n"
        + "2,u1,2025-06-01T10:00:00,250000.00,CA,US,paid,amazon\n"
        + "3,u1,2025-06-02T10:00:00,85000.00,FL,US,paid,shopify\n"
        + "4,u1,2025-06-03T10:00:00,90000.00,WA,US,refunded,shopify\n"
        + "5,u2,2025-06-03T10:00:00,900000.00,TX,US,paid,shopify\n"
        + "6,u1,not-a-date,10.00,NY,US,paid,shopify\n",
        encoding="utf-8",
    )
    return path


# ── exposure ─────────────────────────────────────────────────────────


def test_exposure_for_user(orders_csv):
    cli.main(["exposure", "-f", str(orders_csv), "--user", "u1", "--as-of", "2025-06-30"])
    out = _output()
    assert "California" in out
    assert "Florida" in out
    assert "Texas" not in out
    assert "Exceeded: 1" in out
    assert "Warning: 1" in out
    assert "Skipping" not in out


def test_exposure_without_user_counts_every_row(orders_csv):
    cli.main(["exposure", "-f", str(orders_csv), "--as-of", "2025-06-30"])
    out = _output()
    assert "Texas" in out
    assert "Exceeded: 2" in out
    assert "Registration needed in: TX, CA" in out


def test_exposure_all_flag_lists_safe_states(orders_csv):
    cli.main(
        ["exposure", "-f", str(orders_csv), "--user", "u1", "--as-of", "2025-06-30", "--all"]
    )
    assert "Wyoming" in _output()


def test_exposure_export(orders_csv, tmp_path):
    out_dir = tmp_path / "out"
    cli.main(
        [
            "exposure", "-f", str(orders_csv), "--user", "u1",
            "--as-of", "2025-06-30",
            "--export-json", "exposure.json",
            "--export-csv", "exposure.csv",
            "--output-dir", str(out_dir),
        ]
    )
    data = json.loads((out_dir / "exposure.json").read_text(encoding="utf-8"))
    assert data["report_type"] == "nexus_exposure"
    assert data["exposures"][0]["state"] == "CA"
    assert (out_dir / "exposure.csv").exists()


def test_exposure_missing_file(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["exposure", "-f", str(tmp_path / "nope.csv")])
    assert exc_info.value.code == 1
    assert "File not found" in _output()


def test_exposure_invalid_date(orders_csv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["exposure", "-f", str(orders_csv), "--as-of", "yesterday"])
    assert exc_info.value.code == 1
    assert "Invalid date" in _output()


# ── thresholds ───────────────────────────────────────────────────────


def test_thresholds_single_state():
    cli.main(["thresholds", "--state", "ny"])
    out = _output()
    assert "New York" in out
    assert "$500,000" in out
    assert "100" in out


def test_thresholds_unknown_state():
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["thresholds", "--state", "ZZ"])
    assert exc_info.value.code == 1
    assert "Unknown state" in _output()


def test_thresholds_table():
    cli.main(["thresholds"])
    out = _output()
    assert "Alabama" in out
    assert "Puerto Rico" in out


def test_thresholds_no_tax_filter():
    cli.main(["thresholds", "--no-tax"])
    out = _output()
    for name in ("Delaware", "Montana", "New Hampshire", "Oregon"):
        assert name in out
    assert "California" not in out


def test_thresholds_taxing_filter():
    cli.main(["thresholds", "--taxing"])
    out = _output()
    assert "California" in out
    assert "Alaska" in out
    assert "Oregon" not in out


def test_thresholds_filters_are_exclusive():
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["thresholds", "--taxing", "--no-tax"])
    assert exc_info.value.code == 2


def test_bad_thresholds_file_reports_error(tmp_path, monkeypatch):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    monkeypatch.setenv("NEXUS_THRESHOLDS_FILE", str(bad))
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["thresholds"])
    assert exc_info.value.code == 1


# ── alerts ───────────────────────────────────────────────────────────


def test_alerts(orders_csv):
    cli.main(
        ["alerts", "-f", str(orders_csv), "--user", "u1", "--as-of", "2025-06-30", "--marked", "CA"]
    )
    out = _output()
    assert "EXCEEDED - CA" in out
    assert "WARNING - FL" in out
    assert "Nexus already marked" in out


def test_alerts_respects_existing(orders_csv, tmp_path):
    cli.main(
        [
            "alerts", "-f", str(orders_csv), "--user", "u1",
            "--as-of", "2025-06-30",
            "--existing",
            "CA:exceeded,CA:warning,CA:approaching,FL:warning,FL:approaching,bogus",
            "--export-json", "alerts.json",
            "--output-dir", str(tmp_path),
        ]
    )
    out = _output()
    assert "No new nexus alerts" in out
    assert "Ignoring malformed alert key: bogus" in out
    assert not (tmp_path / "alerts.json").exists()


def test_parse_existing():
    parsed = cli._parse_existing("ca:Warning, TX:approaching")
    assert parsed == [
        ("CA", cli.ExposureStatus.WARNING),
        ("TX", cli.ExposureStatus.APPROACHING),
    ]


# ── sales ────────────────────────────────────────────────────────────


def test_sales_summary(orders_csv):
    cli.main(
        ["sales", "-f", str(orders_csv), "--user", "u1",
         "--start", "2025-01-01", "--end", "2025-06-30"]
    )
    out = _output()
    assert "Sales by State and Month" in out
    assert "2025-05" in out
    assert "2025-06" in out
    assert "Skipping Row 6" in out
    assert "across 2 states" in out


def test_sales_empty_range(orders_csv):
    cli.main(
        ["sales", "-f", str(orders_csv), "--start", "2020-01-01", "--end", "2020-12-31"]
    )
    assert "No qualifying orders" in _output()


# ── main ─────────────────────────────────────────────────────────────


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code == 0
    assert "nexus-engine" in capsys.readouterr().out


def test_verbose_enables_debug_logging(isolated):
    cli.main(["--verbose", "thresholds", "--state", "CA"])
    assert isolated == ["DEBUG"]


def test_log_level_from_env(isolated, monkeypatch):
    monkeypatch.setenv("NEXUS_LOG_LEVEL", "info")
    cli.main(["thresholds", "--state", "CA"])
    assert isolated == ["INFO"]
