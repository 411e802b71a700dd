"""Tests for CLI commands using click CliRunner. No network; uses fixture CSV data."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from cli.main import cli


def _run_config(**overrides) -> dict:
    data = {
        "id": "bt-cli",
        "symbols": ["AAPL"],
        "start_date": "2024-01-01",
        "end_date": "2024-01-31",
        "timeframe": "1Day",
        "initial_capital": 10_000,
        "risk_limits": {
            "max_position_size": 5_000,
            "max_exposure": 8_000,
            "max_daily_trades": 5,
            "max_loss_pct": 5,
        },
        "severity_threshold": "high",
        "confidence_threshold": 0.5,
        "default_qty": 1,
    }
    data.update(overrides)
    return data


def _write_ticks(path: Path) -> None:
    """Ten choppy days, one 8% spike, then a return to the prior level."""
    start = datetime(2024, 1, 1, 21, 0, tzinfo=timezone.utc)
    rows = ["timestamp,close,volume"]
    close = 100.0
    for i in range(10):
        close *= 1.001 if i % 2 == 0 else 0.999
        rows.append(f"{(start + timedelta(days=i)).isoformat()},{close},{1_000_000 + (i % 2) * 10_000}")
    rows.append(f"{(start + timedelta(days=10)).isoformat()},{close * 1.08},1005000")
    rows.append(f"{(start + timedelta(days=11)).isoformat()},{close},1005000")
    path.write_text("\n".join(rows) + "\n")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Write config.yaml, a run config and a CSV tick directory."""
    ticks = tmp_path / "ticks"
    ticks.mkdir()
    _write_ticks(ticks / "AAPL.csv")
    (tmp_path / "run.json").write_text(json.dumps(_run_config()))
    (tmp_path / "config.yaml").write_text(
        f"""
run_config: run.json
data:
  source: csv
  csv_path: "{ticks}"
journal:
  path: "{tmp_path / 'journal.jsonl'}"
alerting:
  structured_logs: false
"""
    )
    return tmp_path


def _invoke(workspace: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", str(workspace / "config.yaml"), *args])


class TestBacktest:

    def test_backtest_runs_and_exports(self, workspace: Path) -> None:
        out = workspace / "result.json"
        result = _invoke(workspace, "backtest", "--out", str(out))
        assert result.exit_code == 0, result.output
        assert "Backtest: bt-cli [completed]" in result.output
        assert "Trade #1: BUY 1 AAPL" in result.output
        assert "Rationale:" in result.output

        data = json.loads(out.read_text())
        assert data["status"] == "completed"
        assert [t["side"] for t in data["trades"]] == ["buy", "sell"]
        assert len(data["equity_curve"]) == 12

    def test_backtest_writes_journal(self, workspace: Path) -> None:
        _invoke(workspace, "backtest")
        records = [json.loads(l) for l in (workspace / "journal.jsonl").read_text().splitlines()]
        events = [r["event"] for r in records]
        assert events.count("progress") == 12
        assert events.count("trade") == 2
        assert events[-1] == "result"
        assert records[-1]["status"] == "completed"

    def test_symbols_override(self, workspace: Path) -> None:
        out = workspace / "result.json"
        result = _invoke(workspace, "backtest", "--symbols", "msft", "--out", str(out))
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        assert data["config"]["symbols"] == ["MSFT"]
        assert data["trades"] == []

    def test_date_override(self, workspace: Path) -> None:
        out = workspace / "result.json"
        result = _invoke(workspace, "backtest", "--start", "2024-01-01", "--end", "2024-01-05", "--out", str(out))
        assert result.exit_code == 0, result.output
        assert len(json.loads(out.read_text())["equity_curve"]) == 5

    def test_no_trades_flag(self, workspace: Path) -> None:
        result = _invoke(workspace, "backtest", "--no-trades")
        assert result.exit_code == 0
        assert "Trade #1" not in result.output

    def test_failed_run_exits_nonzero(self, workspace: Path) -> None:
        (workspace / "config.yaml").write_text(
            f"run_config: run.json\ndata:\n  csv_path: \"{workspace / 'missing'}\"\n"
            f"journal:\n  path: \"{workspace / 'journal.jsonl'}\"\nalerting:\n  structured_logs: false\n"
        )
        result = _invoke(workspace, "backtest")
        assert result.exit_code == 1
        assert "[failed]" in result.output
        assert "CSV source not found" in result.output

    def test_invalid_override_rejected(self, workspace: Path) -> None:
        result = _invoke(workspace, "backtest", "--start", "2024-02-01", "--end", "2024-01-01")
        assert result.exit_code != 0
        assert "must be before" in result.output

    def test_unknown_data_source(self, workspace: Path) -> None:
        (workspace / "config.yaml").write_text("run_config: run.json\ndata:\n  source: parquet\n")
        result = _invoke(workspace, "backtest")
        assert result.exit_code != 0
        assert "Unknown data source" in result.output

    def test_missing_app_config(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "backtest"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output
        assert not isinstance(result.exception, FileNotFoundError)


class TestCheckConfig:

    def test_valid(self, workspace: Path) -> None:
        result = _invoke(workspace, "check-config")
        assert result.exit_code == 0, result.output
        assert "[OK] run config" in result.output
        assert "Run config: bt-cli" in result.output

    def test_invalid_run_config(self, workspace: Path) -> None:
        (workspace / "run.json").write_text(json.dumps(_run_config(timeframe="5Min")))
        result = _invoke(workspace, "check-config")
        assert result.exit_code == 1
        assert "[FAIL] run config" in result.output

    def test_missing_app_config(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "check-config"])
        assert result.exit_code == 1
        assert "[FAIL] config" in result.output
