"""
Backtest run config loader: JSON file -> frozen dataclass tree, validated against JSON Schema.

Default values: docs/config/backtest.default.json
Schema:         docs/config/backtest_config.schema.json

Override files: pass ``overrides_path`` (or an ``overrides`` dict) holding
only the keys you want to change; they are deep-merged on top of the base
config before schema validation.

Usage:
    from config.backtest_config import load_backtest_config
    cfg = load_backtest_config()                          # loads default
    cfg = load_backtest_config(overrides={"symbols": ["MSFT"]})
    cfg = load_backtest_config("my_run.json")             # loads custom file
    cfg.risk_limits.max_daily_trades  # -> 10
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import jsonschema

from anomaly_core.contracts import Severity

logger = logging.getLogger("backtester.config")

# ---------------------------------------------------------------------------
# Project root detection (walk up from this file to find pyproject.toml)
# ---------------------------------------------------------------------------


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    When installed as a package the file won't exist; fall back to CWD.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "docs" / "config" / "backtest.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "backtest_config.schema.json"


# ---------------------------------------------------------------------------
# Frozen dataclass tree; mirrors backtest.default.json structure exactly
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskLimits:
    max_position_size: float
    max_exposure: float
    max_daily_trades: int
    max_loss_pct: float
    cooldown_ms: int = 0


@dataclass(frozen=True)
class BacktestConfig:
    """Immutable parameters for one backtest run."""
    id: str
    symbols: tuple[str, ...]
    start_date: str
    end_date: str
    timeframe: str                   # "1Day" | "1Hour"
    initial_capital: float
    risk_limits: RiskLimits
    severity_threshold: Severity
    confidence_threshold: float
    pre_screener_sensitivity: float = 0.5
    trade_sizing_strategy: str = "fixed_qty"   # "fixed_qty" | "pct_of_capital" | "kelly"
    model_id: str = "default"
    default_qty: int = 1


# ---------------------------------------------------------------------------
# Deep merge for overrides
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into a copy of *base*."""
    merged = dict(base)
    for key, val in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = _deep_merge(merged[key], val)
        else:
            merged[key] = val
    return merged


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class BacktestConfigError(Exception):
    """Raised when run config loading or validation fails."""


def _read_json(path: Path, label: str) -> dict[str, Any]:
    if not path.exists():
        raise BacktestConfigError(f"{label} not found: {path}")
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise BacktestConfigError(f"{label} is not valid JSON: {exc}") from exc


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    """Validate *data* against the JSON Schema at *schema_path*."""
    schema = _read_json(schema_path, "Schema file")
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise BacktestConfigError(f"Backtest config validation failed: {exc.message}") from exc


def _validate_dates(data: dict[str, Any]) -> None:
    try:
        start = date.fromisoformat(data["start_date"])
        end = date.fromisoformat(data["end_date"])
    except ValueError as exc:
        raise BacktestConfigError(f"Invalid date in backtest config: {exc}") from exc
    if start >= end:
        raise BacktestConfigError(
            f"start_date ({data['start_date']}) must be before end_date ({data['end_date']})"
        )


def _build_config(data: dict[str, Any]) -> BacktestConfig:
    """Convert a raw dict (already validated) into the frozen dataclass tree."""
    limits_raw = data["risk_limits"]
    return BacktestConfig(
        id=data["id"],
        symbols=tuple(s.upper() for s in data["symbols"]),
        start_date=data["start_date"],
        end_date=data["end_date"],
        timeframe=data["timeframe"],
        initial_capital=float(data["initial_capital"]),
        risk_limits=RiskLimits(
            max_position_size=float(limits_raw["max_position_size"]),
            max_exposure=float(limits_raw["max_exposure"]),
            max_daily_trades=int(limits_raw["max_daily_trades"]),
            max_loss_pct=float(limits_raw["max_loss_pct"]),
            cooldown_ms=int(limits_raw.get("cooldown_ms", 0)),
        ),
        severity_threshold=Severity.parse(data["severity_threshold"]),
        confidence_threshold=float(data["confidence_threshold"]),
        pre_screener_sensitivity=float(data.get("pre_screener_sensitivity", 0.5)),
        trade_sizing_strategy=data.get("trade_sizing_strategy", "fixed_qty"),
        model_id=data.get("model_id", "default"),
        default_qty=int(data.get("default_qty", 1)),
    )


def build_backtest_config(
    data: dict[str, Any],
    schema_path: str | Path | None = None,
) -> BacktestConfig:
    """Validate an in-memory mapping and build a BacktestConfig."""
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH
    _validate_schema(data, sch_path)
    _validate_dates(data)
    return _build_config(data)


def load_backtest_config(
    config_path: str | Path | None = None,
    schema_path: str | Path | None = None,
    *,
    overrides_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> BacktestConfig:
    """Load and validate a backtest run configuration.

    Parameters
    ----------
    config_path:
        Path to a run config JSON file. Defaults to ``docs/config/backtest.default.json``.
    schema_path:
        Path to the JSON Schema file. Defaults to ``docs/config/backtest_config.schema.json``.
    overrides_path:
        Optional partial JSON file deep-merged on top of the base config.
    overrides:
        Optional partial mapping deep-merged last (CLI flags land here).

    Raises
    ------
    BacktestConfigError
        If a file is missing, unparseable, or the merged config fails validation.
    """
    cfg_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    data = _read_json(cfg_path, "Backtest config file")

    if overrides_path:
        data = _deep_merge(data, _read_json(Path(overrides_path), "Override file"))
        logger.info("Applied config overrides from %s", Path(overrides_path).name)

    if overrides:
        data = _deep_merge(data, overrides)
        logger.debug("Applied %d inline override key(s)", len(overrides))

    return build_backtest_config(data, schema_path)
