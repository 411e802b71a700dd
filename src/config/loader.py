"""
Config loader: YAML file -> frozen dataclass tree.

API secrets resolved from environment variables (APCA_API_KEY_ID, APCA_API_SECRET_KEY).
Config file holds only non-secret values. The backtest run parameters
themselves live in a separate JSON file referenced by ``run_config``.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class DataConfig:
    source: str = "csv"          # "csv" | "alpaca"
    csv_path: str = "data/ticks"
    feed: str = "iex"
    api_key: str = ""
    api_secret: str = ""


@dataclass(frozen=True)
class AnalysisConfig:
    lookback: int = 20
    z_score_threshold: float = 2.0
    skip_threshold: float = 0.3
    urgent_threshold: float = 0.8
    critical_threshold: float = 0.95


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/backtest_journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class AppConfig:
    run_config: str | None
    data: DataConfig
    analysis: AnalysisConfig
    journal: JournalConfig
    alerting: AlertingConfig = AlertingConfig()


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load application configuration from a YAML file.

    API keys are resolved from environment variables:
      - APCA_API_KEY_ID
      - APCA_API_SECRET_KEY
    These follow Alpaca's standard env var names.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    data_raw = raw.get("data") or {}
    data_cfg = DataConfig(
        source=str(data_raw.get("source", "csv")).lower(),
        csv_path=data_raw.get("csv_path", "data/ticks"),
        feed=data_raw.get("feed", "iex"),
        api_key=os.environ.get("APCA_API_KEY_ID", ""),
        api_secret=os.environ.get("APCA_API_SECRET_KEY", ""),
    )

    an_raw = raw.get("analysis") or {}
    an_cfg = AnalysisConfig(
        lookback=int(an_raw.get("lookback", 20)),
        z_score_threshold=float(an_raw.get("z_score_threshold", 2.0)),
        skip_threshold=float(an_raw.get("skip_threshold", 0.3)),
        urgent_threshold=float(an_raw.get("urgent_threshold", 0.8)),
        critical_threshold=float(an_raw.get("critical_threshold", 0.95)),
    )

    j_raw = raw.get("journal") or {}
    j_cfg = JournalConfig(
        path=j_raw.get("path", "data/backtest_journal.jsonl"),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting") or {}
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url", "")),
    )

    run_config = raw.get("run_config")
    if run_config is not None:
        run_path = Path(run_config)
        if not run_path.is_absolute():
            run_path = config_path.parent / run_path
        run_config = str(run_path)

    return AppConfig(
        run_config=run_config,
        data=data_cfg,
        analysis=an_cfg,
        journal=j_cfg,
        alerting=a_cfg,
    )
