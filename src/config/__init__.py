"""
Configuration loaders.

App config:  reads config.yaml, resolves env vars for secrets.
Run config:  reads backtest.default.json (or override), validates against JSON Schema.
"""

from config.loader import (
    AlertingConfig,
    AnalysisConfig,
    AppConfig,
    DataConfig,
    JournalConfig,
    load_config,
)
from config.backtest_config import (
    BacktestConfig,
    BacktestConfigError,
    RiskLimits,
    build_backtest_config,
    load_backtest_config,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AnalysisConfig",
    "AppConfig",
    "DataConfig",
    "JournalConfig",
    "load_config",
    # Run config (JSON + schema)
    "BacktestConfig",
    "BacktestConfigError",
    "RiskLimits",
    "build_backtest_config",
    "load_backtest_config",
]
