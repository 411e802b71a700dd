"""
Backtest engine: replay ticks, analyze per date, gate and fill orders, compute metrics.
"""

from backtest.metrics import BacktestMetrics, BaseMetrics, MonthlyReturn, calculate_metrics
from backtest.runner import (
    BacktestDeps,
    BacktestEngine,
    BacktestProgress,
    BacktestResult,
    BacktestStatus,
    CancellationToken,
)

__all__ = [
    "BacktestDeps",
    "BacktestEngine",
    "BacktestMetrics",
    "BacktestProgress",
    "BacktestResult",
    "BacktestStatus",
    "BaseMetrics",
    "CancellationToken",
    "MonthlyReturn",
    "calculate_metrics",
]
