"""
anomaly-core: pure trading-decision layer.

No I/O, no network. Consumes ticks/anomalies, produces orders and risk
verdicts. Fully deterministic and unit-testable.
"""

from anomaly_core.contracts import (
    Anomaly,
    AnomalySignal,
    Order,
    OrderSide,
    OrderType,
    Severity,
    Tick,
    as_utc,
    severity_rank,
)
from anomaly_core.trade_generator import TradeGenerator, classify_anomaly

__all__ = [
    "Anomaly",
    "AnomalySignal",
    "classify_anomaly",
    "Order",
    "OrderSide",
    "OrderType",
    "Severity",
    "severity_rank",
    "Tick",
    "as_utc",
    "TradeGenerator",
]
