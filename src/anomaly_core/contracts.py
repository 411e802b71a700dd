"""
Data contracts for anomaly-core: Tick, Anomaly, Order.

Ticks come from the fetch capability, anomalies from the analysis
capability; both are read-only here. Orders are produced by the
TradeGenerator and consumed immediately by risk checks and the ledger.
No I/O; these are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    """Anomaly severity. Ordinal: LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str | Severity) -> Severity:
        if isinstance(value, Severity):
            return value
        return cls(str(value).lower())


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


def severity_rank(value: str | Severity) -> int:
    """Rank for threshold comparisons. Unknown labels rank lowest."""
    try:
        return Severity.parse(value).rank
    except ValueError:
        return 0


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Backtests fill every order at the day's last close, so only market orders exist."""

    MARKET = "market"


class AnomalySignal(str, Enum):
    """Trading interpretation of an anomaly."""

    PRICE_SPIKE = "price_spike"
    PRICE_DROP = "price_drop"
    VOLUME_SPIKE = "volume_spike"
    VOLUME_DROP = "volume_drop"
    UNKNOWN = "unknown"


def as_utc(ts: datetime) -> datetime:
    """Aware UTC datetime; naive timestamps are taken to already be UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Inputs from external collaborators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Tick:
    """One observation per source/symbol/timestamp. Timestamp is UTC."""

    source_id: str
    timestamp: datetime
    metrics: dict[str, float]
    symbol: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def close(self) -> float | None:
        return self.metrics.get("close")


@dataclass(frozen=True)
class Anomaly:
    """Output of the analysis step for one batch of ticks."""

    id: str
    severity: Severity
    source: str
    timestamp: datetime
    description: str
    metrics: dict[str, float] = field(default_factory=dict)
    pre_screen_score: float = 0.0
    session_id: str = ""
    symbol: str | None = None


# ---------------------------------------------------------------------------
# Proposed order
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Order:
    """Proposed trade. Ephemeral: produced and consumed within one anomaly step."""

    symbol: str
    side: OrderSide
    qty: float
    rationale: str
    confidence: float
    anomaly_id: str
    order_type: OrderType = OrderType.MARKET

    @property
    def is_buy(self) -> bool:
        return self.side == OrderSide.BUY
