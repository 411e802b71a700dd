"""Lot, Position, Trade, EquityPoint and execution outcomes for the simulated ledger."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from anomaly_core.contracts import OrderSide


@dataclass
class Lot:
    """Remaining quantity of one buy fill. Shrinks as sells consume it."""
    qty: float
    price: float
    timestamp: datetime


@dataclass
class Position:
    symbol: str
    qty: float
    avg_entry: float
    lots: deque[Lot] = field(default_factory=deque)

    def copy(self) -> Position:
        return Position(
            symbol=self.symbol,
            qty=self.qty,
            avg_entry=self.avg_entry,
            lots=deque(Lot(l.qty, l.price, l.timestamp) for l in self.lots),
        )


@dataclass(frozen=True)
class Trade:
    """Audit record of one fill. realized_pnl is None for buys."""
    id: str
    backtest_id: str
    symbol: str
    side: OrderSide
    qty: float
    fill_price: float
    timestamp: datetime
    anomaly_id: str
    rationale: str
    realized_pnl: float | None = None


@dataclass(frozen=True)
class EquityPoint:
    date: str  # "YYYY-MM-DD"
    value: float


class RejectReason(str, Enum):
    INSUFFICIENT_CASH = "insufficient_cash"
    NO_POSITION = "no_position"
    INVALID_QUANTITY = "invalid_quantity"


@dataclass(frozen=True)
class Executed:
    trade: Trade


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    detail: str = ""


ExecutionResult = Executed | Rejected
