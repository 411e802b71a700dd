"""
Backtest ledger: simulated cash, FIFO-lot positions, trade log, equity curve.

One ledger per run; it is the single writer for all portfolio state.
Invalid orders never raise; ``execute`` returns Rejected with a reason.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Mapping

from anomaly_core.contracts import Order, OrderSide

from execution.models import (
    EquityPoint,
    Executed,
    ExecutionResult,
    Lot,
    Position,
    Rejected,
    RejectReason,
    Trade,
)

logger = logging.getLogger("backtester.ledger")


class BacktestLedger:
    """
    Fill orders against simulated cash. Buys open or extend a position with
    a new lot; sells consume lots oldest-first and realize PnL per lot.
    """

    def __init__(self, backtest_id: str, initial_capital: float) -> None:
        self._backtest_id = backtest_id
        self._cash = initial_capital
        self._positions: dict[str, Position] = {}
        self._trades: list[Trade] = []
        self._equity_curve: list[EquityPoint] = []
        self._seq = 0

    @property
    def backtest_id(self) -> str:
        return self._backtest_id

    @property
    def cash(self) -> float:
        return self._cash

    def execute(self, order: Order, fill_price: float, timestamp: datetime) -> ExecutionResult:
        if order.qty <= 0:
            return Rejected(RejectReason.INVALID_QUANTITY, f"qty={order.qty}")
        if order.side == OrderSide.BUY:
            return self._execute_buy(order, fill_price, timestamp)
        return self._execute_sell(order, fill_price, timestamp)

    def _execute_buy(self, order: Order, fill_price: float, timestamp: datetime) -> ExecutionResult:
        cost = order.qty * fill_price
        if cost > self._cash:
            return Rejected(
                RejectReason.INSUFFICIENT_CASH,
                f"cost {cost:.2f} exceeds cash {self._cash:.2f}",
            )

        self._cash -= cost

        pos = self._positions.get(order.symbol)
        if pos is None:
            pos = Position(symbol=order.symbol, qty=order.qty, avg_entry=fill_price)
            self._positions[order.symbol] = pos
        else:
            total_qty = pos.qty + order.qty
            pos.avg_entry = (pos.avg_entry * pos.qty + fill_price * order.qty) / total_qty
            pos.qty = total_qty
        pos.lots.append(Lot(qty=order.qty, price=fill_price, timestamp=timestamp))

        return Executed(self._record(order, OrderSide.BUY, order.qty, fill_price, timestamp, None))

    def _execute_sell(self, order: Order, fill_price: float, timestamp: datetime) -> ExecutionResult:
        pos = self._positions.get(order.symbol)
        if pos is None or pos.qty <= 0:
            return Rejected(RejectReason.NO_POSITION, f"no open position in {order.symbol}")

        sell_qty = min(order.qty, pos.qty)
        realized_pnl = 0.0
        remaining = sell_qty

        while remaining > 0 and pos.lots:
            lot = pos.lots[0]
            from_lot = min(remaining, lot.qty)
            realized_pnl += from_lot * (fill_price - lot.price)
            lot.qty -= from_lot
            remaining -= from_lot
            if lot.qty <= 0:
                pos.lots.popleft()

        self._cash += sell_qty * fill_price
        pos.qty -= sell_qty

        if pos.qty <= 0:
            del self._positions[order.symbol]
        else:
            pos.avg_entry = sum(l.qty * l.price for l in pos.lots) / pos.qty

        return Executed(
            self._record(order, OrderSide.SELL, sell_qty, fill_price, timestamp, realized_pnl)
        )

    def _record(
        self,
        order: Order,
        side: OrderSide,
        qty: float,
        fill_price: float,
        timestamp: datetime,
        realized_pnl: float | None,
    ) -> Trade:
        self._seq += 1
        trade = Trade(
            id=f"btt-{self._seq}",
            backtest_id=self._backtest_id,
            symbol=order.symbol,
            side=side,
            qty=qty,
            fill_price=fill_price,
            timestamp=timestamp,
            anomaly_id=order.anomaly_id,
            rationale=order.rationale,
            realized_pnl=realized_pnl,
        )
        self._trades.append(trade)
        logger.debug("Filled %s %s %g @ %.4f", side.value, order.symbol, qty, fill_price)
        return trade

    # --- valuation -------------------------------------------------------

    def portfolio_value(self, prices: Mapping[str, float]) -> float:
        """Cash plus positions marked at ``prices``; avg entry where a price is missing."""
        position_value = 0.0
        for symbol, pos in self._positions.items():
            price = prices.get(symbol, pos.avg_entry)
            position_value += pos.qty * price
        return self._cash + position_value

    def snapshot(self, date: str, prices: Mapping[str, float]) -> EquityPoint:
        point = EquityPoint(date=date, value=self.portfolio_value(prices))
        self._equity_curve.append(point)
        return point

    # --- accessors -------------------------------------------------------

    def has_position(self, symbol: str) -> bool:
        return symbol in self._positions

    def get_qty(self, symbol: str) -> float:
        pos = self._positions.get(symbol)
        return pos.qty if pos else 0

    def get_positions(self) -> dict[str, Position]:
        return {symbol: pos.copy() for symbol, pos in self._positions.items()}

    def get_trade_log(self) -> list[Trade]:
        return list(self._trades)

    def get_equity_curve(self) -> list[EquityPoint]:
        return list(self._equity_curve)
