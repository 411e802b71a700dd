"""
Performance metrics: trade log + equity curve -> BacktestMetrics.

Pure functions; inputs are never mutated. Conventions:

- Only sells with a realized PnL count as completed trades.
- Ratios with a zero denominator report 9999.99 (or 0 with nothing on
  top) instead of infinity.
- Sharpe/Sortino use simple daily returns between consecutive equity
  points, population variance (divide by N), annualized by sqrt(252).
- Drawdown duration is counted in equity-curve points, not wall time.
"""

from __future__ import annotations

import math
from collections import defaultdict, deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Sequence

from anomaly_core.contracts import OrderSide
from execution.models import EquityPoint, Trade

RATIO_CAP = 9999.99
TRADING_DAYS_PER_YEAR = 252


@dataclass(frozen=True)
class MonthlyReturn:
    month: str  # "YYYY-MM"
    return_pct: float


@dataclass(frozen=True)
class BaseMetrics:
    total_return: float = 0.0
    total_return_pct: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown_pct: float = 0.0
    max_drawdown_duration: int = 0
    recovery_factor: float = 0.0
    win_rate: float = 0.0
    total_trades: int = 0
    profit_factor: float = 0.0
    avg_win_loss_ratio: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    avg_trade_duration: float = 0.0  # hours
    monthly_returns: tuple[MonthlyReturn, ...] = ()


@dataclass(frozen=True)
class BacktestMetrics(BaseMetrics):
    per_symbol: Mapping[str, BaseMetrics] = field(default_factory=lambda: MappingProxyType({}))


def _capped_ratio(numerator: float, denominator: float) -> float:
    if denominator > 0:
        return numerator / denominator
    return RATIO_CAP if numerator > 0 else 0.0


def _streaks(pnls: Sequence[float]) -> tuple[int, int]:
    max_wins = max_losses = wins = losses = 0
    for pnl in pnls:
        if pnl > 0:
            wins += 1
            losses = 0
        elif pnl < 0:
            losses += 1
            wins = 0
        max_wins = max(max_wins, wins)
        max_losses = max(max_losses, losses)
    return max_wins, max_losses


def _drawdown(curve: Sequence[EquityPoint]) -> tuple[float, int]:
    """Max drawdown % and its length in points from peak to trough."""
    max_dd = 0.0
    max_duration = 0
    if len(curve) < 2:
        return max_dd, max_duration
    peak = curve[0].value
    peak_idx = 0
    for i in range(1, len(curve)):
        value = curve[i].value
        if value > peak:
            peak = value
            peak_idx = i
        if peak <= 0:
            continue
        dd = (peak - value) / peak * 100
        if dd > max_dd:
            max_dd = dd
            max_duration = i - peak_idx
    return max_dd, max_duration


def daily_returns(curve: Sequence[EquityPoint]) -> list[float]:
    """Simple returns between consecutive points (fractions, not percent)."""
    returns: list[float] = []
    for prev, cur in zip(curve, curve[1:]):
        if prev.value > 0:
            returns.append((cur.value - prev.value) / prev.value)
    return returns


def _sharpe_sortino(returns: Sequence[float]) -> tuple[float, float]:
    if len(returns) < 2:
        return 0.0, 0.0
    n = len(returns)
    mean = sum(returns) / n
    std = math.sqrt(sum((r - mean) ** 2 for r in returns) / n)
    annualize = math.sqrt(TRADING_DAYS_PER_YEAR)

    sharpe = (mean / std) * annualize if std > 0 else 0.0

    sortino = 0.0
    downside = [r for r in returns if r < 0]
    if downside:
        downside_std = math.sqrt(sum(r ** 2 for r in downside) / len(downside))
        if downside_std > 0:
            sortino = (mean / downside_std) * annualize
    return sharpe, sortino


def _avg_trade_duration_hours(trades: Sequence[Trade]) -> float:
    """Match each sell to the oldest open buy timestamp per symbol.

    Independent of ledger lots; one buy pairs with one sell regardless of
    quantity, so partial fills spanning several buys are not modeled.
    """
    open_times: dict[str, deque[datetime]] = defaultdict(deque)
    total_hours = 0.0
    count = 0
    for t in trades:
        if t.side == OrderSide.BUY:
            open_times[t.symbol].append(t.timestamp)
        elif open_times[t.symbol]:
            opened = open_times[t.symbol].popleft()
            total_hours += (t.timestamp - opened).total_seconds() / 3600
            count += 1
    return total_hours / count if count else 0.0


def _monthly_returns(curve: Sequence[EquityPoint]) -> list[MonthlyReturn]:
    by_month: dict[str, list[float]] = {}
    for point in curve:
        month = point.date[:7]
        if month not in by_month:
            by_month[month] = [point.value, point.value]
        else:
            by_month[month][1] = point.value
    return [
        MonthlyReturn(month=month, return_pct=(last - first) / first * 100 if first > 0 else 0.0)
        for month, (first, last) in by_month.items()
    ]


def _base_metrics(
    trades: Sequence[Trade],
    curve: Sequence[EquityPoint],
    initial_capital: float,
) -> BaseMetrics:
    sells = [t for t in trades if t.side == OrderSide.SELL and t.realized_pnl is not None]
    if not sells and not curve:
        return BaseMetrics()

    last_value = curve[-1].value if curve else initial_capital
    total_return = last_value - initial_capital
    total_return_pct = total_return / initial_capital * 100 if initial_capital > 0 else 0.0

    pnls = [t.realized_pnl for t in sells]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]

    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))
    avg_win = gross_profit / len(wins) if wins else 0.0
    avg_loss = gross_loss / len(losses) if losses else 0.0

    max_wins, max_losses = _streaks(pnls)
    max_dd, dd_duration = _drawdown(curve)
    sharpe, sortino = _sharpe_sortino(daily_returns(curve))

    return BaseMetrics(
        total_return=total_return,
        total_return_pct=total_return_pct,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        max_drawdown_pct=round(max_dd, 2),
        max_drawdown_duration=dd_duration,
        recovery_factor=total_return_pct / max_dd if max_dd > 0 else 0.0,
        win_rate=len(wins) / len(sells) if sells else 0.0,
        total_trades=len(sells),
        profit_factor=_capped_ratio(gross_profit, gross_loss),
        avg_win_loss_ratio=_capped_ratio(avg_win, avg_loss),
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        largest_win=max(pnls + [0.0]),
        largest_loss=min(pnls + [0.0]),
        avg_trade_duration=_avg_trade_duration_hours(trades),
        monthly_returns=tuple(_monthly_returns(curve)),
    )


def calculate_metrics(
    trades: Sequence[Trade],
    curve: Sequence[EquityPoint],
    initial_capital: float,
) -> BacktestMetrics:
    """Compute run-level metrics plus a per-symbol breakdown.

    Per-symbol entries see only that symbol's trades and no equity curve,
    so their Sharpe/Sortino/drawdown are always 0; total return there is
    the symbol's summed realized PnL.
    """
    base = _base_metrics(trades, curve, initial_capital)

    per_symbol: dict[str, BaseMetrics] = {}
    for symbol in dict.fromkeys(t.symbol for t in trades):
        symbol_trades = [t for t in trades if t.symbol == symbol]
        symbol_pnl = sum(t.realized_pnl for t in symbol_trades if t.realized_pnl is not None)
        per_symbol[symbol] = replace(
            _base_metrics(symbol_trades, [], initial_capital),
            total_return=symbol_pnl,
            total_return_pct=symbol_pnl / initial_capital * 100 if initial_capital > 0 else 0.0,
        )

    return BacktestMetrics(
        **{name: getattr(base, name) for name in BaseMetrics.__dataclass_fields__},
        per_symbol=MappingProxyType(per_symbol),
    )
