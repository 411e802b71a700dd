"""
Risk Engine: Order + portfolio context + limits -> RiskCheckResult.

Every rule is evaluated on every order so the result lists all
violations, not just the first one found.

Rules:
    - maxPositionSize: buy notional must not exceed the limit
    - maxExposure:     buy notional plus current exposure must not exceed the limit
    - maxDailyTrades:  executed trades today must be below the limit
    - cooldown:        no repeat trade on the same symbol inside cooldown_ms

Sells skip the size and exposure rules since they only reduce risk.
max_loss_pct is carried in RiskLimits but not evaluated here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from anomaly_core.contracts import Order
from config.backtest_config import RiskLimits

MAX_POSITION_SIZE = "maxPositionSize"
MAX_EXPOSURE = "maxExposure"
MAX_DAILY_TRADES = "maxDailyTrades"
COOLDOWN = "cooldown"

ALL_LIMITS = (MAX_POSITION_SIZE, MAX_EXPOSURE, MAX_DAILY_TRADES, COOLDOWN)


@dataclass(frozen=True)
class RiskContext:
    """Portfolio state at the moment an order is evaluated.

    ``now`` is the clock the cooldown is measured against. The backtest
    passes simulated time; None means wall-clock time.
    """

    current_price: float
    current_exposure: float
    daily_trade_count: int
    last_trade_timestamp: datetime | None = None
    last_trade_symbol: str | None = None
    portfolio_value: float = 0.0
    now: datetime | None = None


@dataclass(frozen=True)
class RiskCheckResult:
    approved: bool
    violations: tuple[str, ...]
    limits_checked: tuple[str, ...]


class RiskManager:
    """Stateless per-order evaluator against configured limits."""

    def __init__(self, limits: RiskLimits) -> None:
        self._limits = limits

    @property
    def limits(self) -> RiskLimits:
        return self._limits

    def check(self, order: Order, ctx: RiskContext) -> RiskCheckResult:
        violations: list[str] = []
        limits_checked: list[str] = []
        order_value = order.qty * ctx.current_price

        limits_checked.append(MAX_POSITION_SIZE)
        if order.is_buy and order_value > self._limits.max_position_size:
            violations.append(MAX_POSITION_SIZE)

        limits_checked.append(MAX_EXPOSURE)
        if order.is_buy and ctx.current_exposure + order_value > self._limits.max_exposure:
            violations.append(MAX_EXPOSURE)

        limits_checked.append(MAX_DAILY_TRADES)
        if ctx.daily_trade_count >= self._limits.max_daily_trades:
            violations.append(MAX_DAILY_TRADES)

        limits_checked.append(COOLDOWN)
        if self._in_cooldown(order, ctx):
            violations.append(COOLDOWN)

        return RiskCheckResult(
            approved=not violations,
            violations=tuple(violations),
            limits_checked=tuple(limits_checked),
        )

    def _in_cooldown(self, order: Order, ctx: RiskContext) -> bool:
        if self._limits.cooldown_ms <= 0:
            return False
        if ctx.last_trade_timestamp is None or ctx.last_trade_symbol != order.symbol:
            return False
        now = ctx.now or datetime.now(timezone.utc)
        elapsed_ms = (now - ctx.last_trade_timestamp).total_seconds() * 1000
        return elapsed_ms < self._limits.cooldown_ms
