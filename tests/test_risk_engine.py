"""Tests for RiskManager: Order + RiskContext + limits -> RiskCheckResult."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from anomaly_core.contracts import OrderSide
from anomaly_core.risk_engine import (
    ALL_LIMITS,
    COOLDOWN,
    MAX_DAILY_TRADES,
    MAX_EXPOSURE,
    MAX_POSITION_SIZE,
    RiskContext,
    RiskManager,
)


TS = datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)


def _ctx(price: float = 100.0, exposure: float = 0.0, daily: int = 0, **kw) -> RiskContext:
    return RiskContext(
        current_price=price,
        current_exposure=exposure,
        daily_trade_count=daily,
        portfolio_value=100_000,
        **kw,
    )


class TestSizeAndExposure:

    def test_position_size_violation_only(self, limits, make_order) -> None:
        rm = RiskManager(limits)
        # 600 * 100 = 60k: above 50k size, below 80k exposure
        result = rm.check(make_order(OrderSide.BUY, 600), _ctx())
        assert result.approved is False
        assert result.violations == (MAX_POSITION_SIZE,)
        assert result.limits_checked == ALL_LIMITS

    def test_within_limits_approved(self, limits, make_order) -> None:
        result = RiskManager(limits).check(make_order(OrderSide.BUY, 10), _ctx())
        assert result.approved is True
        assert result.violations == ()
        assert result.limits_checked == ALL_LIMITS

    def test_exposure_violation(self, limits, make_order) -> None:
        result = RiskManager(limits).check(make_order(OrderSide.BUY, 100), _ctx(exposure=75_000))
        assert result.violations == (MAX_EXPOSURE,)

    def test_size_at_limit_allowed(self, limits, make_order) -> None:
        result = RiskManager(limits).check(make_order(OrderSide.BUY, 500), _ctx())
        assert result.approved is True

    def test_sells_skip_size_and_exposure(self, limits, make_order) -> None:
        result = RiskManager(limits).check(make_order(OrderSide.SELL, 10_000), _ctx(exposure=1_000_000))
        assert result.approved is True
        assert result.limits_checked == ALL_LIMITS


class TestDailyTrades:

    def test_at_limit_rejected(self, limits, make_order) -> None:
        result = RiskManager(limits).check(make_order(), _ctx(daily=10))
        assert result.violations == (MAX_DAILY_TRADES,)

    def test_below_limit_allowed(self, limits, make_order) -> None:
        assert RiskManager(limits).check(make_order(), _ctx(daily=9)).approved

    def test_applies_to_sells(self, limits, make_order) -> None:
        result = RiskManager(limits).check(make_order(OrderSide.SELL), _ctx(daily=10))
        assert result.violations == (MAX_DAILY_TRADES,)


class TestCooldown:

    def test_same_symbol_inside_window(self, limits, make_order) -> None:
        rm = RiskManager(replace(limits, cooldown_ms=60_000))
        ctx = _ctx(last_trade_timestamp=TS, last_trade_symbol="AAPL", now=TS + timedelta(seconds=30))
        assert rm.check(make_order(), ctx).violations == (COOLDOWN,)

    def test_same_symbol_after_window(self, limits, make_order) -> None:
        rm = RiskManager(replace(limits, cooldown_ms=60_000))
        ctx = _ctx(last_trade_timestamp=TS, last_trade_symbol="AAPL", now=TS + timedelta(seconds=60))
        assert rm.check(make_order(), ctx).approved

    def test_other_symbol_not_affected(self, limits, make_order) -> None:
        rm = RiskManager(replace(limits, cooldown_ms=60_000))
        ctx = _ctx(last_trade_timestamp=TS, last_trade_symbol="MSFT", now=TS)
        assert rm.check(make_order(), ctx).approved

    def test_disabled_when_zero(self, limits, make_order) -> None:
        ctx = _ctx(last_trade_timestamp=TS, last_trade_symbol="AAPL", now=TS)
        assert RiskManager(limits).check(make_order(), ctx).approved

    def test_wall_clock_when_now_missing(self, limits, make_order) -> None:
        rm = RiskManager(replace(limits, cooldown_ms=60_000))
        recent = datetime.now(timezone.utc) - timedelta(seconds=1)
        ctx = _ctx(last_trade_timestamp=recent, last_trade_symbol="AAPL")
        assert rm.check(make_order(), ctx).violations == (COOLDOWN,)


def test_no_short_circuit_reports_every_violation(limits, make_order) -> None:
    rm = RiskManager(replace(limits, cooldown_ms=60_000))
    ctx = _ctx(
        exposure=79_000,
        daily=10,
        last_trade_timestamp=TS,
        last_trade_symbol="AAPL",
        now=TS,
    )
    result = rm.check(make_order(OrderSide.BUY, 600), ctx)
    assert result.approved is False
    assert result.violations == ALL_LIMITS


def test_max_loss_pct_not_evaluated(limits, make_order) -> None:
    rm = RiskManager(replace(limits, max_loss_pct=0))
    ctx = RiskContext(current_price=100, current_exposure=0, daily_trade_count=0, portfolio_value=1)
    assert rm.check(make_order(), ctx).approved
