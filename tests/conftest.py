"""Pytest fixtures: run configs, orders, anomalies and tick sequences for deterministic tests."""

from datetime import datetime, timezone

import pytest

from anomaly_core.contracts import Anomaly, Order, OrderSide, Severity, Tick
from config.backtest_config import BacktestConfig, RiskLimits


def _ts(year: int, month: int, day: int, hour: int = 14, minute: int = 30) -> datetime:
    return datetime(year, month, day, hour, minute, 0, tzinfo=timezone.utc)


@pytest.fixture
def symbol() -> str:
    return "AAPL"


@pytest.fixture
def limits() -> RiskLimits:
    return RiskLimits(
        max_position_size=50_000,
        max_exposure=80_000,
        max_daily_trades=10,
        max_loss_pct=5,
        cooldown_ms=0,
    )


@pytest.fixture
def run_config(limits: RiskLimits) -> BacktestConfig:
    return BacktestConfig(
        id="bt-test",
        symbols=("AAPL",),
        start_date="2024-01-01",
        end_date="2024-01-31",
        timeframe="1Day",
        initial_capital=100_000,
        risk_limits=limits,
        severity_threshold=Severity.HIGH,
        confidence_threshold=0.5,
        default_qty=10,
    )


@pytest.fixture
def make_order():
    """Factory for orders; defaults to a 10-share AAPL buy."""

    def _make(side: OrderSide = OrderSide.BUY, qty: float = 10, symbol: str = "AAPL") -> Order:
        return Order(
            symbol=symbol,
            side=side,
            qty=qty,
            rationale=f"test {side.value}",
            confidence=0.8,
            anomaly_id="an-1",
        )

    return _make


@pytest.fixture
def make_anomaly():
    """Factory for anomalies; defaults to a high-severity AAPL price spike."""

    def _make(
        description: str = "Price spike: close +4.00% vs prior close",
        severity: Severity = Severity.HIGH,
        symbol: str | None = "AAPL",
        score: float = 0.9,
        metrics: dict | None = None,
        ts: datetime | None = None,
        anomaly_id: str = "an-1",
    ) -> Anomaly:
        return Anomaly(
            id=anomaly_id,
            severity=severity,
            source="test",
            timestamp=ts or _ts(2024, 1, 2),
            description=description,
            metrics=metrics or {},
            pre_screen_score=score,
            session_id="bt-test",
            symbol=symbol,
        )

    return _make


@pytest.fixture
def daily_ticks(symbol: str) -> list[Tick]:
    """Five trading days, one close per day, rising then falling."""
    closes = [100.0, 104.0, 106.0, 101.0, 103.0]
    return [
        Tick(
            source_id="test",
            timestamp=_ts(2024, 1, 2 + i),
            metrics={"close": close, "volume": 1_000_000},
            symbol=symbol,
        )
        for i, close in enumerate(closes)
    ]
