"""Tests for TradeGenerator: gating, classification, decision table, confidence."""

import pytest

from anomaly_core.contracts import AnomalySignal, OrderSide, OrderType, Severity
from anomaly_core.trade_generator import TradeGenerator, classify_anomaly, compute_confidence


class _Holdings:
    """Minimal position lookup for tests."""

    def __init__(self, **qty: float) -> None:
        self._qty = qty

    def has_position(self, symbol: str) -> bool:
        return self._qty.get(symbol, 0) > 0

    def get_qty(self, symbol: str) -> float:
        return self._qty.get(symbol, 0)


FLAT = _Holdings()
HOLDING = _Holdings(AAPL=7)


@pytest.fixture
def gen() -> TradeGenerator:
    return TradeGenerator(default_qty=10)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassify:

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("Price spike after earnings", AnomalySignal.PRICE_SPIKE),
            ("Sudden jump in quotes", AnomalySignal.PRICE_SPIKE),
            ("Shares surge", AnomalySignal.PRICE_SPIKE),
            ("Volume spike on open", AnomalySignal.VOLUME_SPIKE),
            ("Price drop of 5%", AnomalySignal.PRICE_DROP),
            ("Stock fell sharply", AnomalySignal.PRICE_DROP),
            ("Volume decline into close", AnomalySignal.VOLUME_DROP),
            ("Trading volume decrease", AnomalySignal.VOLUME_DROP),
        ],
    )
    def test_keywords(self, make_anomaly, description: str, expected: AnomalySignal) -> None:
        assert classify_anomaly(make_anomaly(description)) == expected

    def test_keywords_are_case_insensitive(self, make_anomaly) -> None:
        assert classify_anomaly(make_anomaly("VOLUME SURGE")) == AnomalySignal.VOLUME_SPIKE

    def test_metric_fallback_price(self, make_anomaly) -> None:
        assert classify_anomaly(make_anomaly("odd", metrics={"priceChange": 0.05})) == AnomalySignal.PRICE_SPIKE
        assert classify_anomaly(make_anomaly("odd", metrics={"priceChange": -0.05})) == AnomalySignal.PRICE_DROP

    def test_metric_fallback_volume(self, make_anomaly) -> None:
        assert classify_anomaly(make_anomaly("odd", metrics={"volumeChange": 0.8})) == AnomalySignal.VOLUME_SPIKE
        assert classify_anomaly(make_anomaly("odd", metrics={"volumeChange": -0.2})) == AnomalySignal.VOLUME_DROP

    def test_small_price_change_falls_through_to_volume(self, make_anomaly) -> None:
        a = make_anomaly("odd", metrics={"priceChange": 0.01, "volumeChange": 0.9})
        assert classify_anomaly(a) == AnomalySignal.VOLUME_SPIKE

    def test_unknown(self, make_anomaly) -> None:
        a = make_anomaly("Unusual activity", metrics={"priceChange": 0.02, "volumeChange": 0.1})
        assert classify_anomaly(a) == AnomalySignal.UNKNOWN


# ---------------------------------------------------------------------------
# Gating
# ---------------------------------------------------------------------------


class TestGate:

    @pytest.mark.parametrize("severity", [Severity.LOW, Severity.MEDIUM])
    def test_low_severities_ignored(self, gen, make_anomaly, severity: Severity) -> None:
        assert gen.evaluate(make_anomaly(severity=severity), FLAT) is None

    def test_missing_symbol_ignored(self, gen, make_anomaly) -> None:
        assert gen.evaluate(make_anomaly(symbol=None), FLAT) is None

    def test_invalid_default_qty(self) -> None:
        with pytest.raises(ValueError):
            TradeGenerator(default_qty=0)


# ---------------------------------------------------------------------------
# Decision table
# ---------------------------------------------------------------------------


class TestDecisionTable:

    def test_price_spike_flat_buys(self, gen, make_anomaly) -> None:
        order = gen.evaluate(make_anomaly("Price spike"), FLAT)
        assert order.side == OrderSide.BUY
        assert order.qty == 10
        assert "momentum" in order.rationale
        assert order.order_type == OrderType.MARKET

    def test_price_spike_holding_sells_all(self, gen, make_anomaly) -> None:
        order = gen.evaluate(make_anomaly("Price spike"), HOLDING)
        assert order.side == OrderSide.SELL
        assert order.qty == 7
        assert "taking profit" in order.rationale

    def test_price_drop_flat_buys(self, gen, make_anomaly) -> None:
        order = gen.evaluate(make_anomaly("Price drop"), FLAT)
        assert order.side == OrderSide.BUY
        assert "mean-reversion" in order.rationale

    def test_price_drop_holding_sells_all(self, gen, make_anomaly) -> None:
        order = gen.evaluate(make_anomaly("Price drop"), HOLDING)
        assert order.side == OrderSide.SELL
        assert order.qty == 7
        assert "stop loss" in order.rationale

    @pytest.mark.parametrize("description", ["Volume spike", "Volume drop"])
    def test_volume_flat_buys(self, gen, make_anomaly, description: str) -> None:
        order = gen.evaluate(make_anomaly(description), FLAT)
        assert order.side == OrderSide.BUY
        assert order.qty == 10
        assert description.lower() in order.rationale

    @pytest.mark.parametrize("description", ["Volume spike", "Volume drop"])
    def test_volume_holding_no_action(self, gen, make_anomaly, description: str) -> None:
        assert gen.evaluate(make_anomaly(description), HOLDING) is None

    def test_unknown_flat_buys(self, gen, make_anomaly) -> None:
        order = gen.evaluate(make_anomaly("Unusual activity"), FLAT)
        assert order.side == OrderSide.BUY
        assert "Unusual activity" in order.rationale

    def test_unknown_holding_defensive_sell(self, gen, make_anomaly) -> None:
        order = gen.evaluate(make_anomaly("Unusual activity"), HOLDING)
        assert order.side == OrderSide.SELL
        assert order.qty == 7
        assert "defensive" in order.rationale

    def test_order_carries_anomaly_id(self, gen, make_anomaly) -> None:
        order = gen.evaluate(make_anomaly(anomaly_id="an-42"), FLAT)
        assert order.anomaly_id == "an-42"
        assert order.symbol == "AAPL"


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------


class TestConfidence:

    def test_passes_score_through(self, make_anomaly) -> None:
        assert compute_confidence(make_anomaly(score=0.7)) == pytest.approx(0.7)

    def test_critical_boost(self, make_anomaly) -> None:
        assert compute_confidence(make_anomaly(score=0.7, severity=Severity.CRITICAL)) == pytest.approx(0.8)

    def test_clamped_low(self, make_anomaly) -> None:
        assert compute_confidence(make_anomaly(score=0.1)) == 0.5

    def test_clamped_high(self, make_anomaly) -> None:
        assert compute_confidence(make_anomaly(score=0.95, severity=Severity.CRITICAL)) == 1.0


def test_market_is_the_only_order_type() -> None:
    assert [t.value for t in OrderType] == ["market"]
