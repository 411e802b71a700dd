"""
Trade Generator: Anomaly + current holdings -> at most one Order.

Responsibilities:
    - Gate on actionable severity (HIGH, CRITICAL) and a resolved symbol
    - Classify the anomaly from its description, then from its metrics
    - Map (classification x holding state) to a side and quantity
    - Attach confidence and a rationale naming the triggering signal

Stateless apart from its configuration; one instance can serve many runs.
"""

from __future__ import annotations

from typing import Protocol

from anomaly_core.contracts import (
    Anomaly,
    AnomalySignal,
    Order,
    OrderSide,
    Severity,
)

ACTIONABLE_SEVERITIES = frozenset({Severity.HIGH, Severity.CRITICAL})

_SPIKE_WORDS = ("spike", "jump", "surge")
_DROP_WORDS = ("drop", "decline", "fell", "decrease")

PRICE_CHANGE_THRESHOLD = 0.03
VOLUME_SPIKE_THRESHOLD = 0.5


class PositionLookup(Protocol):
    """Read-only view of current holdings."""

    def has_position(self, symbol: str) -> bool: ...

    def get_qty(self, symbol: str) -> float: ...


def classify_anomaly(anomaly: Anomaly) -> AnomalySignal:
    """Classify from description keywords; fall back to numeric metrics.

    Spike/drop words pick the direction; "volume" in the same description
    makes it a volume signal, otherwise a price signal.
    """
    desc = anomaly.description.lower()
    is_volume = "volume" in desc

    if any(word in desc for word in _SPIKE_WORDS):
        return AnomalySignal.VOLUME_SPIKE if is_volume else AnomalySignal.PRICE_SPIKE
    if any(word in desc for word in _DROP_WORDS):
        return AnomalySignal.VOLUME_DROP if is_volume else AnomalySignal.PRICE_DROP

    price_change = anomaly.metrics.get("priceChange")
    if price_change is not None:
        if price_change > PRICE_CHANGE_THRESHOLD:
            return AnomalySignal.PRICE_SPIKE
        if price_change < -PRICE_CHANGE_THRESHOLD:
            return AnomalySignal.PRICE_DROP

    volume_change = anomaly.metrics.get("volumeChange")
    if volume_change is not None:
        if volume_change > VOLUME_SPIKE_THRESHOLD:
            return AnomalySignal.VOLUME_SPIKE
        if volume_change < 0:
            return AnomalySignal.VOLUME_DROP

    return AnomalySignal.UNKNOWN


def compute_confidence(anomaly: Anomaly) -> float:
    """Pre-screen score plus a critical boost, clamped to [0.5, 1.0]."""
    boost = 0.1 if anomaly.severity == Severity.CRITICAL else 0.0
    return min(1.0, max(0.5, anomaly.pre_screen_score + boost))


class TradeGenerator:
    """Turn qualifying anomalies into proposed orders.

    Parameters
    ----------
    default_qty:
        Quantity for new entries. Exits always sell the full holding.
    """

    def __init__(self, default_qty: float = 1) -> None:
        if default_qty <= 0:
            raise ValueError(f"default_qty must be positive, got {default_qty}")
        self._default_qty = default_qty

    def evaluate(self, anomaly: Anomaly, positions: PositionLookup) -> Order | None:
        if anomaly.severity not in ACTIONABLE_SEVERITIES:
            return None
        if not anomaly.symbol:
            return None

        symbol = anomaly.symbol
        signal = classify_anomaly(anomaly)
        holding = positions.has_position(symbol)
        held_qty = positions.get_qty(symbol)

        if signal == AnomalySignal.PRICE_SPIKE:
            if holding:
                side, qty = OrderSide.SELL, held_qty
                rationale = f"Selling {qty:g} {symbol}: price spike, taking profit on existing position"
            else:
                side, qty = OrderSide.BUY, self._default_qty
                rationale = f"Buying {qty:g} {symbol}: price spike, momentum entry"

        elif signal == AnomalySignal.PRICE_DROP:
            if holding:
                side, qty = OrderSide.SELL, held_qty
                rationale = f"Selling {qty:g} {symbol}: price drop, stop loss on existing position"
            else:
                side, qty = OrderSide.BUY, self._default_qty
                rationale = f"Buying {qty:g} {symbol}: price drop, mean-reversion entry"

        elif signal in (AnomalySignal.VOLUME_SPIKE, AnomalySignal.VOLUME_DROP):
            if holding:
                return None
            side, qty = OrderSide.BUY, self._default_qty
            label = "volume spike" if signal == AnomalySignal.VOLUME_SPIKE else "volume drop"
            rationale = f"Buying {qty:g} {symbol}: {label} may indicate accumulation"

        else:
            if holding:
                side, qty = OrderSide.SELL, held_qty
                rationale = (
                    f"Selling {qty:g} {symbol}: {anomaly.severity.value} anomaly "
                    f"({anomaly.description}), defensive exit"
                )
            else:
                side, qty = OrderSide.BUY, self._default_qty
                rationale = (
                    f"Buying {qty:g} {symbol}: {anomaly.severity.value} anomaly "
                    f"({anomaly.description})"
                )

        return Order(
            symbol=symbol,
            side=side,
            qty=qty,
            rationale=rationale,
            confidence=compute_confidence(anomaly),
            anomaly_id=anomaly.id,
        )
