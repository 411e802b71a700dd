"""
Z-score pre-screen: deterministic anomaly analysis over per-date tick batches.

Stands in for the LLM analysis step when none is wired in. For each tick
it compares the close-to-close change and the volume against a rolling
per-symbol history, converts the largest |z| to a 0-1 score and emits an
Anomaly when the score clears the skip threshold.

    score = 1 / (1 + exp(-k * (z - t/2))),  k = 4/t,  t = z_score_threshold

so z=0 maps near 0, z=t to ~0.88, z>>t toward 1.

Stateful across calls (the rolling history); use one instance per run.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from anomaly_core.contracts import Anomaly, Severity, Tick

if TYPE_CHECKING:
    from config.loader import AnalysisConfig


def z_score(value: float, history: Sequence[float]) -> float:
    """Population z-score of ``value`` against ``history``. 0 when undefined."""
    if len(history) < 2:
        return 0.0
    mean = sum(history) / len(history)
    std = math.sqrt(sum((h - mean) ** 2 for h in history) / len(history))
    if std == 0:
        return 0.0
    return (value - mean) / std


def z_to_score(max_z: float, threshold: float) -> float:
    if max_z == 0 or threshold <= 0:
        return 0.0
    k = 4 / threshold
    midpoint = threshold / 2
    return 1 / (1 + math.exp(-k * (max_z - midpoint)))


@dataclass
class _SymbolHistory:
    closes: deque[float]
    volumes: deque[float]
    changes: deque[float] = field(default_factory=deque)


class ZScoreAnalyzer:
    """Async ``run_analysis`` implementation backed by rolling z-scores."""

    def __init__(self, config: AnalysisConfig, *, session_id: str = "zscore") -> None:
        self._cfg = config
        self._session_id = session_id
        self._history: dict[str, _SymbolHistory] = {}

    async def __call__(self, ticks: list[Tick]) -> list[Anomaly]:
        return self.analyze(ticks)

    def analyze(self, ticks: Sequence[Tick]) -> list[Anomaly]:
        anomalies: list[Anomaly] = []
        for tick in sorted(ticks, key=lambda t: t.timestamp):
            if not tick.symbol or tick.close is None:
                continue
            anomaly = self._score_tick(tick)
            if anomaly is not None:
                anomalies.append(anomaly)
        return anomalies

    def _history_for(self, symbol: str) -> _SymbolHistory:
        hist = self._history.get(symbol)
        if hist is None:
            n = max(2, self._cfg.lookback)
            hist = _SymbolHistory(
                closes=deque(maxlen=n),
                volumes=deque(maxlen=n),
                changes=deque(maxlen=n),
            )
            self._history[symbol] = hist
        return hist

    def _score_tick(self, tick: Tick) -> Anomaly | None:
        hist = self._history_for(tick.symbol)
        close = tick.close
        volume = tick.metrics.get("volume")

        price_change = None
        if hist.closes and hist.closes[-1] > 0:
            price_change = close / hist.closes[-1] - 1

        volume_change = None
        if volume is not None and hist.volumes:
            avg_volume = sum(hist.volumes) / len(hist.volumes)
            if avg_volume > 0:
                volume_change = volume / avg_volume - 1

        z_price = z_score(price_change, hist.changes) if price_change is not None else 0.0
        z_volume = z_score(volume, hist.volumes) if volume is not None else 0.0

        if price_change is not None:
            hist.changes.append(price_change)
        hist.closes.append(close)
        if volume is not None:
            hist.volumes.append(volume)

        score = z_to_score(max(abs(z_price), abs(z_volume)), self._cfg.z_score_threshold)
        if score < self._cfg.skip_threshold:
            return None

        if score >= self._cfg.critical_threshold:
            severity = Severity.CRITICAL
        elif score >= self._cfg.urgent_threshold:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        metrics = {"close": close, "zPrice": z_price, "zVolume": z_volume}
        if price_change is not None:
            metrics["priceChange"] = price_change
        if volume_change is not None:
            metrics["volumeChange"] = volume_change
        if volume is not None:
            metrics["volume"] = volume

        return Anomaly(
            id=f"{self._session_id}-{tick.symbol}-{tick.timestamp:%Y%m%dT%H%M}",
            severity=severity,
            source=tick.source_id,
            timestamp=tick.timestamp,
            description=_describe(abs(z_price) >= abs(z_volume), price_change, volume_change),
            metrics=metrics,
            pre_screen_score=score,
            session_id=self._session_id,
            symbol=tick.symbol,
        )


def _describe(price_led: bool, price_change: float | None, volume_change: float | None) -> str:
    if price_led and price_change is not None:
        label = "Price spike" if price_change >= 0 else "Price drop"
        return f"{label}: close {price_change:+.2%} vs prior close"
    if volume_change is not None:
        label = "Volume spike" if volume_change >= 0 else "Volume drop"
        return f"{label}: {volume_change + 1:.2f}x average volume"
    return "Unusual activity"
