"""
Fetch historical ticks for a backtest. Configurable adapter; async to match the engine.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol, Sequence

from anomaly_core.contracts import Tick, as_utc


class TickFetcher(Protocol):
    """Protocol for tick fetchers. Implement per provider (CSV, Alpaca, etc.)."""

    async def fetch_data(
        self,
        symbols: Sequence[str],
        start_date: str,
        end_date: str,
        timeframe: str,
    ) -> list[Tick]:
        """Fetch ticks for ``symbols`` within the inclusive date range; UTC timestamps."""
        ...


def in_range(ts: datetime, start_date: str, end_date: str) -> bool:
    """Inclusive YYYY-MM-DD range check on the UTC calendar date of ``ts`` (naive means UTC)."""
    day = as_utc(ts).date()
    return date.fromisoformat(start_date) <= day <= date.fromisoformat(end_date)


class MockTickFetcher:
    """Returns a fixed tick list filtered like a real source; for tests and dry runs."""

    def __init__(self, ticks: Sequence[Tick] = ()) -> None:
        self._ticks = list(ticks)
        self.calls: list[tuple[tuple[str, ...], str, str, str]] = []

    async def fetch_data(
        self,
        symbols: Sequence[str],
        start_date: str,
        end_date: str,
        timeframe: str,
    ) -> list[Tick]:
        self.calls.append((tuple(symbols), start_date, end_date, timeframe))
        wanted = set(symbols)
        return [
            t for t in self._ticks
            if (t.symbol is None or t.symbol in wanted) and in_range(t.timestamp, start_date, end_date)
        ]
