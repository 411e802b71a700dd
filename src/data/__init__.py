"""
Data adapters: historical ticks for the backtest fetch capability.

Depends on anomaly_core.contracts for Tick; no dependency from anomaly_core back to data.
"""

from data.csv_source import CsvTickFetcher
from data.fetcher import MockTickFetcher, TickFetcher

__all__ = [
    "CsvTickFetcher",
    "MockTickFetcher",
    "TickFetcher",
]


def get_alpaca_fetcher(api_key: str, api_secret: str, feed: str = "iex"):
    """Lazy import to avoid requiring alpaca-py when not used."""
    from data.alpaca_fetcher import AlpacaTickFetcher

    return AlpacaTickFetcher(api_key, api_secret, feed=feed)
