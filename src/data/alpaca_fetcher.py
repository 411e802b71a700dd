"""
Alpaca tick fetcher: historical bars via the alpaca-py SDK, one Tick per bar.

Maps Alpaca Bar objects to anomaly_core.contracts.Tick (metrics: OHLCV, UTC timestamp, symbol).
Handles pagination via next_page_token.
Free tier uses IEX data; SIP requires Algo Trader Plus subscription.
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence

from anomaly_core.contracts import Tick, as_utc

logger = logging.getLogger("backtester.data.alpaca")

_TIMEFRAME_MAP = {
    "1Hour": ("Hour", 1),
    "1Day": ("Day", 1),
}


def _parse_timeframe(tf_str: str):
    """Convert run-config timeframe to an Alpaca TimeFrame object."""
    from alpaca.data.timeframe import TimeFrame, TimeFrameUnit

    if tf_str not in _TIMEFRAME_MAP:
        raise ValueError(
            f"Unsupported timeframe '{tf_str}'. Supported: {list(_TIMEFRAME_MAP.keys())}"
        )
    unit_str, amount = _TIMEFRAME_MAP[tf_str]
    unit = getattr(TimeFrameUnit, unit_str)
    return TimeFrame(amount, unit)


class AlpacaTickFetcher:
    """
    Fetch OHLCV bars from Alpaca Market Data API as ticks.

    Uses StockHistoricalDataClient from alpaca-py.
    API keys via constructor (typically from AppConfig, sourced from env vars).
    """

    def __init__(self, api_key: str, api_secret: str, *, feed: str = "iex", source_id: str = "alpaca") -> None:
        if not api_key or not api_secret:
            raise ValueError(
                "Alpaca API key and secret are required. "
                "Set APCA_API_KEY_ID and APCA_API_SECRET_KEY environment variables."
            )
        try:
            from alpaca.data.historical import StockHistoricalDataClient
        except ImportError:
            raise ImportError(
                "alpaca-py is required for AlpacaTickFetcher. "
                "Install with: pip install 'anomaly-backtester[data]'"
            )
        self._client = StockHistoricalDataClient(api_key, api_secret)
        self._feed = feed
        self._source_id = source_id

    def fetch_symbol(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> list[Tick]:
        """Fetch every page of bars for one symbol. Blocking."""
        from alpaca.data.enums import DataFeed
        from alpaca.data.requests import StockBarsRequest

        tf = _parse_timeframe(timeframe)
        ticks: list[Tick] = []
        page_token = None
        while True:
            request_params = StockBarsRequest(
                symbol_or_symbols=symbol,
                timeframe=tf,
                start=start,
                end=end,
                feed=DataFeed(self._feed.lower()),
                page_token=page_token,
            )
            response = self._client.get_stock_bars(request_params)
            raw_bars = response.data.get(symbol, []) if hasattr(response, "data") else response.get(symbol, [])
            for alpaca_bar in raw_bars:
                ticks.append(
                    Tick(
                        source_id=self._source_id,
                        timestamp=as_utc(alpaca_bar.timestamp),
                        symbol=symbol,
                        metrics={
                            "open": float(alpaca_bar.open),
                            "high": float(alpaca_bar.high),
                            "low": float(alpaca_bar.low),
                            "close": float(alpaca_bar.close),
                            "volume": float(alpaca_bar.volume),
                        },
                    )
                )
            page_token = getattr(response, "next_page_token", None)
            if not page_token:
                break
        logger.info("Fetched %d bars for %s %s", len(ticks), symbol, timeframe)
        return ticks

    async def fetch_data(
        self,
        symbols: Sequence[str],
        start_date: str,
        end_date: str,
        timeframe: str,
    ) -> list[Tick]:
        start = datetime.combine(date.fromisoformat(start_date), time.min, tzinfo=timezone.utc)
        end = datetime.combine(date.fromisoformat(end_date), time.min, tzinfo=timezone.utc) + timedelta(days=1)
        ticks: list[Tick] = []
        for symbol in symbols:
            ticks.extend(await asyncio.to_thread(self.fetch_symbol, symbol, timeframe, start, end))
        return ticks
