"""
Structured JSON event logger for backtest observability.

Emits one JSON object per line to stderr. Events are designed to be
parsed by log aggregators (Grafana Loki, CloudWatch, ELK).

Optional webhook: when configured, trade-level events (trade_executed,
order_rejected, error) are POSTed to the URL.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("backtester.events")

ALERT_EVENTS = frozenset({"trade_executed", "order_rejected", "error"})


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        backtest_id: str,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
        webhook_timeout: float = 5.0,
    ) -> None:
        self._backtest_id = backtest_id
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._webhook_timeout = webhook_timeout

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "backtest_id": self._backtest_id,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=self._webhook_timeout)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def run_start(self, symbols: list[str], start_date: str, end_date: str) -> dict:
        return self._emit(
            "run_start",
            symbols=symbols,
            start_date=start_date,
            end_date=end_date,
        )

    def progress(
        self,
        current_date: str,
        ticks_processed: int,
        total_ticks: int,
        trades_executed: int,
    ) -> dict:
        return self._emit(
            "progress",
            current_date=current_date,
            ticks_processed=ticks_processed,
            total_ticks=total_ticks,
            trades_executed=trades_executed,
        )

    def trade_executed(
        self,
        symbol: str,
        side: str,
        qty: float,
        price: float,
        realized_pnl: float | None,
    ) -> dict:
        return self._emit(
            "trade_executed",
            symbol=symbol,
            side=side,
            qty=qty,
            price=price,
            realized_pnl=realized_pnl,
        )

    def order_rejected(self, reason: str) -> dict:
        return self._emit("order_rejected", reason=reason)

    def run_complete(self, status: str, trades: int, total_return_pct: float | None) -> dict:
        return self._emit(
            "run_complete",
            status=status,
            trades=trades,
            total_return_pct=None if total_return_pct is None else round(total_return_pct, 4),
        )

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)
