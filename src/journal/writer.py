"""
Structured journal: append-only JSON lines for progress, trades and run results.
Final results can also be exported as a single JSON document.
"""

import json
from collections.abc import Mapping
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


def _serialize(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if hasattr(obj, "__dict__") and not isinstance(obj, type):
        return {k: _serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
    if isinstance(obj, Mapping):
        return {str(_serialize(k)): _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def progress(self, progress: Any) -> None:
        self._write("progress", _serialize(progress))

    def trade(self, trade: Any) -> None:
        self._write("trade", _serialize(trade))

    def rejection(self, symbol: str, side: str, reasons: list[str], anomaly_id: str, **extra: Any) -> None:
        self._write("rejection", {"symbol": symbol, "side": side, "reasons": reasons, "anomaly_id": anomaly_id, **extra})

    def result(self, result: Any) -> None:
        """Summary line: status, error, counts and headline metrics."""
        metrics = result.metrics
        self._write(
            "result",
            {
                "backtest_id": result.id,
                "status": result.status,
                "error": result.error,
                "trades": len(result.trades),
                "equity_points": len(result.equity_curve),
                "total_return": metrics.total_return if metrics else None,
                "total_return_pct": metrics.total_return_pct if metrics else None,
            },
        )


def result_to_dict(result: Any) -> dict:
    return _serialize(result)


def export_result(result: Any, path: str | Path) -> Path:
    """Write a full BacktestResult as one JSON document."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w") as f:
        json.dump(result_to_dict(result), f, indent=2)
    return out
