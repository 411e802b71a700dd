"""
CSV tick source: one file or every *.csv in a directory -> Tick list.

Format: header row required, ``timestamp`` column (ISO-8601 or epoch
milliseconds). Optional ``symbol`` column; otherwise the file stem is the
symbol. Every other numeric column becomes a tick metric. ``column_map``
maps standard names to CSV column names (e.g. {"close": "Adj Close"}).
"""

from __future__ import annotations

import asyncio
import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from anomaly_core.contracts import Tick, as_utc

from data.fetcher import in_range

logger = logging.getLogger("backtester.data.csv")


def parse_timestamp(raw: str) -> datetime | None:
    """ISO-8601 string or epoch milliseconds -> aware UTC datetime."""
    raw = raw.strip()
    if not raw:
        return None
    try:
        millis = float(raw)
    except ValueError:
        millis = None
    if millis is not None:
        try:
            return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return as_utc(ts)


class CsvTickFetcher:
    """Read ticks from CSV files on disk."""

    def __init__(
        self,
        path: str | Path,
        *,
        source_id: str = "csv",
        column_map: dict[str, str] | None = None,
    ) -> None:
        self._path = Path(path)
        self._source_id = source_id
        self._column_map = column_map or {}
        self._reverse = {csv_col: std for std, csv_col in self._column_map.items()}

    def _files(self) -> list[Path]:
        if self._path.is_dir():
            return sorted(self._path.glob("*.csv"))
        if self._path.exists():
            return [self._path]
        raise FileNotFoundError(f"CSV source not found: {self._path}")

    def _column(self, standard: str) -> str:
        return self._column_map.get(standard, standard)

    def read_file(self, path: Path) -> list[Tick]:
        ticks: list[Tick] = []
        ts_col = self._column("timestamp")
        sym_col = self._column("symbol")
        skipped = 0

        with open(path, newline="") as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if not header:
                return ticks
            header = [h.strip() for h in header]

            for values in reader:
                if not any(v.strip() for v in values):
                    continue
                if len(values) != len(header):
                    skipped += 1
                    continue
                row = dict(zip(header, (v.strip() for v in values)))
                ts = parse_timestamp(row.get(ts_col, ""))
                if ts is None:
                    skipped += 1
                    continue

                metrics: dict[str, float] = {}
                for col, val in row.items():
                    if col in (ts_col, sym_col):
                        continue
                    try:
                        metrics[self._reverse.get(col, col)] = float(val)
                    except ValueError:
                        continue
                if not metrics:
                    skipped += 1
                    continue

                symbol = row.get(sym_col) or path.stem
                ticks.append(Tick(
                    source_id=self._source_id,
                    timestamp=ts,
                    metrics=metrics,
                    symbol=symbol.upper(),
                    metadata={"file": path.name},
                ))

        if skipped:
            logger.warning("Skipped %d malformed row(s) in %s", skipped, path.name)
        return ticks

    def load(self) -> list[Tick]:
        ticks: list[Tick] = []
        for path in self._files():
            ticks.extend(self.read_file(path))
        return ticks

    async def fetch_data(
        self,
        symbols: Sequence[str],
        start_date: str,
        end_date: str,
        timeframe: str,
    ) -> list[Tick]:
        all_ticks = await asyncio.to_thread(self.load)
        wanted = {s.upper() for s in symbols}
        ticks = [
            t for t in all_ticks
            if t.symbol in wanted and in_range(t.timestamp, start_date, end_date)
        ]
        logger.info("Loaded %d ticks for %s from %s", len(ticks), ",".join(sorted(wanted)), self._path)
        return ticks
