"""
Event-driven backtest: replay historical ticks day by day through anomaly analysis.

Per date, in chronological order:
    analyze ticks -> filter anomalies -> generate order -> risk check -> ledger fill
then snapshot equity and emit progress. Metrics are computed once at the end.

Strictly sequential: the fetch call and each per-date analysis call are
awaited to completion before anything else happens, so risk state
(daily counters, cooldown) always sees trades in their exact order.
Cancellation is cooperative, polled at fixed checkpoints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Sequence

from anomaly_core.contracts import Anomaly, Order, Tick, as_utc, severity_rank
from anomaly_core.risk_engine import RiskContext, RiskManager
from anomaly_core.trade_generator import TradeGenerator
from backtest.metrics import BacktestMetrics, calculate_metrics
from config.backtest_config import BacktestConfig
from execution.ledger import BacktestLedger
from execution.models import EquityPoint, Executed, Trade

logger = logging.getLogger("backtester.engine")

FetchDataFn = Callable[[Sequence[str], str, str, str], Awaitable[list[Tick]]]
RunAnalysisFn = Callable[[list[Tick]], Awaitable[list[Anomaly]]]


async def _no_ticks(symbols: Sequence[str], start_date: str, end_date: str, timeframe: str) -> list[Tick]:
    return []


async def _no_anomalies(ticks: list[Tick]) -> list[Anomaly]:
    return []


@dataclass(frozen=True)
class BacktestDeps:
    """The two capabilities a run needs from outside."""
    fetch_data: FetchDataFn = _no_ticks
    run_analysis: RunAnalysisFn = _no_anomalies


class BacktestStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self != BacktestStatus.RUNNING


@dataclass(frozen=True)
class BacktestProgress:
    backtest_id: str
    ticks_processed: int
    total_ticks: int
    anomalies_found: int
    trades_executed: int
    current_date: str


@dataclass(frozen=True)
class BacktestResult:
    """Outcome of one run.

    metrics is set only for COMPLETED; error only for FAILED.
    """

    id: str
    config: BacktestConfig
    status: BacktestStatus
    created_at: datetime
    metrics: BacktestMetrics | None = None
    trades: tuple[Trade, ...] = ()
    equity_curve: tuple[EquityPoint, ...] = ()
    completed_at: datetime | None = None
    error: str | None = None


class CancellationToken:
    """Cooperative cancel flag, polled by the engine at its checkpoints."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class _Cancelled(Exception):
    """Internal: unwinds the run loop when a checkpoint sees cancellation."""


def group_by_date(ticks: Sequence[Tick]) -> dict[str, list[Tick]]:
    """Group ticks by UTC calendar date (YYYY-MM-DD), chronologically."""
    groups: dict[str, list[Tick]] = {}
    for tick in sorted(ticks, key=lambda t: as_utc(t.timestamp)):
        day = as_utc(tick.timestamp).date().isoformat()
        groups.setdefault(day, []).append(tick)
    return groups


def latest_prices(ticks: Sequence[Tick]) -> dict[str, float]:
    """Last close per symbol within a batch."""
    prices: dict[str, float] = {}
    for tick in ticks:
        if tick.symbol and tick.close is not None:
            prices[tick.symbol] = tick.close
    return prices


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BacktestEngine:
    """
    Orchestrates one run per ``run()`` call.

    Parameters
    ----------
    config:
        Immutable run parameters.
    deps:
        Injected fetch and analysis coroutines.
    on_progress:
        Called once per processed date.
    on_trade:
        Called for every executed trade, in execution order.
    on_reject:
        Called with the order and the rule names or ledger reason that blocked it.
    trade_generator / risk_manager:
        Optional shared instances; built from config when omitted.
    """

    def __init__(
        self,
        config: BacktestConfig,
        deps: BacktestDeps | None = None,
        *,
        on_progress: Callable[[BacktestProgress], None] | None = None,
        on_trade: Callable[[Trade], None] | None = None,
        on_reject: Callable[[Order, tuple[str, ...]], None] | None = None,
        trade_generator: TradeGenerator | None = None,
        risk_manager: RiskManager | None = None,
    ) -> None:
        self._config = config
        self._deps = deps or BacktestDeps()
        self._on_progress = on_progress
        self._on_trade = on_trade
        self._on_reject = on_reject
        self._generator = trade_generator or TradeGenerator(default_qty=config.default_qty)
        self._risk = risk_manager or RiskManager(config.risk_limits)
        self._token = CancellationToken()

    @property
    def config(self) -> BacktestConfig:
        return self._config

    def cancel(self) -> None:
        self._token.cancel()

    async def run(self, token: CancellationToken | None = None) -> BacktestResult:
        self._token = token or CancellationToken()
        created_at = _now()
        cfg = self._config

        try:
            return await self._run(created_at)
        except _Cancelled:
            logger.info("Backtest %s cancelled", cfg.id)
            return BacktestResult(
                id=cfg.id,
                config=cfg,
                status=BacktestStatus.CANCELLED,
                created_at=created_at,
                completed_at=_now(),
            )
        except Exception as exc:
            logger.error("Backtest %s failed: %s", cfg.id, exc)
            return BacktestResult(
                id=cfg.id,
                config=cfg,
                status=BacktestStatus.FAILED,
                created_at=created_at,
                completed_at=_now(),
                error=str(exc),
            )

    def _checkpoint(self) -> None:
        if self._token.cancelled:
            raise _Cancelled()

    async def _run(self, created_at: datetime) -> BacktestResult:
        cfg = self._config
        logger.info(
            "Fetching data: symbols=%s start=%s end=%s timeframe=%s",
            ",".join(cfg.symbols), cfg.start_date, cfg.end_date, cfg.timeframe,
        )
        ticks = await self._deps.fetch_data(
            list(cfg.symbols), cfg.start_date, cfg.end_date, cfg.timeframe,
        )
        self._checkpoint()

        if not ticks:
            logger.info("No ticks returned; completing with empty metrics")
            return BacktestResult(
                id=cfg.id,
                config=cfg,
                status=BacktestStatus.COMPLETED,
                created_at=created_at,
                completed_at=_now(),
                metrics=calculate_metrics([], [], cfg.initial_capital),
            )

        ledger = BacktestLedger(cfg.id, cfg.initial_capital)
        date_groups = group_by_date(ticks)
        self._checkpoint()

        threshold = severity_rank(cfg.severity_threshold)
        total_ticks = len(ticks)
        ticks_processed = 0
        anomalies_found = 0
        trades_executed = 0
        daily_trade_count = 0
        last_trade_ts: datetime | None = None
        last_trade_symbol: str | None = None
        previous_date: str | None = None

        for day, day_ticks in date_groups.items():
            if day != previous_date:
                daily_trade_count = 0
                previous_date = day

            anomalies = await self._deps.run_analysis(day_ticks)
            self._checkpoint()

            qualifying = [
                a for a in anomalies
                if severity_rank(a.severity) >= threshold
                and a.pre_screen_score >= cfg.confidence_threshold
            ]
            anomalies_found += len(qualifying)
            prices = latest_prices(day_ticks)

            for anomaly in qualifying:
                self._checkpoint()

                order = self._generator.evaluate(anomaly, ledger)
                if order is None:
                    continue

                price = prices.get(order.symbol, anomaly.metrics.get("close"))
                if price is None:
                    logger.debug("No price for %s on %s; skipping anomaly %s", order.symbol, day, anomaly.id)
                    continue

                value = ledger.portfolio_value(prices)
                check = self._risk.check(order, RiskContext(
                    current_price=price,
                    current_exposure=value - ledger.cash,
                    daily_trade_count=daily_trade_count,
                    last_trade_timestamp=last_trade_ts,
                    last_trade_symbol=last_trade_symbol,
                    portfolio_value=value,
                    now=anomaly.timestamp,
                ))
                if not check.approved:
                    logger.debug(
                        "Risk rejected %s %s: %s",
                        order.side.value, order.symbol, ",".join(check.violations),
                    )
                    if self._on_reject:
                        self._on_reject(order, check.violations)
                    continue

                outcome = ledger.execute(order, price, anomaly.timestamp)
                if not isinstance(outcome, Executed):
                    logger.debug(
                        "Ledger rejected %s %s: %s %s",
                        order.side.value, order.symbol, outcome.reason.value, outcome.detail,
                    )
                    if self._on_reject:
                        self._on_reject(order, (outcome.reason.value,))
                    continue

                trades_executed += 1
                daily_trade_count += 1
                last_trade_ts = anomaly.timestamp
                last_trade_symbol = order.symbol
                if self._on_trade:
                    self._on_trade(outcome.trade)

            ledger.snapshot(day, prices)
            ticks_processed += len(day_ticks)

            if self._on_progress:
                self._on_progress(BacktestProgress(
                    backtest_id=cfg.id,
                    ticks_processed=ticks_processed,
                    total_ticks=total_ticks,
                    anomalies_found=anomalies_found,
                    trades_executed=trades_executed,
                    current_date=day,
                ))
            self._checkpoint()

        trades = ledger.get_trade_log()
        curve = ledger.get_equity_curve()
        metrics = calculate_metrics(trades, curve, cfg.initial_capital)

        logger.info(
            "Backtest %s completed: %d trades, total return %.2f",
            cfg.id, len(trades), metrics.total_return,
        )
        return BacktestResult(
            id=cfg.id,
            config=cfg,
            status=BacktestStatus.COMPLETED,
            created_at=created_at,
            completed_at=_now(),
            metrics=metrics,
            trades=tuple(trades),
            equity_curve=tuple(curve),
        )
