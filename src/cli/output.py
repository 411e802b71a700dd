"""
Human-readable backtest output for the terminal.

Every trade carries its rationale so the run can be audited from the
summary alone. Journal receives the same data.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from backtest.metrics import RATIO_CAP

if TYPE_CHECKING:
    from backtest.metrics import BaseMetrics
    from backtest.runner import BacktestResult
    from config.backtest_config import BacktestConfig


def _fmt_ratio(value: float) -> str:
    # RATIO_CAP stands in for a zero denominator, i.e. nothing on the losing side
    if value == RATIO_CAP:
        return f"{RATIO_CAP:.2f} (no losses)"
    return f"{value:.2f}"


def format_config(cfg: BacktestConfig) -> str:
    limits = cfg.risk_limits
    lines = [
        f"=== Run config: {cfg.id} ===",
        f"Symbols      : {', '.join(cfg.symbols)}",
        f"Period       : {cfg.start_date} -> {cfg.end_date} ({cfg.timeframe})",
        f"Capital      : ${cfg.initial_capital:,.2f}",
        f"Thresholds   : severity>={cfg.severity_threshold.value}  confidence>={cfg.confidence_threshold:.2f}",
        f"Sizing       : {cfg.trade_sizing_strategy} (default qty {cfg.default_qty})",
        f"Risk limits  : position<=${limits.max_position_size:,.0f}  exposure<=${limits.max_exposure:,.0f}"
        f"  daily trades<{limits.max_daily_trades}  cooldown {limits.cooldown_ms}ms",
        "===",
    ]
    return "\n".join(lines)


def format_metrics(m: BaseMetrics, indent: str = "") -> list[str]:
    return [
        f"{indent}Return       : ${m.total_return:+,.2f} ({m.total_return_pct:+.2f}%)",
        f"{indent}Trades       : {m.total_trades} closed | win rate {m.win_rate:.1%}",
        f"{indent}Profit factor: {_fmt_ratio(m.profit_factor)} | avg win/loss {_fmt_ratio(m.avg_win_loss_ratio)}",
        f"{indent}Largest      : win ${m.largest_win:+,.2f} / loss ${m.largest_loss:+,.2f}",
        f"{indent}Streaks      : {m.max_consecutive_wins} wins / {m.max_consecutive_losses} losses",
        f"{indent}Sharpe       : {m.sharpe_ratio:.2f} | Sortino {m.sortino_ratio:.2f}",
        f"{indent}Max drawdown : {m.max_drawdown_pct:.2f}% over {m.max_drawdown_duration} day(s)"
        f" | recovery {m.recovery_factor:.2f}",
        f"{indent}Avg hold     : {m.avg_trade_duration:.1f}h",
    ]


def format_backtest_summary(result: BacktestResult, *, show_trades: bool = True) -> str:
    """Format backtest result summary."""
    cfg = result.config
    lines = [
        f"=== Backtest: {cfg.id} [{result.status.value}] ===",
        f"Symbols      : {', '.join(cfg.symbols)} {cfg.timeframe}",
        f"Period       : {cfg.start_date} -> {cfg.end_date}",
        f"Initial cash : ${cfg.initial_capital:,.2f}",
    ]
    if result.error:
        lines.append(f"Error        : {result.error}")

    if result.equity_curve:
        lines.append(f"Final equity : ${result.equity_curve[-1].value:,.2f}")

    m = result.metrics
    if m is not None:
        lines.extend(format_metrics(m))
        if m.monthly_returns:
            lines.append("")
            lines.append("--- Monthly Returns ---")
            for mr in m.monthly_returns:
                lines.append(f"  {mr.month}  {mr.return_pct:+.2f}%")
        if m.per_symbol:
            lines.append("")
            lines.append("--- Per Symbol ---")
            for symbol, sm in m.per_symbol.items():
                lines.append(f"  {symbol}")
                lines.extend(format_metrics(sm, indent="    ")[:4])

    if show_trades and result.trades:
        lines.append("")
        for i, t in enumerate(result.trades, 1):
            pnl = "" if t.realized_pnl is None else f" | PnL ${t.realized_pnl:+.2f}"
            lines.append(
                f"  Trade #{i}: {t.side.value.upper()} {t.qty:g} {t.symbol} @ {t.fill_price:.2f}"
                f"  {t.timestamp.isoformat()}{pnl}"
            )
            lines.append(f"            Rationale: {t.rationale}")
    lines.append("===")
    return "\n".join(lines)
