"""
CLI entry point: backtester backtest | check-config.

Every command loads app config from --config (default config.yaml),
resolves the run config it points at, prints a human-readable summary,
and logs to journal.
"""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from config import BacktestConfigError, load_backtest_config, load_config

load_dotenv()

logger = logging.getLogger("backtester")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _run_overrides(symbols: str | None, start: str | None, end: str | None) -> dict:
    overrides: dict = {}
    if symbols:
        overrides["symbols"] = [s.strip().upper() for s in symbols.split(",") if s.strip()]
    if start:
        overrides["start_date"] = start
    if end:
        overrides["end_date"] = end
    return overrides


def _load_run_config(app_cfg, run_config_path: str | None, overrides: dict | None = None):
    path = run_config_path or app_cfg.run_config
    return load_backtest_config(path, overrides=overrides or None)


def _build_fetcher(app_cfg):
    if app_cfg.data.source == "alpaca":
        from data import get_alpaca_fetcher

        return get_alpaca_fetcher(app_cfg.data.api_key, app_cfg.data.api_secret, feed=app_cfg.data.feed)
    if app_cfg.data.source == "csv":
        from data import CsvTickFetcher

        return CsvTickFetcher(app_cfg.data.csv_path)
    raise click.ClickException(f"Unknown data source: {app_cfg.data.source!r} (expected csv or alpaca)")


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """anomaly-backtester: replay historical ticks through anomaly-driven trading."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- backtester backtest ----------


@cli.command()
@click.option("--run-config", "run_config_path", default=None, help="Run config JSON (overrides run_config in config.yaml).")
@click.option("--symbols", default=None, help="Comma-separated symbols, e.g. AAPL,MSFT.")
@click.option("--start", "start_str", default=None, help="Start date (YYYY-MM-DD).")
@click.option("--end", "end_str", default=None, help="End date (YYYY-MM-DD).")
@click.option("--out", "out_path", default=None, type=click.Path(dir_okay=False), help="Write the full result as JSON.")
@click.option("--no-trades", is_flag=True, default=False, help="Omit the per-trade listing from the summary.")
@click.pass_context
def backtest(
    ctx: click.Context,
    run_config_path: str | None,
    symbols: str | None,
    start_str: str | None,
    end_str: str | None,
    out_path: str | None,
    no_trades: bool,
) -> None:
    """Run a backtest and show the rationale for each trade."""
    try:
        app_cfg = load_config(ctx.obj["config_path"])
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))
    try:
        run_cfg = _load_run_config(app_cfg, run_config_path, _run_overrides(symbols, start_str, end_str))
    except BacktestConfigError as e:
        raise click.ClickException(str(e))

    from anomaly_core.pre_screener import ZScoreAnalyzer
    from backtest import BacktestDeps, BacktestEngine, BacktestStatus
    from cli.output import format_backtest_summary
    from cli.structured_log import StructuredEventLogger
    from journal import JournalWriter, export_result

    fetcher = _build_fetcher(app_cfg)
    analyzer = ZScoreAnalyzer(app_cfg.analysis, session_id=run_cfg.id)
    journal = JournalWriter(app_cfg.journal.path, echo_stdout=app_cfg.journal.echo_stdout)
    events = StructuredEventLogger(
        run_cfg.id,
        enabled=app_cfg.alerting.structured_logs,
        webhook_url=app_cfg.alerting.webhook_url,
    )

    def on_progress(progress) -> None:
        journal.progress(progress)
        events.progress(
            progress.current_date,
            progress.ticks_processed,
            progress.total_ticks,
            progress.trades_executed,
        )

    def on_trade(trade) -> None:
        journal.trade(trade)
        events.trade_executed(trade.symbol, trade.side.value, trade.qty, trade.fill_price, trade.realized_pnl)

    def on_reject(order, reasons) -> None:
        journal.rejection(order.symbol, order.side.value, list(reasons), order.anomaly_id)
        events.order_rejected(",".join(reasons))

    engine = BacktestEngine(
        run_cfg,
        BacktestDeps(fetch_data=fetcher.fetch_data, run_analysis=analyzer),
        on_progress=on_progress,
        on_trade=on_trade,
        on_reject=on_reject,
    )

    click.echo(
        f"Running backtest {run_cfg.id}: {', '.join(run_cfg.symbols)} {run_cfg.timeframe}"
        f" {run_cfg.start_date} -> {run_cfg.end_date} ({app_cfg.data.source}) ..."
    )
    events.run_start(list(run_cfg.symbols), run_cfg.start_date, run_cfg.end_date)
    result = asyncio.run(engine.run())
    logger.info("Backtest %s finished: %s", run_cfg.id, result.status.value)

    journal.result(result)
    if result.status == BacktestStatus.FAILED:
        events.error("backtest failed", result.error or "")
    events.run_complete(
        result.status.value,
        len(result.trades),
        result.metrics.total_return_pct if result.metrics else None,
    )

    click.echo(format_backtest_summary(result, show_trades=not no_trades))
    if out_path:
        written = export_result(result, out_path)
        click.echo(f"Result written to {written}")

    if result.status == BacktestStatus.FAILED:
        raise SystemExit(1)


# ---------- backtester check-config ----------


@cli.command("check-config")
@click.option("--run-config", "run_config_path", default=None, help="Run config JSON (overrides run_config in config.yaml).")
@click.pass_context
def check_config(ctx: click.Context, run_config_path: str | None) -> None:
    """Validate the app and run config and print the resolved run parameters.

    Exit code 0 = valid, 1 = invalid.
    """
    from cli.output import format_config

    try:
        app_cfg = load_config(ctx.obj["config_path"])
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"  [FAIL] config: {e}")
        raise SystemExit(1)
    click.echo(f"  [OK] config: {Path(ctx.obj['config_path'])} (data source {app_cfg.data.source})")

    try:
        run_cfg = _load_run_config(app_cfg, run_config_path)
    except BacktestConfigError as e:
        click.echo(f"  [FAIL] run config: {e}")
        raise SystemExit(1)
    click.echo("  [OK] run config: validated")
    click.echo(format_config(run_cfg))


if __name__ == "__main__":
    cli()
