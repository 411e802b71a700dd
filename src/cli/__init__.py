"""Command line: backtest runs, config checks, terminal and structured output."""
