"""
Simulated execution: Order -> Trade against a per-run ledger.
Single writer per run. No live capital.
"""

from execution.ledger import BacktestLedger
from execution.models import (
    EquityPoint,
    Executed,
    ExecutionResult,
    Lot,
    Position,
    Rejected,
    RejectReason,
    Trade,
)

__all__ = [
    "BacktestLedger",
    "EquityPoint",
    "Executed",
    "ExecutionResult",
    "Lot",
    "Position",
    "RejectReason",
    "Rejected",
    "Trade",
]
