"""
Pure domain layer.

Value objects, money arithmetic and the clock abstraction, with no
dependency on the ORM, the database or I/O.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountActivity,
    AccountBalanceSnapshot,
    AccountDiscrepancy,
    AccountingPeriodInfo,
    AccountNode,
    AccountSpec,
    GeneralLedger,
    GeneralLedgerLine,
    LineSpec,
    RebuildResult,
    ReconciliationReport,
    ReversalResult,
    TrialBalanceTotals,
    YearEndCloseResult,
)
from ledger_kernel.domain.money import (
    TOLERANCE,
    ZERO,
    allocate,
    amounts_equal,
    format_money,
    is_effectively_zero,
    percent_change,
    round_money,
    signed_amount,
    to_decimal,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AccountActivity",
    "AccountBalanceSnapshot",
    "AccountDiscrepancy",
    "AccountingPeriodInfo",
    "AccountNode",
    "AccountSpec",
    "GeneralLedger",
    "GeneralLedgerLine",
    "LineSpec",
    "RebuildResult",
    "ReconciliationReport",
    "ReversalResult",
    "TrialBalanceTotals",
    "YearEndCloseResult",
    "TOLERANCE",
    "ZERO",
    "allocate",
    "amounts_equal",
    "format_money",
    "is_effectively_zero",
    "percent_change",
    "round_money",
    "signed_amount",
    "to_decimal",
]
