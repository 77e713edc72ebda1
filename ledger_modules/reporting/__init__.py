"""
Financial Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Read-only module that generates reports from the projected ledger: trial
balance, profit and loss (with a comparative variant), classified balance
sheet (with a comparative variant) and the indirect-method cash flow
statement.

Architecture position
---------------------
**Modules layer**.  Statement logic lives in pure functions
(``statements.py``); ``ReportingService`` only loads per-account activity
and metadata.

Invariants enforced
-------------------
* No journal entries are created by this module.
* "Balanced" and "reconciles" checks use the one-cent tolerance.
"""

from ledger_modules.reporting.config import (
    AccountClassification,
    CodeRange,
    ReportingConfig,
)
from ledger_modules.reporting.models import (
    AccountLine,
    BalanceSheetReport,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    ComparativeBalanceSheetReport,
    ComparativeProfitAndLossReport,
    ComparativeSection,
    EquitySection,
    ProfitAndLossReport,
    ReportMetadata,
    ReportType,
    StatementSection,
    TrialBalanceLineItem,
    TrialBalanceReport,
    VarianceLine,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    "AccountClassification",
    "AccountLine",
    "BalanceSheetReport",
    "CashFlowLineItem",
    "CashFlowSection",
    "CashFlowStatementReport",
    "CodeRange",
    "ComparativeBalanceSheetReport",
    "ComparativeProfitAndLossReport",
    "ComparativeSection",
    "EquitySection",
    "ProfitAndLossReport",
    "ReportMetadata",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "StatementSection",
    "TrialBalanceLineItem",
    "TrialBalanceReport",
    "VarianceLine",
    "render_to_dict",
]
