"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects representing report outputs: trial
balance, profit and loss (plain and comparative), balance sheet (plain and
comparative) and the indirect cash flow statement.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``statements.py`` and returned to callers by ``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``is_balanced`` / ``reconciles`` flags use the one-cent tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReportType(str, Enum):
    """Types of financial reports."""

    TRIAL_BALANCE = "trial_balance"
    PROFIT_AND_LOSS = "profit_and_loss"
    COMPARATIVE_PROFIT_AND_LOSS = "comparative_profit_and_loss"
    BALANCE_SHEET = "balance_sheet"
    COMPARATIVE_BALANCE_SHEET = "comparative_balance_sheet"
    CASH_FLOW = "cash_flow"


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    tenant_id: UUID
    entity_name: str
    currency: str
    generated_at: str  # ISO timestamp from the injected clock
    as_of_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    comparative_start: date | None = None
    comparative_end: date | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLineItem:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_balance: Decimal
    credit_balance: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    lines: tuple[TrialBalanceLineItem, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool


# =========================================================================
# Shared section types
# =========================================================================


@dataclass(frozen=True)
class AccountLine:
    """One account's natural-sign amount inside a statement section."""

    account_id: UUID
    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class StatementSection:
    label: str
    lines: tuple[AccountLine, ...]
    total: Decimal


# =========================================================================
# Profit and Loss
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLossReport:
    metadata: ReportMetadata
    revenue: StatementSection
    cost_of_goods_sold: StatementSection
    operating_expenses: StatementSection
    other_expenses: StatementSection
    total_revenue: Decimal
    total_expenses: Decimal
    gross_profit: Decimal
    operating_profit: Decimal
    net_profit: Decimal


@dataclass(frozen=True)
class VarianceLine:
    """Current vs previous value of one line or total."""

    label: str
    current: Decimal
    previous: Decimal
    variance: Decimal
    variance_percent: Decimal
    account_id: UUID | None = None
    account_code: str | None = None


@dataclass(frozen=True)
class ComparativeSection:
    label: str
    lines: tuple[VarianceLine, ...]
    total: VarianceLine


@dataclass(frozen=True)
class ComparativeProfitAndLossReport:
    metadata: ReportMetadata
    current: ProfitAndLossReport
    previous: ProfitAndLossReport
    revenue: ComparativeSection
    cost_of_goods_sold: ComparativeSection
    operating_expenses: ComparativeSection
    other_expenses: ComparativeSection
    gross_profit: VarianceLine
    operating_profit: VarianceLine
    net_profit: VarianceLine


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class EquitySection:
    """
    Equity lines plus the two synthetic earnings lines.

    ``lines`` excludes the retained and current-year earnings accounts;
    their balances are carried in ``retained_earnings`` together with the
    earnings of fiscal years not yet closed into them.
    """

    lines: tuple[AccountLine, ...]
    retained_earnings: Decimal
    current_year_earnings: Decimal
    total: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    metadata: ReportMetadata
    current_assets: StatementSection
    fixed_assets: StatementSection
    current_liabilities: StatementSection
    non_current_liabilities: StatementSection
    equity: EquitySection
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class ComparativeBalanceSheetReport:
    metadata: ReportMetadata
    current: BalanceSheetReport
    previous: BalanceSheetReport
    totals: tuple[VarianceLine, ...]

    def total(self, label: str) -> VarianceLine:
        for line in self.totals:
            if line.label == label:
                return line
        raise KeyError(label)


# =========================================================================
# Cash Flow Statement (indirect method)
# =========================================================================


@dataclass(frozen=True)
class CashFlowLineItem:
    description: str
    amount: Decimal
    account_code: str | None = None


@dataclass(frozen=True)
class CashFlowSection:
    label: str
    lines: tuple[CashFlowLineItem, ...]
    total: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    metadata: ReportMetadata
    net_income: Decimal
    non_cash_adjustments: CashFlowSection
    working_capital_changes: CashFlowSection
    net_cash_from_operations: Decimal
    investing_activities: CashFlowSection
    net_cash_from_investing: Decimal
    financing_activities: CashFlowSection
    net_cash_from_financing: Decimal
    net_change_in_cash: Decimal
    beginning_cash: Decimal
    ending_cash: Decimal
    reconciles: bool
