"""
DTOs -- immutable data structures crossing the service boundary.

Responsibility:
    Defines the value objects that callers hand to services (LineSpec,
    AccountSpec) and the results services and selectors hand back
    (ReversalResult, RebuildResult, AccountingPeriodInfo, AccountActivity,
    GeneralLedger, ReconciliationReport, ...).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from services and selectors.

Invariants enforced:
    - Monetary fields are ``Decimal``; floats are rejected on construction
      (``to_decimal`` raises ``TypeError``).
    - Every DTO is frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.money import ZERO, TOLERANCE, signed_amount, to_decimal

if TYPE_CHECKING:
    from ledger_kernel.models.account_balance import AccountBalance as AccountBalanceModel
    from ledger_kernel.models.accounting_period import AccountingPeriod as AccountingPeriodModel


def _enum_value(value):
    return getattr(value, "value", value)


# Journal input


@dataclass(frozen=True)
class LineSpec:
    """
    One debit or credit leg handed to JournalEntryService.

    Contract:
        Exactly one of ``debit`` / ``credit`` should be positive; the service
        rejects anything else with ``InvalidLineAmountError`` so that the
        caller learns which line number is wrong.  Amounts are normalised to
        ``Decimal`` here but not validated.
    """

    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    sst_tax_code: str | None = None
    tax_amount: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))
        if self.tax_amount is not None:
            object.__setattr__(self, "tax_amount", to_decimal(self.tax_amount))
        if self.sst_tax_code is not None:
            object.__setattr__(self, "sst_tax_code", _enum_value(self.sst_tax_code))

    @classmethod
    def debit_line(
        cls,
        account_id: UUID,
        amount: Decimal | int | str,
        description: str | None = None,
        **kwargs,
    ) -> LineSpec:
        return cls(account_id=account_id, debit=amount, description=description, **kwargs)

    @classmethod
    def credit_line(
        cls,
        account_id: UUID,
        amount: Decimal | int | str,
        description: str | None = None,
        **kwargs,
    ) -> LineSpec:
        return cls(account_id=account_id, credit=amount, description=description, **kwargs)

    def swapped(self) -> LineSpec:
        """The same leg on the opposite side (used by reversals)."""
        return LineSpec(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
            sst_tax_code=self.sst_tax_code,
            tax_amount=self.tax_amount,
        )


@dataclass(frozen=True)
class ReversalResult:
    original_entry_id: UUID
    original_entry_number: str
    reversal_entry_id: UUID
    reversal_entry_number: str


# Chart of accounts


@dataclass(frozen=True)
class AccountSpec:
    """
    Definition of one account, used by create_account() and chart seeding.

    ``parent_code`` is resolved against the chart being seeded (or the
    tenant's live accounts); ``parent_id`` wins when both are given.
    """

    code: str
    name: str
    account_type: str
    normal_balance: str | None = None
    parent_code: str | None = None
    parent_id: UUID | None = None
    description: str | None = None
    sub_type: str | None = None
    sst_tax_code: str | None = None
    is_header: bool = False
    is_system_account: bool = False
    is_active: bool = True
    opening_balance: Decimal = ZERO

    def __post_init__(self) -> None:
        if not self.code or not str(self.code).strip():
            raise ValueError("Account code is required")
        if not self.name or not str(self.name).strip():
            raise ValueError(f"Account {self.code}: name is required")
        object.__setattr__(self, "code", str(self.code).strip())
        object.__setattr__(self, "account_type", _enum_value(self.account_type))
        if self.normal_balance is not None:
            object.__setattr__(self, "normal_balance", _enum_value(self.normal_balance))
        if self.sub_type is not None:
            object.__setattr__(self, "sub_type", _enum_value(self.sub_type))
        if self.sst_tax_code is not None:
            object.__setattr__(self, "sst_tax_code", _enum_value(self.sst_tax_code))
        if self.parent_code is not None:
            object.__setattr__(self, "parent_code", str(self.parent_code).strip())
        object.__setattr__(self, "opening_balance", to_decimal(self.opening_balance))


@dataclass(frozen=True)
class AccountNode:
    """One node of the chart-of-accounts tree, children ordered by code."""

    id: UUID
    code: str
    name: str
    account_type: str
    level: int
    path: str
    is_header: bool
    is_active: bool
    is_system_account: bool
    children: tuple[AccountNode, ...] = ()

    def walk(self):
        """Depth-first iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()


# Ledger


@dataclass(frozen=True)
class RebuildResult:
    rows_deleted: int
    rows_created: int
    accounts_rebuilt: int
    account_id: UUID | None = None
    balance_rows_created: int = 0


@dataclass(frozen=True)
class AccountActivity:
    """
    One account's aggregated ledger movement over a date window.

    Contract:
        ``debit_total`` / ``credit_total`` cover only the window; ``balance``
        adds the account's opening balance and is meaningful for windows
        that start at the beginning of time.
    """

    account_id: UUID
    code: str
    name: str
    account_type: str
    normal_balance: str
    sub_type: str | None
    opening_balance: Decimal
    debit_total: Decimal
    credit_total: Decimal

    @property
    def movement(self) -> Decimal:
        return signed_amount(self.debit_total, self.credit_total, self.normal_balance)

    @property
    def balance(self) -> Decimal:
        return self.opening_balance + self.movement

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == "debit"


@dataclass(frozen=True)
class TrialBalanceTotals:
    as_of: date
    total_debit: Decimal
    total_credit: Decimal

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) <= TOLERANCE


@dataclass(frozen=True)
class GeneralLedgerLine:
    transaction_date: date
    entry_number: str
    journal_entry_id: UUID
    line_number: int
    description: str | None
    reference: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class GeneralLedger:
    """Per-account ledger for a date range with its opening/closing balances."""

    account_id: UUID
    account_code: str
    account_name: str
    start: date | None
    end: date | None
    opening_balance: Decimal
    lines: tuple[GeneralLedgerLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class AccountBalanceSnapshot:
    account_id: UUID
    year: int
    month: int
    opening_balance: Decimal
    period_debit: Decimal
    period_credit: Decimal
    closing_balance: Decimal
    is_stored: bool = True

    @classmethod
    def from_model(cls, model: AccountBalanceModel) -> AccountBalanceSnapshot:
        return cls(
            account_id=model.account_id,
            year=model.year,
            month=model.month,
            opening_balance=to_decimal(model.opening_balance),
            period_debit=to_decimal(model.period_debit),
            period_credit=to_decimal(model.period_credit),
            closing_balance=to_decimal(model.closing_balance),
        )


# Periods


@dataclass(frozen=True)
class AccountingPeriodInfo:
    """Read-only view of one accounting period row."""

    year: int
    month: int
    status: str
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None
    reopened_at: datetime | None = None
    reopened_by_id: UUID | None = None
    reopen_reason: str | None = None
    notes: str | None = None
    id: UUID | None = None

    @classmethod
    def from_model(cls, model: AccountingPeriodModel) -> AccountingPeriodInfo:
        return cls(
            id=model.id,
            year=model.year,
            month=model.month,
            status=_enum_value(model.status),
            closed_at=model.closed_at,
            closed_by_id=model.closed_by_id,
            reopened_at=model.reopened_at,
            reopened_by_id=model.reopened_by_id,
            reopen_reason=model.reopen_reason,
            notes=model.notes,
        )

    @property
    def period_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class YearEndCloseResult:
    fiscal_year: int
    net_income: Decimal
    closing_entry_id: UUID | None
    closing_entry_number: str | None
    periods_locked: int


# Reconciliation


@dataclass(frozen=True)
class AccountDiscrepancy:
    """Journal-implied vs ledger-projected balance for one account."""

    account_id: UUID
    account_code: str
    account_name: str
    journal_balance: Decimal
    ledger_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.ledger_balance - self.journal_balance


@dataclass(frozen=True)
class ReconciliationReport:
    """
    Outcome of comparing the journal (source of truth) with the ledger.

    Drift is reported here as data; nothing is raised and nothing is fixed.
    """

    tenant_id: UUID
    checked_at: datetime
    accounts_checked: int
    discrepancies: tuple[AccountDiscrepancy, ...] = field(default_factory=tuple)
    journal_total_debit: Decimal = ZERO
    journal_total_credit: Decimal = ZERO
    ledger_total_debit: Decimal = ZERO
    ledger_total_credit: Decimal = ZERO

    @property
    def totals_match(self) -> bool:
        return (
            self.journal_total_debit == self.ledger_total_debit
            and self.journal_total_credit == self.ledger_total_credit
        )

    @property
    def is_clean(self) -> bool:
        return not self.discrepancies and self.totals_match
