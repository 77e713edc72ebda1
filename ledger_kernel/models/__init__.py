"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import (
    DEFAULT_NORMAL_BALANCE,
    Account,
    AccountSubType,
    AccountType,
    NormalBalance,
    SstTaxCode,
)
from ledger_kernel.models.account_balance import AccountBalance
from ledger_kernel.models.accounting_period import AccountingPeriod, PeriodStatus
from ledger_kernel.models.journal import (
    BOOKED_STATUSES,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    SourceType,
)
from ledger_kernel.models.ledger import LedgerTransaction, ledger_transaction_id

__all__ = [
    "Account",
    "AccountType",
    "AccountSubType",
    "NormalBalance",
    "SstTaxCode",
    "DEFAULT_NORMAL_BALANCE",
    "AccountBalance",
    "AccountingPeriod",
    "PeriodStatus",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "SourceType",
    "BOOKED_STATUSES",
    "LedgerTransaction",
    "ledger_transaction_id",
]
