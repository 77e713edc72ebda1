"""Write-side services of the ledger kernel."""

from ledger_kernel.services.account_service import ChartOfAccountsService
from ledger_kernel.services.balance_service import AccountBalanceService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalEntryService
from ledger_kernel.services.ledger_projector import LedgerProjector
from ledger_kernel.services.period_service import AccountingPeriodService
from ledger_kernel.services.reconciliation_service import ReconciliationService
from ledger_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AccountBalanceService",
    "AccountingPeriodService",
    "BaseService",
    "ChartOfAccountsService",
    "JournalEntryService",
    "LedgerProjector",
    "ReconciliationService",
    "SequenceCounter",
    "SequenceService",
]
