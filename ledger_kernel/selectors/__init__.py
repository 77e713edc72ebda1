"""Read-only selectors over the journal and the projected ledger."""

from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["BaseSelector", "JournalSelector", "LedgerSelector"]
