"""
Typed exception hierarchy for the ledger kernel.

Every error a caller can act on has its own class, a machine-readable
``code`` class attribute, and the relevant context stored as attributes, so
handlers catch by type and report by field instead of parsing messages.

    LedgerKernelError
    |
    +-- ValidationError              rejected before any write; fix the input
    |   +-- UnbalancedEntryError
    |   +-- EmptyEntryError
    |   +-- InvalidLineAmountError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- HeaderAccountPostingError
    |   +-- AccountInactiveError
    |   +-- DuplicateAccountCodeError
    |   +-- InvalidAccountHierarchyError
    |   +-- SystemAccountProtectedError
    |   +-- AccountHasChildrenError
    |   +-- AccountReferencedError
    |   +-- ChartAlreadySeededError
    |
    +-- JournalEntryError            state conflicts on a journal entry
    |   +-- EntryNotFoundError
    |   +-- EntryNotDraftError
    |
    +-- ReversalError
    |   +-- EntryNotPostedError
    |   +-- EntryAlreadyReversedError
    |
    +-- PeriodError
    |   +-- ClosedPeriodError
    |   +-- PeriodLockedError
    |   +-- PeriodNotClosedError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodHasDraftEntriesError
    |   +-- TrialBalanceUnbalancedError
    |   +-- YearEndAlreadyClosedError
    |
    +-- ConcurrencyError             retryable: rerun the whole operation
    |   +-- DuplicateEntryNumberError
    |   +-- ConcurrentPostingError
    |
    +-- ImmutabilityViolationError

Handling guidance:

    try:
        journal.post_entry(entry_id, actor_id)
    except ConcurrencyError:
        retry()                         # e.retryable is True
    except PeriodError as e:
        respond(409, e.code, str(e))    # pick another date or reopen
    except LedgerKernelError as e:
        respond(422, e.code, str(e))

Ledger drift found by reconciliation is data, not an exception.
"""


class LedgerKernelError(Exception):
    """Base exception for all ledger kernel errors."""

    code: str = "LEDGER_KERNEL_ERROR"
    retryable: bool = False


# Validation


class ValidationError(LedgerKernelError):
    """Input rejected before any write."""

    code: str = "VALIDATION_ERROR"


class UnbalancedEntryError(ValidationError):
    """Entry debits do not exactly equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Debits ({debits}) must equal credits ({credits})")


class EmptyEntryError(ValidationError):
    code: str = "EMPTY_ENTRY"

    def __init__(self):
        super().__init__("Journal entry must have at least one line")


class InvalidLineAmountError(ValidationError):
    """A line amount is negative, over-precise, or the debit/credit pair is invalid."""

    code: str = "INVALID_LINE_AMOUNT"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


# Accounts


class AccountError(LedgerKernelError):
    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """One or more accounts are missing, deleted, or owned by another tenant."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ids: list[str] | str):
        if isinstance(account_ids, str):
            account_ids = [account_ids]
        self.account_ids = list(account_ids)
        super().__init__(
            f"One or more accounts not found: {', '.join(self.account_ids)}"
        )


class HeaderAccountPostingError(AccountError):
    """Header (aggregation-only) accounts cannot receive postings."""

    code: str = "HEADER_ACCOUNT_POSTING"

    def __init__(self, account_codes: list[str]):
        self.account_codes = list(account_codes)
        super().__init__(
            f"Cannot post to header accounts: {', '.join(self.account_codes)}"
        )


class AccountInactiveError(AccountError):
    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_codes: list[str]):
        self.account_codes = list(account_codes)
        super().__init__(
            f"Cannot post to inactive accounts: {', '.join(self.account_codes)}"
        )


class DuplicateAccountCodeError(AccountError):
    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code {account_code} already exists")


class InvalidAccountHierarchyError(AccountError):
    """Parent link would create a cycle or points at an unknown code."""

    code: str = "INVALID_ACCOUNT_HIERARCHY"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Invalid hierarchy for account {account_code}: {reason}")


class SystemAccountProtectedError(AccountError):
    code: str = "SYSTEM_ACCOUNT_PROTECTED"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"System account {account_code} cannot be deleted")


class AccountHasChildrenError(AccountError):
    code: str = "ACCOUNT_HAS_CHILDREN"

    def __init__(self, account_code: str, child_count: int):
        self.account_code = account_code
        self.child_count = child_count
        super().__init__(
            f"Account {account_code} has {child_count} child account(s)"
        )


class AccountReferencedError(AccountError):
    """Account has journal lines; the requested change would rewrite history."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_code: str, action: str):
        self.account_code = account_code
        self.action = action
        super().__init__(
            f"Cannot {action} account {account_code}: it has journal entry lines"
        )


class ChartAlreadySeededError(AccountError):
    code: str = "CHART_ALREADY_SEEDED"

    def __init__(self, tenant_id: str, account_count: int):
        self.tenant_id = tenant_id
        self.account_count = account_count
        super().__init__(
            f"Tenant {tenant_id} already has {account_count} account(s)"
        )


# Journal entries


class JournalEntryError(LedgerKernelError):
    code: str = "JOURNAL_ENTRY_ERROR"


class EntryNotFoundError(JournalEntryError):
    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, journal_entry_id: str):
        self.journal_entry_id = journal_entry_id
        super().__init__(f"Journal entry not found: {journal_entry_id}")


class EntryNotDraftError(JournalEntryError):
    """Only draft entries can be posted, edited or deleted."""

    code: str = "ENTRY_NOT_DRAFT"

    def __init__(self, journal_entry_id: str, status: str, action: str = "post"):
        self.journal_entry_id = journal_entry_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} entry {journal_entry_id}: status is {status}, not draft"
        )


# Reversals


class ReversalError(LedgerKernelError):
    code: str = "REVERSAL_ERROR"


class EntryNotPostedError(ReversalError):
    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, journal_entry_id: str, status: str):
        self.journal_entry_id = journal_entry_id
        self.status = status
        super().__init__(
            f"Cannot reverse entry {journal_entry_id}: status is {status}, not posted"
        )


class EntryAlreadyReversedError(ReversalError):
    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, journal_entry_id: str, reversal_entry_id: str | None = None):
        self.journal_entry_id = journal_entry_id
        self.reversal_entry_id = reversal_entry_id
        super().__init__(f"Entry {journal_entry_id} has already been reversed")


# Periods


class PeriodError(LedgerKernelError):
    code: str = "PERIOD_ERROR"


class ClosedPeriodError(PeriodError):
    """Posting date falls in a closed (or closing) period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, year: int, month: int, status: str, entry_date: str | None = None):
        self.year = year
        self.month = month
        self.status = status
        self.entry_date = entry_date
        super().__init__(
            f"Cannot post to {status} period {year:04d}-{month:02d}"
            + (f" (entry date {entry_date})" if entry_date else "")
        )


class PeriodLockedError(PeriodError):
    """Locked periods are terminal: no posting, closing or reopening."""

    code: str = "PERIOD_LOCKED"

    def __init__(self, year: int, month: int, action: str = "post to"):
        self.year = year
        self.month = month
        self.action = action
        super().__init__(f"Cannot {action} locked period {year:04d}-{month:02d}")


class PeriodNotClosedError(PeriodError):
    code: str = "PERIOD_NOT_CLOSED"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Period {year:04d}-{month:02d} is already open")


class PeriodAlreadyClosedError(PeriodError):
    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Period {year:04d}-{month:02d} is already closed")


class PeriodHasDraftEntriesError(PeriodError):
    code: str = "PERIOD_HAS_DRAFT_ENTRIES"

    def __init__(self, year: int, month: int, draft_entries_count: int):
        self.year = year
        self.month = month
        self.draft_entries_count = draft_entries_count
        super().__init__(
            f"Cannot close period {year:04d}-{month:02d}: "
            f"{draft_entries_count} draft entries must be posted or deleted first"
        )


class TrialBalanceUnbalancedError(PeriodError):
    code: str = "TRIAL_BALANCE_UNBALANCED"

    def __init__(self, year: int, month: int, debits: str, credits: str):
        self.year = year
        self.month = month
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Cannot close period {year:04d}-{month:02d}: trial balance is not "
            f"balanced (debits {debits}, credits {credits})"
        )


class YearEndAlreadyClosedError(PeriodError):
    code: str = "YEAR_END_ALREADY_CLOSED"

    def __init__(self, fiscal_year: int, entry_number: str):
        self.fiscal_year = fiscal_year
        self.entry_number = entry_number
        super().__init__(
            f"Fiscal year {fiscal_year} already has closing entry {entry_number}"
        )


# Concurrency


class ConcurrencyError(LedgerKernelError):
    """Lost a race with another transaction; safe to retry the operation."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class DuplicateEntryNumberError(ConcurrencyError):
    code: str = "DUPLICATE_ENTRY_NUMBER"

    def __init__(self, entry_number: str):
        self.entry_number = entry_number
        super().__init__(f"Entry number {entry_number} was taken concurrently")


class ConcurrentPostingError(ConcurrencyError):
    """The conditional status transition matched no row."""

    code: str = "CONCURRENT_POSTING"

    def __init__(self, journal_entry_id: str, expected_status: str):
        self.journal_entry_id = journal_entry_id
        self.expected_status = expected_status
        super().__init__(
            f"Entry {journal_entry_id} is no longer {expected_status}: "
            "another transaction changed it"
        )


# Immutability


class ImmutabilityViolationError(LedgerKernelError):
    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
