"""
JournalEntryService -- create, post and reverse balanced journal entries.

Responsibility:
    Validates and persists draft entries, posts them (period check, status
    flip, balance cache, ledger projection) and reverses posted entries with
    a mirror entry.  Posting is the single write-through path from the
    journal to the derived tables.

Architecture position:
    Kernel > Services -- imperative shell.
    Uses SequenceService (numbering), AccountingPeriodService (posting
    control), AccountBalanceService (monthly cache) and LedgerProjector.

Invariants enforced:
    - Every stored entry has sum(debits) == sum(credits) exactly, at least
      one line, and lines with exactly one positive, two-place side.
    - Lines reference live, active, non-header accounts of the same tenant.
    - Entry numbers come from a locked counter row per tenant and year;
      the unique (tenant_id, entry_number) constraint is the backstop.
    - DRAFT -> POSTED and POSTED -> REVERSED are conditional UPDATEs on the
      expected status: of two concurrent posts (or reversals) exactly one
      wins, the other gets ConcurrentPostingError / EntryAlreadyReversedError.
    - Posting, balance-cache update and projection happen in one
      transaction; nothing else writes ledger rows except rebuild.

Failure modes:
    - EmptyEntryError, InvalidLineAmountError, UnbalancedEntryError,
      AccountNotFoundError, AccountInactiveError, HeaderAccountPostingError
      on create / update_draft.
    - EntryNotFoundError, EntryNotDraftError, ClosedPeriodError,
      PeriodLockedError, ConcurrentPostingError on post.
    - EntryNotPostedError, EntryAlreadyReversedError on reverse.
    - DuplicateEntryNumberError (retryable) if the unique constraint fires.

Audit relevance:
    created_by_id, posted_by_id/posted_at and updated_by_id record the
    actors; reversal links are kept in both directions.  Create, post and
    reverse are logged at INFO, rejections at WARNING.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.locks import advisory_xact_lock, period_scope
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec, ReversalResult
from ledger_kernel.domain.money import ZERO, format_money, has_money_precision, signed_amount, to_decimal
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    ConcurrentPostingError,
    DuplicateEntryNumberError,
    EmptyEntryError,
    EntryAlreadyReversedError,
    EntryNotDraftError,
    EntryNotFoundError,
    EntryNotPostedError,
    HeaderAccountPostingError,
    InvalidLineAmountError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    SourceType,
)
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.balance_service import AccountBalanceService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_projector import LedgerProjector
from ledger_kernel.services.period_service import AccountingPeriodService
from ledger_kernel.services.sequence_service import (
    SequenceService,
    entry_number_counter,
    entry_seq_counter,
)

logger = get_logger("services.journal")


def _status(value) -> str:
    return getattr(value, "value", value)


class JournalEntryService(BaseService):
    """
    Journal entry engine for one tenant.

    Contract:
        Accepts ``LineSpec`` lists and entry ids; returns ORM entries (or a
        ``ReversalResult``).  Flushes only.

    Guarantees:
        - A rejected create/update writes nothing.
        - post_entry() either completes every step (status, cache,
          projection) or raises; the caller's rollback discards partial work.

    Non-goals:
        - Does NOT commit.
        - Does NOT decide which documents produce entries; callers pass
          ``source_type`` / ``source_id``.
    """

    def __init__(
        self,
        session: Session,
        tenant_id: UUID,
        clock: Clock | None = None,
        period_service: AccountingPeriodService | None = None,
        projector: LedgerProjector | None = None,
        balances: AccountBalanceService | None = None,
    ):
        super().__init__(session, tenant_id, clock)
        self._sequences = SequenceService(session)
        self._periods = period_service or AccountingPeriodService(session, tenant_id, self.clock)
        self._projector = projector or LedgerProjector(session, tenant_id, self.clock)
        self._balances = balances or AccountBalanceService(session, tenant_id, self.clock)
        self._journal = JournalSelector(session, tenant_id)

    # Numbering

    def generate_entry_number(self) -> str:
        """``JE-{year}-{n:05d}`` with the year taken from the injected clock."""
        year = self.clock.now().year
        n = self._sequences.next_value(entry_number_counter(self.tenant_id, year))
        return f"JE-{year}-{n:05d}"

    # Validation

    def _validate_lines(self, lines: Sequence[LineSpec]) -> tuple[Decimal, Decimal]:
        if not lines:
            logger.warning("journal_entry_rejected_empty")
            raise EmptyEntryError()

        total_debit = ZERO
        total_credit = ZERO
        for number, line in enumerate(lines, start=1):
            debit = to_decimal(line.debit)
            credit = to_decimal(line.credit)
            reason = None
            if debit < 0 or credit < 0:
                reason = "amounts must not be negative"
            elif not has_money_precision(debit) or not has_money_precision(credit):
                reason = "amounts must have at most two decimal places"
            elif debit > 0 and credit > 0:
                reason = "a line cannot carry both a debit and a credit"
            elif debit == 0 and credit == 0:
                reason = "a line must carry either a debit or a credit"
            if reason is not None:
                logger.warning(
                    "journal_entry_rejected_line",
                    extra={"line_number": number, "reason": reason},
                )
                raise InvalidLineAmountError(number, reason)
            total_debit += debit
            total_credit += credit

        if total_debit != total_credit:
            logger.warning(
                "journal_entry_rejected_unbalanced",
                extra={
                    "total_debit": format_money(total_debit),
                    "total_credit": format_money(total_credit),
                },
            )
            raise UnbalancedEntryError(format_money(total_debit), format_money(total_credit))
        return total_debit, total_credit

    def _validate_accounts(self, lines: Sequence[LineSpec]) -> dict[UUID, Account]:
        ids = {line.account_id for line in lines}
        found = {
            a.id: a
            for a in self.session.execute(
                select(Account).where(
                    Account.tenant_id == self.tenant_id,
                    Account.id.in_(list(ids)),
                    Account.deleted_at.is_(None),
                )
            ).scalars()
        }
        missing = [str(i) for i in ids if i not in found]
        if missing:
            logger.warning("journal_entry_rejected_accounts", extra={"missing": sorted(missing)})
            raise AccountNotFoundError(sorted(missing))

        headers = sorted(a.code for a in found.values() if a.is_header)
        if headers:
            logger.warning("journal_entry_rejected_header_accounts", extra={"account_codes": headers})
            raise HeaderAccountPostingError(headers)

        inactive = sorted(a.code for a in found.values() if not a.is_active)
        if inactive:
            logger.warning("journal_entry_rejected_inactive_accounts", extra={"account_codes": inactive})
            raise AccountInactiveError(inactive)
        return found

    def _build_lines(self, lines: Sequence[LineSpec]) -> list[JournalEntryLine]:
        return [
            JournalEntryLine(
                id=uuid4(),
                account_id=line.account_id,
                line_number=number,
                debit_amount=to_decimal(line.debit),
                credit_amount=to_decimal(line.credit),
                sst_tax_code=line.sst_tax_code,
                tax_amount=line.tax_amount,
                description=line.description,
            )
            for number, line in enumerate(lines, start=1)
        ]

    # Create

    def create_entry(
        self,
        entry_date: date,
        description: str,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        reference: str | None = None,
        source_type: SourceType | str = SourceType.MANUAL,
        source_id: str | None = None,
        reversed_entry_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Validate and persist a DRAFT entry with numbered lines.

        Raises:
            EmptyEntryError, InvalidLineAmountError, UnbalancedEntryError,
            AccountNotFoundError, HeaderAccountPostingError,
            AccountInactiveError, DuplicateEntryNumberError.
        """
        if not description or not description.strip():
            raise ValueError("Journal entry description is required")
        lines = list(lines)
        total_debit, total_credit = self._validate_lines(lines)
        self._validate_accounts(lines)

        entry_number = self.generate_entry_number()
        entry = JournalEntry(
            id=uuid4(),
            tenant_id=self.tenant_id,
            entry_number=entry_number,
            seq=self._sequences.next_value(entry_seq_counter(self.tenant_id)),
            entry_date=entry_date,
            description=description.strip(),
            reference=reference,
            status=JournalEntryStatus.DRAFT.value,
            source_type=SourceType(_status(source_type)).value,
            source_id=source_id,
            total_debit=total_debit,
            total_credit=total_credit,
            reversed_entry_id=reversed_entry_id,
            created_by_id=actor_id,
        )
        entry.lines = self._build_lines(lines)

        savepoint = self.session.begin_nested()
        try:
            self.session.add(entry)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning("journal_entry_number_conflict", extra={"entry_number": entry_number})
            raise DuplicateEntryNumberError(entry_number) from None

        logger.info(
            "journal_entry_created",
            extra={
                "tenant_id": str(self.tenant_id),
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "entry_date": str(entry_date),
                "line_count": len(lines),
                "total": format_money(total_debit),
                "source_type": entry.source_type,
            },
        )
        return entry

    # Reads

    def get_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self._journal.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def get_account_balance(self, account_id: UUID, as_of: date | None = None) -> Decimal:
        """
        Opening balance plus signed lines of booked entries dated on or
        before ``as_of``, computed from the journal itself.
        """
        account = self.session.execute(
            select(Account).where(Account.id == account_id, Account.tenant_id == self.tenant_id)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        debit, credit = self._journal.booked_activity(account_id=account_id, as_of=as_of).get(
            account_id, (ZERO, ZERO)
        )
        return to_decimal(account.opening_balance) + signed_amount(debit, credit, account.normal_balance)

    # Draft maintenance

    def _require_draft(self, entry: JournalEntry, action: str) -> None:
        if _status(entry.status) != JournalEntryStatus.DRAFT.value:
            logger.warning(
                "journal_entry_not_draft",
                extra={"entry_number": entry.entry_number, "status": _status(entry.status), "action": action},
            )
            raise EntryNotDraftError(str(entry.id), _status(entry.status), action=action)

    def update_draft(
        self,
        entry_id: UUID,
        actor_id: UUID,
        entry_date: date | None = None,
        description: str | None = None,
        reference: str | None = None,
        lines: Sequence[LineSpec] | None = None,
    ) -> JournalEntry:
        """Replace fields and/or lines of a draft, with the create-time validations."""
        entry = self.get_entry(entry_id)
        self._require_draft(entry, "update")

        if lines is not None:
            lines = list(lines)
            total_debit, total_credit = self._validate_lines(lines)
            self._validate_accounts(lines)
            entry.lines.clear()
            self.session.flush()
            entry.lines.extend(self._build_lines(lines))
            entry.total_debit = total_debit
            entry.total_credit = total_credit
        if description is not None:
            if not description.strip():
                raise ValueError("Journal entry description is required")
            entry.description = description.strip()
        if entry_date is not None:
            entry.entry_date = entry_date
        if reference is not None:
            entry.reference = reference
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_entry_updated",
            extra={"entry_id": str(entry.id), "entry_number": entry.entry_number},
        )
        return entry

    def delete_draft(self, entry_id: UUID, actor_id: UUID) -> None:
        entry = self.get_entry(entry_id)
        self._require_draft(entry, "delete")
        entry_number = entry.entry_number
        self.session.delete(entry)
        self.session.flush()
        logger.info(
            "journal_entry_deleted",
            extra={"entry_id": str(entry_id), "entry_number": entry_number, "actor_id": str(actor_id)},
        )

    # Post

    def post_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        allow_closed_period: bool = False,
    ) -> JournalEntry:
        """
        Post a draft.

        Steps, all in the caller's transaction:
            1. period check under the shared period advisory lock;
            2. conditional DRAFT -> POSTED update stamping posted_at/by;
            3. monthly balance cache for every line;
            4. ledger projection.

        Args:
            allow_closed_period: admit CLOSED/CLOSING months; used only by
                the year-end closing entry.

        Raises:
            EntryNotFoundError, EntryNotDraftError, ClosedPeriodError,
            PeriodLockedError, ConcurrentPostingError.
        """
        entry = self.get_entry(entry_id)
        self._require_draft(entry, "post")

        with LogContext.bind(entry_id=str(entry.id)):
            advisory_xact_lock(
                self.session,
                period_scope(self.tenant_id, entry.entry_date.year, entry.entry_date.month),
                shared=True,
            )
            self._periods.assert_can_post(entry.entry_date, allow_closed=allow_closed_period)

            posted_at = self.clock.now()
            result = self.session.execute(
                update(JournalEntry)
                .where(
                    JournalEntry.id == entry.id,
                    JournalEntry.tenant_id == self.tenant_id,
                    JournalEntry.status == JournalEntryStatus.DRAFT.value,
                )
                .values(
                    status=JournalEntryStatus.POSTED.value,
                    posted_at=posted_at,
                    posted_by_id=actor_id,
                    updated_by_id=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    "journal_entry_concurrent_post",
                    extra={"entry_number": entry.entry_number},
                )
                raise ConcurrentPostingError(str(entry.id), JournalEntryStatus.DRAFT.value)
            self.session.refresh(entry)

            accounts = {
                a.id: a
                for a in self.session.execute(
                    select(Account).where(
                        Account.tenant_id == self.tenant_id,
                        Account.id.in_(list({line.account_id for line in entry.lines})),
                    )
                ).scalars()
            }
            for line in entry.lines:
                self._balances.apply_line(
                    accounts[line.account_id],
                    entry.entry_date,
                    to_decimal(line.debit_amount),
                    to_decimal(line.credit_amount),
                )

            rows = self._projector.project(entry.id)

        logger.info(
            "journal_entry_posted",
            extra={
                "tenant_id": str(self.tenant_id),
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "entry_date": str(entry.entry_date),
                "total": format_money(to_decimal(entry.total_debit)),
                "ledger_rows": rows,
                "actor_id": str(actor_id),
            },
        )
        return entry

    # Reverse

    def reverse_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        reversal_date: date,
        description: str | None = None,
    ) -> ReversalResult:
        """
        Reverse a posted entry with a mirror entry dated ``reversal_date``.

        The original becomes REVERSED (conditional update, so only one of
        two concurrent reversals succeeds) and stays in the books; the
        reversal is posted and offsets it.

        Raises:
            EntryNotFoundError, EntryNotPostedError,
            EntryAlreadyReversedError, plus anything post_entry() raises
            for the reversal date.
        """
        original = self.get_entry(entry_id)
        status = _status(original.status)
        if status == JournalEntryStatus.REVERSED.value:
            logger.warning("journal_entry_already_reversed", extra={"entry_number": original.entry_number})
            raise EntryAlreadyReversedError(
                str(original.id),
                str(original.reversal_entry_id) if original.reversal_entry_id else None,
            )
        if status != JournalEntryStatus.POSTED.value:
            logger.warning(
                "journal_entry_reverse_rejected",
                extra={"entry_number": original.entry_number, "status": status},
            )
            raise EntryNotPostedError(str(original.id), status)

        self._periods.assert_can_post(reversal_date)

        lines = [
            LineSpec(
                account_id=line.account_id,
                debit=line.credit_amount,
                credit=line.debit_amount,
                description=line.description,
                sst_tax_code=line.sst_tax_code,
                tax_amount=line.tax_amount,
            )
            for line in original.lines
        ]
        reversal = self.create_entry(
            entry_date=reversal_date,
            description=description or f"Reversal of {original.entry_number}: {original.description}",
            lines=lines,
            actor_id=actor_id,
            reference=original.reference,
            source_type=original.source_type,
            source_id=original.source_id,
            reversed_entry_id=original.id,
        )

        result = self.session.execute(
            update(JournalEntry)
            .where(
                JournalEntry.id == original.id,
                JournalEntry.tenant_id == self.tenant_id,
                JournalEntry.status == JournalEntryStatus.POSTED.value,
            )
            .values(
                status=JournalEntryStatus.REVERSED.value,
                reversal_entry_id=reversal.id,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("journal_entry_concurrent_reverse", extra={"entry_number": original.entry_number})
            raise EntryAlreadyReversedError(str(original.id))
        self.session.refresh(original)

        self.post_entry(reversal.id, actor_id)

        logger.info(
            "journal_entry_reversed",
            extra={
                "tenant_id": str(self.tenant_id),
                "original_entry_number": original.entry_number,
                "reversal_entry_number": reversal.entry_number,
                "reversal_date": str(reversal_date),
                "actor_id": str(actor_id),
            },
        )
        return ReversalResult(
            original_entry_id=original.id,
            original_entry_number=original.entry_number,
            reversal_entry_id=reversal.id,
            reversal_entry_number=reversal.entry_number,
        )
