"""
AccountingPeriodService -- monthly posting control and year-end close.

Responsibility:
    Decides whether a date may receive postings, drives the monthly
    lifecycle (OPEN -> CLOSING -> CLOSED, reopen back to OPEN) and performs
    the year-end close that books net income to retained earnings and locks
    the year.

Architecture position:
    Kernel > Services -- imperative shell.
    Consulted by JournalEntryService.post_entry() for every post.

Invariants enforced:
    - Postings land only in OPEN months (absent row = OPEN).  CLOSING,
      CLOSED and LOCKED refuse them; the year-end closing entry alone may
      enter CLOSED/CLOSING months, never LOCKED ones.
    - close_period() holds the period advisory lock exclusively and the row
      ``FOR UPDATE``; posting holds the same advisory lock shared, so no post
      can slip in between the close checks and the status change.
    - A LOCKED month never changes status again.
    - year_end_close() runs at most once per fiscal year: an existing
      ``YE-{year}`` closing entry rejects a second run.

Failure modes:
    - ClosedPeriodError, PeriodLockedError, PeriodNotClosedError,
      PeriodAlreadyClosedError, PeriodHasDraftEntriesError,
      TrialBalanceUnbalancedError, YearEndAlreadyClosedError,
      AccountNotFoundError (no retained earnings account), ValueError for a
      blank reopen reason or an invalid month.

Audit relevance:
    closed_at/closed_by_id, reopened_at/reopened_by_id/reopen_reason and
    notes record every transition; each one is logged, and every rejection
    is logged at WARNING before raising.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.locks import advisory_xact_lock, period_scope
from ledger_kernel.domain.calendar import last_day_of_month, validate_month
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import AccountingPeriodInfo, LineSpec, YearEndCloseResult
from ledger_kernel.domain.money import TOLERANCE, ZERO, format_money, round_money
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ClosedPeriodError,
    PeriodAlreadyClosedError,
    PeriodHasDraftEntriesError,
    PeriodLockedError,
    PeriodNotClosedError,
    TrialBalanceUnbalancedError,
    YearEndAlreadyClosedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.accounting_period import AccountingPeriod, PeriodStatus
from ledger_kernel.models.journal import JournalEntry, SourceType
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")

RETAINED_EARNINGS_CODE = "3200"
CURRENT_YEAR_EARNINGS_CODE = "3300"


def year_end_reference(fiscal_year: int) -> str:
    return f"YE-{fiscal_year}"


def _status(value) -> str:
    return getattr(value, "value", value)


class AccountingPeriodService(BaseService):
    """
    Posting-period controller for one tenant.

    Contract:
        Status queries return ``PeriodStatus`` / ``AccountingPeriodInfo``
        DTOs; lifecycle methods flush within the caller's transaction.

    Non-goals:
        - Does NOT commit; the caller owns the transaction.
        - Does NOT compute reports; year-end net income comes straight from
          the ledger.
    """

    def __init__(
        self,
        session: Session,
        tenant_id: UUID,
        clock: Clock | None = None,
        retained_earnings_code: str = RETAINED_EARNINGS_CODE,
        current_year_earnings_code: str = CURRENT_YEAR_EARNINGS_CODE,
    ):
        super().__init__(session, tenant_id, clock)
        self.retained_earnings_code = retained_earnings_code
        self.current_year_earnings_code = current_year_earnings_code

    def _row(self, year: int, month: int, lock: bool = False) -> AccountingPeriod | None:
        query = select(AccountingPeriod).where(
            AccountingPeriod.tenant_id == self.tenant_id,
            AccountingPeriod.year == year,
            AccountingPeriod.month == month,
        )
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(query).scalar_one_or_none()

    def _row_for_update(self, year: int, month: int, actor_id: UUID) -> AccountingPeriod:
        """Lock the period row, creating an OPEN one first if absent."""
        row = self._row(year, month, lock=True)
        if row is not None:
            return row
        savepoint = self.session.begin_nested()
        try:
            row = AccountingPeriod(
                tenant_id=self.tenant_id,
                year=year,
                month=month,
                status=PeriodStatus.OPEN.value,
                created_by_id=actor_id,
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            row = self._row(year, month, lock=True)
            if row is None:
                raise
        return row

    # Queries

    def get_period_status(self, year: int, month: int) -> PeriodStatus:
        validate_month(year, month)
        row = self._row(year, month)
        return PeriodStatus.OPEN if row is None else PeriodStatus(_status(row.status))

    def get_period(self, year: int, month: int) -> AccountingPeriodInfo | None:
        validate_month(year, month)
        row = self._row(year, month)
        return None if row is None else AccountingPeriodInfo.from_model(row)

    def list_periods(self, year: int | None = None) -> list[AccountingPeriodInfo]:
        query = select(AccountingPeriod).where(AccountingPeriod.tenant_id == self.tenant_id)
        if year is not None:
            query = query.where(AccountingPeriod.year == year)
        query = query.order_by(AccountingPeriod.year, AccountingPeriod.month)
        return [AccountingPeriodInfo.from_model(r) for r in self.session.execute(query).scalars()]

    def get_open_periods(self, year: int) -> list[int]:
        """Months of ``year`` that currently accept postings."""
        statuses = {p.month: p.status for p in self.list_periods(year)}
        return [m for m in range(1, 13) if statuses.get(m, PeriodStatus.OPEN.value) == PeriodStatus.OPEN.value]

    def can_post_to_date(self, entry_date: date) -> bool:
        return self.get_period_status(entry_date.year, entry_date.month) == PeriodStatus.OPEN

    def assert_can_post(self, entry_date: date, allow_closed: bool = False) -> None:
        """
        Raise unless ``entry_date`` falls in a month that accepts postings.

        Args:
            allow_closed: admit CLOSED and CLOSING months (year-end closing
                entry only).  LOCKED months are always refused.

        Raises:
            PeriodLockedError: the month is locked.
            ClosedPeriodError: the month is closed or closing.
        """
        status = self.get_period_status(entry_date.year, entry_date.month)
        if status == PeriodStatus.OPEN:
            return
        if status == PeriodStatus.LOCKED:
            logger.warning(
                "posting_to_locked_period_rejected",
                extra={"entry_date": str(entry_date), "period": f"{entry_date:%Y-%m}"},
            )
            raise PeriodLockedError(entry_date.year, entry_date.month)
        if allow_closed:
            return
        logger.warning(
            "posting_to_closed_period_rejected",
            extra={
                "entry_date": str(entry_date),
                "period": f"{entry_date:%Y-%m}",
                "status": status.value,
            },
        )
        raise ClosedPeriodError(entry_date.year, entry_date.month, status.value, str(entry_date))

    # Lifecycle

    def close_period(
        self,
        year: int,
        month: int,
        actor_id: UUID,
        notes: str | None = None,
    ) -> AccountingPeriodInfo:
        """
        Close a month.

        The row is moved to CLOSING first so that concurrent posts are
        refused while drafts and the trial balance are checked; on rejection
        the previous status is restored before raising.

        Raises:
            PeriodLockedError, PeriodAlreadyClosedError,
            PeriodHasDraftEntriesError, TrialBalanceUnbalancedError.
        """
        validate_month(year, month)
        advisory_xact_lock(self.session, period_scope(self.tenant_id, year, month))
        row = self._row_for_update(year, month, actor_id)

        previous = _status(row.status)
        if previous == PeriodStatus.LOCKED.value:
            logger.warning("period_close_rejected_locked", extra={"period": f"{year:04d}-{month:02d}"})
            raise PeriodLockedError(year, month, action="close")
        if previous in (PeriodStatus.CLOSED.value, PeriodStatus.CLOSING.value):
            logger.warning("period_close_rejected_closed", extra={"period": f"{year:04d}-{month:02d}"})
            raise PeriodAlreadyClosedError(year, month)

        row.status = PeriodStatus.CLOSING.value
        row.updated_by_id = actor_id
        self.session.flush()

        try:
            drafts = JournalSelector(self.session, self.tenant_id).count_drafts_in_month(year, month)
            if drafts:
                logger.warning(
                    "period_close_rejected_drafts",
                    extra={"period": f"{year:04d}-{month:02d}", "draft_entries_count": drafts},
                )
                raise PeriodHasDraftEntriesError(year, month, drafts)

            totals = LedgerSelector(self.session, self.tenant_id).trial_balance_totals(
                last_day_of_month(year, month)
            )
            if not totals.is_balanced:
                logger.warning(
                    "period_close_rejected_unbalanced",
                    extra={
                        "period": f"{year:04d}-{month:02d}",
                        "total_debit": format_money(totals.total_debit),
                        "total_credit": format_money(totals.total_credit),
                    },
                )
                raise TrialBalanceUnbalancedError(
                    year,
                    month,
                    format_money(totals.total_debit),
                    format_money(totals.total_credit),
                )
        except (PeriodHasDraftEntriesError, TrialBalanceUnbalancedError):
            row.status = previous
            self.session.flush()
            raise

        row.status = PeriodStatus.CLOSED.value
        row.closed_at = self.clock.now()
        row.closed_by_id = actor_id
        if notes is not None:
            row.notes = notes
        self.session.flush()

        logger.info(
            "period_closed",
            extra={
                "tenant_id": str(self.tenant_id),
                "period": f"{year:04d}-{month:02d}",
                "actor_id": str(actor_id),
            },
        )
        return AccountingPeriodInfo.from_model(row)

    def reopen_period(
        self,
        year: int,
        month: int,
        actor_id: UUID,
        reason: str,
    ) -> AccountingPeriodInfo:
        """
        Reopen a closed month with a mandatory reason.

        Raises:
            ValueError: blank reason.
            PeriodLockedError: the month is locked.
            PeriodNotClosedError: the month is open or has no row.
        """
        validate_month(year, month)
        if reason is None or not reason.strip():
            raise ValueError("A reason is required to reopen a period")

        advisory_xact_lock(self.session, period_scope(self.tenant_id, year, month))
        row = self._row(year, month, lock=True)
        if row is None or _status(row.status) == PeriodStatus.OPEN.value:
            logger.warning("period_reopen_rejected_open", extra={"period": f"{year:04d}-{month:02d}"})
            raise PeriodNotClosedError(year, month)
        if _status(row.status) == PeriodStatus.LOCKED.value:
            logger.warning("period_reopen_rejected_locked", extra={"period": f"{year:04d}-{month:02d}"})
            raise PeriodLockedError(year, month, action="reopen")

        row.status = PeriodStatus.OPEN.value
        row.reopened_at = self.clock.now()
        row.reopened_by_id = actor_id
        row.reopen_reason = reason.strip()
        row.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_reopened",
            extra={
                "tenant_id": str(self.tenant_id),
                "period": f"{year:04d}-{month:02d}",
                "actor_id": str(actor_id),
                "reason": row.reopen_reason,
            },
        )
        return AccountingPeriodInfo.from_model(row)

    # Year-end

    def _account_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.tenant_id == self.tenant_id,
                Account.code == code,
                Account.deleted_at.is_(None),
            )
        ).scalar_one_or_none()

    def net_income_for_year(self, fiscal_year: int) -> Decimal:
        revenue, expenses = LedgerSelector(self.session, self.tenant_id).revenue_and_expense_totals(
            date(fiscal_year, 1, 1), date(fiscal_year, 12, 31)
        )
        return round_money(revenue - expenses)

    def year_end_close(self, fiscal_year: int, actor_id: UUID) -> YearEndCloseResult:
        """
        Close a fiscal (calendar) year.

        Books net income into retained earnings with one entry dated
        ``{year}-12-31`` (skipped when net income is within 0.01 of zero),
        then locks all twelve months.

        Raises:
            YearEndAlreadyClosedError: a ``YE-{year}`` closing entry exists.
            AccountNotFoundError: no retained earnings account.
            PeriodLockedError: December is already locked.
        """
        from ledger_kernel.services.journal_service import JournalEntryService

        validate_month(fiscal_year, 12)
        reference = year_end_reference(fiscal_year)

        existing = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == self.tenant_id,
                JournalEntry.reference == reference,
                JournalEntry.source_type == SourceType.YEAR_END_CLOSE.value,
            )
        ).scalars().first()
        if existing is not None:
            logger.warning(
                "year_end_close_rejected_duplicate",
                extra={"fiscal_year": fiscal_year, "entry_number": existing.entry_number},
            )
            raise YearEndAlreadyClosedError(fiscal_year, existing.entry_number)

        retained = self._account_by_code(self.retained_earnings_code)
        if retained is None:
            logger.warning(
                "year_end_close_rejected_no_retained_earnings",
                extra={"fiscal_year": fiscal_year, "account_code": self.retained_earnings_code},
            )
            raise AccountNotFoundError(self.retained_earnings_code)
        current = self._account_by_code(self.current_year_earnings_code) or retained

        net_income = self.net_income_for_year(fiscal_year)
        closing_entry = None
        if abs(net_income) > TOLERANCE:
            amount = abs(net_income)
            if net_income > ZERO:
                lines = [
                    LineSpec.debit_line(current.id, amount, "Close current year earnings"),
                    LineSpec.credit_line(retained.id, amount, "Transfer to retained earnings"),
                ]
            else:
                lines = [
                    LineSpec.debit_line(retained.id, amount, "Transfer loss to retained earnings"),
                    LineSpec.credit_line(current.id, amount, "Close current year loss"),
                ]
            journal = JournalEntryService(self.session, self.tenant_id, clock=self.clock, period_service=self)
            closing_entry = journal.create_entry(
                entry_date=date(fiscal_year, 12, 31),
                description=f"Year-end close {fiscal_year}",
                lines=lines,
                actor_id=actor_id,
                reference=reference,
                source_type=SourceType.YEAR_END_CLOSE,
            )
            journal.post_entry(closing_entry.id, actor_id, allow_closed_period=True)

        note = f"Locked by year-end close on {self.clock.today().isoformat()}"
        locked = 0
        for month in range(1, 13):
            advisory_xact_lock(self.session, period_scope(self.tenant_id, fiscal_year, month))
            row = self._row_for_update(fiscal_year, month, actor_id)
            if _status(row.status) == PeriodStatus.LOCKED.value:
                continue
            row.status = PeriodStatus.LOCKED.value
            row.notes = note
            row.updated_by_id = actor_id
            if row.closed_at is None:
                row.closed_at = self.clock.now()
                row.closed_by_id = actor_id
            locked += 1
        self.session.flush()

        result = YearEndCloseResult(
            fiscal_year=fiscal_year,
            net_income=net_income,
            closing_entry_id=closing_entry.id if closing_entry is not None else None,
            closing_entry_number=closing_entry.entry_number if closing_entry is not None else None,
            periods_locked=locked,
        )
        logger.info(
            "year_end_closed",
            extra={
                "tenant_id": str(self.tenant_id),
                "fiscal_year": fiscal_year,
                "net_income": format_money(net_income),
                "closing_entry_number": result.closing_entry_number,
                "periods_locked": locked,
            },
        )
        return result
