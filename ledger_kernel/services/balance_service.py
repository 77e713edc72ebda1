"""
AccountBalanceService -- monthly balance cache maintained at post time.

Responsibility:
    Keeps one ``account_balances`` row per (account, year, month) with the
    month's opening balance, debit and credit activity and closing balance,
    so period balances are a single-row lookup.

Architecture position:
    Kernel > Services.  Called by JournalEntryService.post_entry() for every
    line of the entry being posted; rebuild() is called by
    LedgerProjector.rebuild() so a replay regenerates the cache as well.

Invariants enforced:
    - closing = opening + signed(period_debit, period_credit).
    - For consecutive stored months of one account,
      opening(later) == closing(earlier); a back-dated posting shifts every
      later month by the same signed delta.
    - A new month row opens at the closing balance of the nearest earlier
      stored month, else at the account's opening balance.

Failure modes:
    - IntegrityError if two transactions create the same month row
      concurrently; the creation runs in a SAVEPOINT and is re-read under
      lock.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from ledger_kernel.domain.dtos import AccountBalanceSnapshot
from ledger_kernel.domain.money import ZERO, signed_amount, to_decimal
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.account_balance import AccountBalance
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.balances")


def _month_index(year: int, month: int) -> int:
    return year * 12 + (month - 1)


class AccountBalanceService(BaseService):
    """Read and maintain the monthly balance cache for one tenant."""

    def _month_row(self, account_id: UUID, year: int, month: int, lock: bool = False):
        query = select(AccountBalance).where(
            AccountBalance.tenant_id == self.tenant_id,
            AccountBalance.account_id == account_id,
            AccountBalance.year == year,
            AccountBalance.month == month,
        )
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(query).scalar_one_or_none()

    def _nearest_earlier(self, account_id: UUID, year: int, month: int) -> AccountBalance | None:
        return self.session.execute(
            select(AccountBalance)
            .where(
                AccountBalance.tenant_id == self.tenant_id,
                AccountBalance.account_id == account_id,
                (AccountBalance.year * 12 + AccountBalance.month - 1) < _month_index(year, month),
            )
            .order_by(AccountBalance.year.desc(), AccountBalance.month.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _opening_for(self, account: Account, year: int, month: int) -> Decimal:
        earlier = self._nearest_earlier(account.id, year, month)
        if earlier is not None:
            return to_decimal(earlier.closing_balance)
        return to_decimal(account.opening_balance)

    def apply_line(
        self,
        account: Account,
        entry_date: date,
        debit: Decimal,
        credit: Decimal,
    ) -> AccountBalance:
        """
        Add one posted line to the account's month row.

        Postconditions:
            - The month row exists and reflects the line.
            - Every later month of the account has moved by the same signed
              delta.
        """
        year, month = entry_date.year, entry_date.month
        debit = to_decimal(debit)
        credit = to_decimal(credit)
        delta = signed_amount(debit, credit, account.normal_balance)
        now = self.clock.now()

        row = self._month_row(account.id, year, month, lock=True)
        if row is None:
            opening = self._opening_for(account, year, month)
            savepoint = self.session.begin_nested()
            try:
                row = AccountBalance(
                    tenant_id=self.tenant_id,
                    account_id=account.id,
                    year=year,
                    month=month,
                    opening_balance=opening,
                    period_debit=ZERO,
                    period_credit=ZERO,
                    closing_balance=opening,
                    updated_at=now,
                )
                self.session.add(row)
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                row = self._month_row(account.id, year, month, lock=True)
                if row is None:
                    raise

        row.period_debit = to_decimal(row.period_debit) + debit
        row.period_credit = to_decimal(row.period_credit) + credit
        row.closing_balance = to_decimal(row.opening_balance) + signed_amount(
            row.period_debit, row.period_credit, account.normal_balance
        )
        row.updated_at = now
        self.session.flush()

        if delta:
            shifted = self.session.execute(
                update(AccountBalance)
                .where(
                    AccountBalance.tenant_id == self.tenant_id,
                    AccountBalance.account_id == account.id,
                    (AccountBalance.year * 12 + AccountBalance.month - 1) > _month_index(year, month),
                )
                .values(
                    opening_balance=AccountBalance.opening_balance + delta,
                    closing_balance=AccountBalance.closing_balance + delta,
                    updated_at=now,
                )
                .execution_options(synchronize_session="fetch")
            ).rowcount
            if shifted:
                logger.debug(
                    "balance_cache_cascaded",
                    extra={
                        "account_id": str(account.id),
                        "from_period": f"{year:04d}-{month:02d}",
                        "months_shifted": shifted,
                    },
                )
        return row

    def get_period_balance(self, account_id: UUID, year: int, month: int) -> AccountBalanceSnapshot:
        """
        Balance snapshot for one month.

        Returns the stored row, or a derived one (zero activity, opening and
        closing at the nearest earlier closing / account opening balance)
        when the month has no postings.
        """
        row = self._month_row(account_id, year, month)
        if row is not None:
            return AccountBalanceSnapshot.from_model(row)

        account = self.session.execute(
            select(Account).where(Account.id == account_id, Account.tenant_id == self.tenant_id)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))

        opening = self._opening_for(account, year, month)
        return AccountBalanceSnapshot(
            account_id=account_id,
            year=year,
            month=month,
            opening_balance=opening,
            period_debit=ZERO,
            period_credit=ZERO,
            closing_balance=opening,
            is_stored=False,
        )

    def list_balances(self, account_id: UUID) -> list[AccountBalanceSnapshot]:
        rows = self.session.execute(
            select(AccountBalance)
            .where(
                AccountBalance.tenant_id == self.tenant_id,
                AccountBalance.account_id == account_id,
            )
            .order_by(AccountBalance.year, AccountBalance.month)
        ).scalars().all()
        return [AccountBalanceSnapshot.from_model(row) for row in rows]

    def rebuild(self, account_id: UUID | None = None) -> int:
        """
        Regenerate the cache for the tenant or one account from booked lines.

        Deletes the scope's month rows and writes one row per month with
        activity, each chain starting at the account's opening balance.
        Returns the number of rows written.
        """
        scope = delete(AccountBalance).where(AccountBalance.tenant_id == self.tenant_id)
        if account_id is not None:
            scope = scope.where(AccountBalance.account_id == account_id)
        self.session.execute(scope.execution_options(synchronize_session="fetch"))

        activity: dict[tuple[UUID, int, int], list[Decimal]] = {}
        for entry in JournalSelector(self.session, self.tenant_id).booked_entries_in_replay_order():
            for line in entry.lines:
                if account_id is not None and line.account_id != account_id:
                    continue
                totals = activity.setdefault(
                    (line.account_id, entry.entry_date.year, entry.entry_date.month), [ZERO, ZERO]
                )
                totals[0] += to_decimal(line.debit_amount)
                totals[1] += to_decimal(line.credit_amount)

        accounts = {
            a.id: a
            for a in self.session.execute(
                select(Account).where(
                    Account.tenant_id == self.tenant_id,
                    Account.id.in_(list({key[0] for key in activity})),
                )
            ).scalars()
        }

        now = self.clock.now()
        closing: dict[UUID, Decimal] = {}
        rows = []
        for (acct_id, year, month), (debit, credit) in sorted(
            activity.items(), key=lambda item: (str(item[0][0]), item[0][1], item[0][2])
        ):
            account = accounts[acct_id]
            opening = closing.get(acct_id, to_decimal(account.opening_balance))
            closing[acct_id] = opening + signed_amount(debit, credit, account.normal_balance)
            rows.append(
                {
                    "id": uuid4(),
                    "tenant_id": self.tenant_id,
                    "account_id": acct_id,
                    "year": year,
                    "month": month,
                    "opening_balance": opening,
                    "period_debit": debit,
                    "period_credit": credit,
                    "closing_balance": closing[acct_id],
                    "updated_at": now,
                }
            )
        if rows:
            self.session.execute(insert(AccountBalance), rows)
        self.session.flush()

        logger.info(
            "balance_cache_rebuilt",
            extra={
                "tenant_id": str(self.tenant_id),
                "account_id": str(account_id) if account_id else None,
                "rows_created": len(rows),
            },
        )
        return len(rows)
