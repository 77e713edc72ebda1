"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the projected ledger: per-account
    activity for reports, running balances, general ledger views, search,
    and trial-balance totals for the period controller.
Architecture position: Kernel > Selectors.  Imports models/ and domain/
    DTOs only.

Invariants enforced:
    - Report-facing aggregation is a single grouped query joined to
      accounts; no per-account query loops.
    - Header and soft-deleted accounts are excluded unless asked for.
    - Balances always include the account's opening balance.

Failure modes:
    - AccountNotFoundError from general_ledger() for an account that is
      missing or owned by another tenant.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select

from ledger_kernel.domain.dtos import (
    AccountActivity,
    GeneralLedger,
    GeneralLedgerLine,
    TrialBalanceTotals,
)
from ledger_kernel.domain.money import ZERO, is_effectively_zero, to_decimal
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account
from ledger_kernel.models.ledger import LedgerTransaction
from ledger_kernel.selectors.base import BaseSelector

_ORDER = (
    LedgerTransaction.transaction_date,
    LedgerTransaction.entry_seq,
    LedgerTransaction.line_number,
)


def _dec(value) -> Decimal:
    return ZERO if value is None else to_decimal(value)


class LedgerSelector(BaseSelector):
    """
    Read side of the ledger projection.

    Contract:
        All methods read ``ledger_transactions`` for ``tenant_id``; none of
        them write.  Row ordering is always (transaction_date, entry_seq,
        line_number).
    """

    def account_activity(
        self,
        as_of: date | None = None,
        start: date | None = None,
        include_headers: bool = False,
        include_deleted: bool = False,
        account_id: UUID | None = None,
    ) -> list[AccountActivity]:
        """
        Debit/credit totals per account over ``[start, as_of]``.

        One grouped query, outer-joined so that accounts without movement
        still appear (with zero totals and their opening balance).

        Returns:
            AccountActivity DTOs ordered by account code.
        """
        join_on = [
            LedgerTransaction.account_id == Account.id,
            LedgerTransaction.tenant_id == self.tenant_id,
        ]
        if as_of is not None:
            join_on.append(LedgerTransaction.transaction_date <= as_of)
        if start is not None:
            join_on.append(LedgerTransaction.transaction_date >= start)

        debit_sum = func.coalesce(func.sum(LedgerTransaction.debit_amount), 0).label("debit_total")
        credit_sum = func.coalesce(func.sum(LedgerTransaction.credit_amount), 0).label("credit_total")

        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.normal_balance,
                Account.sub_type,
                Account.opening_balance,
                debit_sum,
                credit_sum,
            )
            .outerjoin(LedgerTransaction, and_(*join_on))
            .where(Account.tenant_id == self.tenant_id)
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.normal_balance,
                Account.sub_type,
                Account.opening_balance,
            )
            .order_by(Account.code)
        )
        if not include_headers:
            query = query.where(Account.is_header.is_(False))
        if not include_deleted:
            query = query.where(Account.deleted_at.is_(None))
        if account_id is not None:
            query = query.where(Account.id == account_id)

        return [
            AccountActivity(
                account_id=row.id,
                code=row.code,
                name=row.name,
                account_type=row.account_type,
                normal_balance=row.normal_balance,
                sub_type=row.sub_type,
                opening_balance=_dec(row.opening_balance),
                debit_total=_dec(row.debit_total),
                credit_total=_dec(row.credit_total),
            )
            for row in self.session.execute(query).all()
        ]

    def last_transaction(self, account_id: UUID) -> LedgerTransaction | None:
        return self.session.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.tenant_id == self.tenant_id,
                LedgerTransaction.account_id == account_id,
            )
            .order_by(*(col.desc() for col in _ORDER))
            .limit(1)
        ).scalar_one_or_none()

    def last_running_balance(self, account_id: UUID) -> Decimal | None:
        """Running balance of the account's last ledger row, or None if it has none."""
        last = self.last_transaction(account_id)
        return None if last is None else to_decimal(last.running_balance)

    def ledger_totals(self, account_id: UUID | None = None) -> tuple[Decimal, Decimal]:
        """Aggregate (debits, credits) across the tenant's ledger, or one account."""
        query = select(
            func.coalesce(func.sum(LedgerTransaction.debit_amount), 0),
            func.coalesce(func.sum(LedgerTransaction.credit_amount), 0),
        ).where(LedgerTransaction.tenant_id == self.tenant_id)
        if account_id is not None:
            query = query.where(LedgerTransaction.account_id == account_id)
        debits, credits = self.session.execute(query).one()
        return _dec(debits), _dec(credits)

    def ledger_balances(self) -> dict[UUID, Decimal]:
        """Last running balance per account that has ledger rows."""
        ranked = (
            select(
                LedgerTransaction.account_id,
                LedgerTransaction.running_balance,
                func.row_number()
                .over(
                    partition_by=LedgerTransaction.account_id,
                    order_by=[col.desc() for col in _ORDER],
                )
                .label("rn"),
            )
            .where(LedgerTransaction.tenant_id == self.tenant_id)
            .subquery()
        )
        rows = self.session.execute(
            select(ranked.c.account_id, ranked.c.running_balance).where(ranked.c.rn == 1)
        ).all()
        return {row.account_id: _dec(row.running_balance) for row in rows}

    def account_transactions(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[LedgerTransaction]:
        query = (
            select(LedgerTransaction)
            .where(
                LedgerTransaction.tenant_id == self.tenant_id,
                LedgerTransaction.account_id == account_id,
            )
            .order_by(*_ORDER)
        )
        if start is not None:
            query = query.where(LedgerTransaction.transaction_date >= start)
        if end is not None:
            query = query.where(LedgerTransaction.transaction_date <= end)
        return list(self.session.execute(query).scalars().all())

    def entry_transactions(self, journal_entry_id: UUID) -> list[LedgerTransaction]:
        return list(
            self.session.execute(
                select(LedgerTransaction)
                .where(
                    LedgerTransaction.tenant_id == self.tenant_id,
                    LedgerTransaction.journal_entry_id == journal_entry_id,
                )
                .order_by(LedgerTransaction.line_number)
            )
            .scalars()
            .all()
        )

    def general_ledger(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> GeneralLedger:
        """
        Ledger rows for one account with opening and closing balances.

        The opening balance is the running balance of the last row dated
        before ``start`` (or the account's opening balance); the closing
        balance is the last row's running balance in range (or the opening).
        """
        if start is not None and end is not None and end < start:
            raise ValueError(f"end ({end}) is before start ({start})")

        account = self.session.execute(
            select(Account).where(
                Account.id == account_id,
                Account.tenant_id == self.tenant_id,
                Account.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))

        opening = to_decimal(account.opening_balance)
        if start is not None:
            before = self.session.execute(
                select(LedgerTransaction.running_balance)
                .where(
                    LedgerTransaction.tenant_id == self.tenant_id,
                    LedgerTransaction.account_id == account_id,
                    LedgerTransaction.transaction_date < start,
                )
                .order_by(*(col.desc() for col in _ORDER))
                .limit(1)
            ).scalar_one_or_none()
            if before is not None:
                opening = to_decimal(before)

        rows = self.account_transactions(account_id, start=start, end=end)
        lines = tuple(
            GeneralLedgerLine(
                transaction_date=row.transaction_date,
                entry_number=row.entry_number,
                journal_entry_id=row.journal_entry_id,
                line_number=row.line_number,
                description=row.description,
                reference=row.reference,
                debit_amount=_dec(row.debit_amount),
                credit_amount=_dec(row.credit_amount),
                running_balance=_dec(row.running_balance),
            )
            for row in rows
        )
        return GeneralLedger(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            start=start,
            end=end,
            opening_balance=opening,
            lines=lines,
            total_debit=sum((line.debit_amount for line in lines), ZERO),
            total_credit=sum((line.credit_amount for line in lines), ZERO),
            closing_balance=lines[-1].running_balance if lines else opening,
        )

    def search_transactions(
        self,
        query: str | None = None,
        account_type: str | None = None,
        start: date | None = None,
        end: date | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LedgerTransaction]:
        """
        Case-insensitive search over description, reference and entry number,
        newest first.
        """
        stmt = select(LedgerTransaction).where(LedgerTransaction.tenant_id == self.tenant_id)
        if query:
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(
                or_(
                    LedgerTransaction.description.ilike(pattern),
                    LedgerTransaction.reference.ilike(pattern),
                    LedgerTransaction.entry_number.ilike(pattern),
                )
            )
        if account_type is not None:
            stmt = stmt.where(
                LedgerTransaction.account_type == getattr(account_type, "value", account_type)
            )
        if start is not None:
            stmt = stmt.where(LedgerTransaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(LedgerTransaction.transaction_date <= end)
        stmt = stmt.order_by(*(col.desc() for col in _ORDER)).limit(limit).offset(offset)
        return list(self.session.execute(stmt).scalars().all())

    def trial_balance_totals(self, as_of: date) -> TrialBalanceTotals:
        """
        Trial balance column totals as of ``as_of``.

        Each postable account's balance lands in its natural column; a
        negative balance (contra position) lands in the opposite one.
        Balances within 0.01 of zero are skipped.
        """
        total_debit = ZERO
        total_credit = ZERO
        for activity in self.account_activity(as_of=as_of):
            balance = activity.balance
            if is_effectively_zero(balance):
                continue
            debit_side = (balance > 0) == activity.is_debit_normal
            if debit_side:
                total_debit += abs(balance)
            else:
                total_credit += abs(balance)
        return TrialBalanceTotals(as_of=as_of, total_debit=total_debit, total_credit=total_credit)

    def revenue_and_expense_totals(self, start: date, end: date) -> tuple[Decimal, Decimal]:
        """
        (revenue, expenses) movement over ``[start, end]``: revenue as
        credits minus debits, expenses as debits minus credits, matching the
        profit and loss report.
        """
        signed = case(
            (
                Account.account_type == "expense",
                LedgerTransaction.debit_amount - LedgerTransaction.credit_amount,
            ),
            else_=LedgerTransaction.credit_amount - LedgerTransaction.debit_amount,
        )
        rows = self.session.execute(
            select(Account.account_type, func.coalesce(func.sum(signed), 0))
            .join(Account, LedgerTransaction.account_id == Account.id)
            .where(
                LedgerTransaction.tenant_id == self.tenant_id,
                LedgerTransaction.transaction_date >= start,
                LedgerTransaction.transaction_date <= end,
                Account.account_type.in_(("revenue", "expense")),
                Account.is_header.is_(False),
                Account.deleted_at.is_(None),
            )
            .group_by(Account.account_type)
        ).all()
        totals = {row[0]: _dec(row[1]) for row in rows}
        return totals.get("revenue", ZERO), totals.get("expense", ZERO)
