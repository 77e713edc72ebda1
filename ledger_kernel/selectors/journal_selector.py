"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only queries over journal entries and lines, the
    system of record the ledger is projected from.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - "Booked" means posted or reversed: a reversed entry stays in the books
      and its reversal offsets it, so journal-implied balances sum the lines
      of both statuses.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.calendar import month_bounds
from ledger_kernel.domain.money import ZERO, to_decimal
from ledger_kernel.models.journal import (
    BOOKED_STATUSES,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from ledger_kernel.selectors.base import BaseSelector


class JournalSelector(BaseSelector):
    def get_entry(self, entry_id: UUID) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry).where(
                JournalEntry.id == entry_id,
                JournalEntry.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()

    def get_by_number(self, entry_number: str) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == self.tenant_id,
                JournalEntry.entry_number == entry_number,
            )
        ).scalar_one_or_none()

    def find_by_reference(
        self,
        reference: str,
        source_type: str | None = None,
    ) -> list[JournalEntry]:
        query = (
            select(JournalEntry)
            .where(
                JournalEntry.tenant_id == self.tenant_id,
                JournalEntry.reference == reference,
            )
            .order_by(JournalEntry.seq)
        )
        if source_type is not None:
            query = query.where(JournalEntry.source_type == getattr(source_type, "value", source_type))
        return list(self.session.execute(query).scalars().all())

    def list_entries(
        self,
        status: str | None = None,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[JournalEntry]:
        """Entries ordered by (entry_date, seq)."""
        query = (
            select(JournalEntry)
            .where(JournalEntry.tenant_id == self.tenant_id)
            .order_by(JournalEntry.entry_date, JournalEntry.seq)
        )
        if status is not None:
            query = query.where(JournalEntry.status == getattr(status, "value", status))
        if start is not None:
            query = query.where(JournalEntry.entry_date >= start)
        if end is not None:
            query = query.where(JournalEntry.entry_date <= end)
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        return list(self.session.execute(query).scalars().all())

    def count_drafts_in_month(self, year: int, month: int) -> int:
        first, last = month_bounds(year, month)
        return self.session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.tenant_id == self.tenant_id,
                JournalEntry.status == JournalEntryStatus.DRAFT.value,
                JournalEntry.entry_date >= first,
                JournalEntry.entry_date <= last,
            )
        ).scalar_one()

    def booked_activity(
        self,
        account_id: UUID | None = None,
        as_of: date | None = None,
    ) -> dict[UUID, tuple[Decimal, Decimal]]:
        """(debits, credits) per account over lines of booked entries."""
        query = (
            select(
                JournalEntryLine.account_id,
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0),
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0),
            )
            .join(JournalEntry, JournalEntryLine.entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == self.tenant_id,
                JournalEntry.status.in_(BOOKED_STATUSES),
            )
            .group_by(JournalEntryLine.account_id)
        )
        if account_id is not None:
            query = query.where(JournalEntryLine.account_id == account_id)
        if as_of is not None:
            query = query.where(JournalEntry.entry_date <= as_of)
        return {
            row[0]: (to_decimal(row[1]), to_decimal(row[2]))
            for row in self.session.execute(query).all()
        }

    def booked_totals(self) -> tuple[Decimal, Decimal]:
        debits = ZERO
        credits = ZERO
        for debit, credit in self.booked_activity().values():
            debits += debit
            credits += credit
        return debits, credits

    def booked_entries_in_replay_order(self) -> list[JournalEntry]:
        """Every posted or reversed entry, ordered (entry_date, seq)."""
        return list(
            self.session.execute(
                select(JournalEntry)
                .where(
                    JournalEntry.tenant_id == self.tenant_id,
                    JournalEntry.status.in_(BOOKED_STATUSES),
                )
                .order_by(JournalEntry.entry_date, JournalEntry.seq)
            )
            .scalars()
            .all()
        )

    def account_has_lines(self, account_id: UUID) -> bool:
        return (
            self.session.execute(
                select(JournalEntryLine.id)
                .where(JournalEntryLine.account_id == account_id)
                .limit(1)
            ).first()
            is not None
        )
