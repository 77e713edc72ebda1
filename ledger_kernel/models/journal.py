"""
Module: ledger_kernel.models.journal
Responsibility: ORM models for journal entries (the ledger's system of
    record) and their debit/credit lines.
Architecture position: Kernel > Models.

Invariants enforced:
    - (tenant_id, entry_number) is unique (``uq_journal_entry_number``); the
      entry-number counter is the primary guard, this constraint the backstop.
    - Lines belong to exactly one entry and are deleted with it (drafts only;
      posted entries are protected by db/immutability.py).
    - total_debit == total_credit for every stored entry (checked by
      JournalEntryService before insert).

Audit relevance:
    ``seq`` is the per-tenant creation order used to break same-date ties when
    replaying the journal; posted_at/posted_by_id record who posted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


# Statuses whose lines are part of the books
BOOKED_STATUSES: tuple[str, ...] = (
    JournalEntryStatus.POSTED.value,
    JournalEntryStatus.REVERSED.value,
)


class SourceType(str, Enum):
    """Kind of document that produced a journal entry."""

    INVOICE = "invoice"
    BILL = "bill"
    BANK_TRANSACTION = "bank_transaction"
    MANUAL = "manual"
    CREDIT_NOTE = "credit_note"
    DEBIT_NOTE = "debit_note"
    PAYMENT = "payment"
    PAYROLL = "payroll"
    FIXED_ASSET_DEPRECIATION = "fixed_asset_depreciation"
    FIXED_ASSET_DISPOSAL = "fixed_asset_disposal"
    YEAR_END_CLOSE = "year_end_close"


class JournalEntry(TrackedBase):
    """
    A balanced financial transaction.

    Contract:
        Lifecycle DRAFT -> POSTED -> (optionally) REVERSED.  Only drafts may
        be edited or deleted.  A reversal entry points at the entry it undoes
        through ``reversed_entry_id``; the undone entry points back through
        ``reversal_entry_id``.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "entry_number", name="uq_journal_entry_number"),
        Index("idx_journal_entry_tenant_date", "tenant_id", "entry_date"),
        Index("idx_journal_entry_tenant_status", "tenant_id", "status"),
        Index("idx_journal_entry_reference", "tenant_id", "reference"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # JE-YYYY-NNNNN
    entry_number: Mapped[str] = mapped_column(String(30), nullable=False)

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(20),
        nullable=False,
        default=JournalEntryStatus.DRAFT,
    )

    source_type: Mapped[SourceType] = mapped_column(
        String(40),
        nullable=False,
        default=SourceType.MANUAL,
    )

    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    total_debit: Mapped[Decimal] = mapped_column(nullable=False)
    total_credit: Mapped[Decimal] = mapped_column(nullable=False)

    # Set on a reversal entry: the entry it reverses
    reversed_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    # Set on a reversed entry: the entry that reversed it
    reversal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} ({self.status})>"

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_reversed(self) -> bool:
        return self.status == JournalEntryStatus.REVERSED


class JournalEntryLine(Base):
    """One debit or credit leg. Both amount columns are always present."""

    __tablename__ = "journal_entry_lines"
    __table_args__ = (
        UniqueConstraint("entry_id", "line_number", name="uq_journal_line_number"),
        Index("idx_journal_line_account", "account_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    debit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    sst_tax_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    tax_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return (
            f"<JournalEntryLine {self.line_number}: "
            f"Dr {self.debit_amount} Cr {self.credit_amount}>"
        )
