"""
Module: ledger_kernel.models.ledger
Responsibility: Denormalized per-account transaction log with running
    balances -- a read-optimized projection of posted journal lines.
Architecture position: Kernel > Models.  Written only by LedgerProjector.

Invariants enforced:
    - One row per posted journal line (``uq_ledger_transaction_line``).
    - For each account, reading rows in (transaction_date, entry_seq,
      line_number) order, running_balance equals the account's opening
      balance plus the cumulative signed movement up to and including the
      row.
    - Rows are never updated; they are only inserted by projection or
      regenerated wholesale by rebuild (db/immutability.py rejects ORM
      updates and deletes).
    - The row id is derived from the journal line id, so a rebuild
      regenerates byte-identical rows.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, NAMESPACE_URL, uuid5

from sqlalchemy import BigInteger, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString

LEDGER_TRANSACTION_NAMESPACE = uuid5(NAMESPACE_URL, "ledger-core:ledger-transaction")


def ledger_transaction_id(journal_entry_line_id: UUID) -> UUID:
    return uuid5(LEDGER_TRANSACTION_NAMESPACE, str(journal_entry_line_id))


class LedgerTransaction(Base):
    """Immutable projection of one posted journal line onto its account."""

    __tablename__ = "ledger_transactions"
    __table_args__ = (
        UniqueConstraint("journal_entry_line_id", name="uq_ledger_transaction_line"),
        Index(
            "idx_ledger_account_order",
            "account_id",
            "transaction_date",
            "entry_seq",
            "line_number",
        ),
        Index("idx_ledger_tenant_date", "tenant_id", "transaction_date"),
        Index("idx_ledger_entry", "journal_entry_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    journal_entry_line_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entry_lines.id"),
        nullable=False,
    )

    # Ordering key: (transaction_date, entry_seq, line_number)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    entry_number: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    debit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    credit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    running_balance: Mapped[Decimal] = mapped_column(nullable=False)

    # Account snapshot at post time
    account_code: Mapped[str] = mapped_column(String(20), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)

    # The journal entry's posted_at
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.entry_number} {self.account_code} "
            f"bal={self.running_balance}>"
        )

    @property
    def order_key(self) -> tuple[date, int, int]:
        return (self.transaction_date, self.entry_seq, self.line_number)
