"""
Module: ledger_kernel.models.accounting_period
Responsibility: Posting-control record for one (tenant, year, month).
Architecture position: Kernel > Models.  Managed by AccountingPeriodService.

Invariants enforced:
    - At most one row per (tenant, year, month).
    - A missing row means the month is OPEN.
    - LOCKED is terminal; only year-end close produces it.
    - CLOSING is transitional: it exists only inside a close_period()
      transaction and refuses postings while the close checks run.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class PeriodStatus(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    LOCKED = "locked"


class AccountingPeriod(TrackedBase):
    __tablename__ = "accounting_periods"
    __table_args__ = (
        UniqueConstraint("tenant_id", "year", "month", name="uq_accounting_period_month"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PeriodStatus.OPEN,
    )

    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reopened_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reopened_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reopen_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return f"<AccountingPeriod {self.year:04d}-{self.month:02d} {self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.LOCKED
