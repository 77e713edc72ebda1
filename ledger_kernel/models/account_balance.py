"""
Module: ledger_kernel.models.account_balance
Responsibility: Monthly opening / activity / closing balance cache per account.
Architecture position: Kernel > Models.  Maintained by AccountBalanceService
    as entries post.

Invariants enforced:
    - One row per (account, year, month).
    - closing_balance = opening_balance + signed(period_debit, period_credit)
      in the account's normal-balance direction.
    - A month's opening_balance equals the closing_balance of the nearest
      earlier stored month (or the account's opening balance).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class AccountBalance(Base):
    __tablename__ = "account_balances"
    __table_args__ = (
        UniqueConstraint("account_id", "year", "month", name="uq_account_balance_month"),
        Index("idx_account_balance_tenant", "tenant_id", "year", "month"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    period_debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    period_credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    closing_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AccountBalance {self.account_id} {self.year:04d}-{self.month:02d} "
            f"open={self.opening_balance} close={self.closing_balance}>"
        )

    @property
    def period_key(self) -> tuple[int, int]:
        return (self.year, self.month)
