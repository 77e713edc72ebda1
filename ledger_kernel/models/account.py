"""
Module: ledger_kernel.models.account
Responsibility: ORM model for a chart-of-accounts node and the enums that
    describe it (type, normal balance, sub-type, SST tax code).
Architecture position: Kernel > Models.  Imported by services, selectors and
    the reporting module.

Invariants enforced:
    - (tenant_id, code) is unique among non-deleted accounts (partial unique
      index ``uq_account_tenant_code_live``).
    - level/path mirror the parent chain; ChartOfAccountsService keeps them
      consistent on every code or parent change.
    - Header accounts never receive journal lines (checked at entry creation).

Failure modes:
    - IntegrityError on a duplicate live code that slipped past the service
      check (concurrent creation).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalEntryLine


class AccountType(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class AccountSubType(str, Enum):
    """Finer statement category; wins over code-range classification."""

    CURRENT_ASSET = "current_asset"
    FIXED_ASSET = "fixed_asset"
    CURRENT_LIABILITY = "current_liability"
    NON_CURRENT_LIABILITY = "non_current_liability"
    COST_OF_GOODS_SOLD = "cost_of_goods_sold"
    OPERATING_EXPENSE = "operating_expense"
    OTHER_EXPENSE = "other_expense"


class SstTaxCode(str, Enum):
    """Malaysian SST treatment codes carried on accounts and journal lines."""

    SR = "sr"  # standard rated
    ZRL = "zrl"  # zero rated (local)
    ES = "es"  # exempt supply
    OS = "os"  # out of scope
    RS = "rs"  # relief supply
    GS = "gs"  # disregarded supply
    NONE = "none"


DEFAULT_NORMAL_BALANCE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


class Account(TrackedBase):
    """
    One node in a tenant's chart of accounts.

    Contract:
        ``code`` identifies the account within its tenant while it is live;
        a soft-deleted account frees its code for reuse.  ``path`` is the
        slash-joined chain of codes from the root (``1000/1100/1110``) and
        ``level`` is its depth (roots are 0).

    Non-goals:
        - Deletion guards (system account, children, journal references) are
          enforced by ChartOfAccountsService, not by this model.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        Index(
            "uq_account_tenant_code_live",
            "tenant_id",
            "code",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("idx_account_tenant_type", "tenant_id", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    sub_type: Mapped[AccountSubType | None] = mapped_column(String(40), nullable=True)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    # Materialized hierarchy
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    path: Mapped[str] = mapped_column(String(500), nullable=False)

    sst_tax_code: Mapped[SstTaxCode | None] = mapped_column(String(10), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Protected from deletion (retained earnings, current-year earnings, ...)
    is_system_account: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Aggregation-only node
    is_header: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    journal_lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_postable(self) -> bool:
        """Live, active and not a header."""
        return not self.is_header and self.is_active and self.deleted_at is None
