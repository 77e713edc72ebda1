"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes shared by every ORM model in the
    ledger.  Fixes the primary key convention (uuid4 stored as text), the
    column type used for each Python annotation, and the audit columns that
    tracked tables carry.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    models import from here, nothing here imports models or services.

Invariants enforced:
    - Every row has a uuid4 primary key, portable across PostgreSQL and SQLite.
    - Decimal annotations map to Numeric(20, 2): money is stored with two
      fixed decimal places and is never a float.
    - TrackedBase rows always record who created them.

Failure modes:
    - IntegrityError if created_by_id is missing on a TrackedBase row.

Audit relevance:
    created_at / created_by_id / updated_at / updated_by_id are the audit
    trail for accounts, journal entries and accounting periods.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as its 36-character string form.

    Contract:
        Binds ``uuid.UUID`` values as ``str`` and loads them back as
        ``uuid.UUID``.  ``None`` passes through in both directions.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger tables.

    Contract:
        Subclasses get a uuid4 ``id`` primary key and the annotation map
        below, so ``Mapped[Decimal]`` is a two-place Numeric column and
        ``Mapped[datetime]`` is timezone-aware.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(20, 2),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base adding creation/modification audit columns.

    Guarantees:
        - created_at is stamped by the database on INSERT.
        - updated_at is stamped on INSERT and refreshed on every ORM UPDATE.
        - created_by_id is NOT NULL; updated_by_id is set by services that
          mutate the row.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
