"""
SequenceService -- monotonic counters via locked rows.

Responsibility:
    Hands out strictly increasing integers per named counter.  Journal entry
    numbers (``JE-{year}-{n:05d}``) draw from one counter per tenant and
    year; the per-tenant creation sequence (``JournalEntry.seq``) draws from
    another.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalEntryService.

Invariants enforced:
    - The next value comes from a counter row read ``FOR UPDATE``; the
      read-max-plus-one pattern is never used, so two concurrent creators
      can never compute the same number.
    - The increment is only visible after the caller's transaction commits;
      a rollback returns the value.

Failure modes:
    - IntegrityError while two transactions create the same counter row:
      handled by rolling back a savepoint and re-reading under lock.

Audit relevance:
    Allocation is logged at DEBUG with the counter name and value.
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One named counter. Row-level locking keeps it monotonic."""

    __tablename__ = "sequence_counters"

    # e.g. "je:{tenant}:2025", "seq:{tenant}"
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


def entry_number_counter(tenant_id: UUID, year: int) -> str:
    return f"je:{tenant_id}:{year}"


def entry_seq_counter(tenant_id: UUID) -> str:
    return f"seq:{tenant_id}"


class SequenceService:
    """
    Transactional named counters.

    Guarantees:
        - Strictly monotonic values per name via a locked counter row.
        - Gap-free under normal operation; a rolled-back transaction
          returns its value.

    Usage:
        n = SequenceService(session).next_value(entry_number_counter(tenant_id, 2025))
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the counter row, increment it, return the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than every value
              previously returned for ``sequence_name``.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use; another transaction may be creating it too
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value
