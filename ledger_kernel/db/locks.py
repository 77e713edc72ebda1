"""
Module: ledger_kernel.db.locks
Responsibility: Transaction-scoped advisory locks for ledger-wide critical
    sections that have no single row to lock (ledger rebuild versus
    projection, period close versus posting).
Architecture position: Kernel > DB.  Used by services only.

Invariants enforced:
    - Locks are ``pg_advisory_xact_lock`` / ``pg_advisory_xact_lock_shared``:
      they are released automatically at COMMIT or ROLLBACK, so no code path
      can leak one.
    - Lock keys are derived from a stable hash of a string scope, identical
      across processes.

Failure modes:
    - Blocks until the lock is granted; a statement_timeout configured on the
      connection surfaces as OperationalError (safe to retry).
    - On non-PostgreSQL dialects the call is a no-op.  SQLite serialises
      writers at the database level.
"""

import hashlib

from sqlalchemy import text
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.locks")


def lock_key(scope: str) -> int:
    """Map a lock scope string to a signed 63-bit advisory lock key."""
    digest = hashlib.blake2b(scope.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=False) & 0x7FFF_FFFF_FFFF_FFFF


def advisory_xact_lock(session: Session, scope: str, shared: bool = False) -> None:
    """
    Acquire a transaction-scoped advisory lock on ``scope``.

    Shared holders run concurrently with each other and exclude an
    exclusive holder; an exclusive holder excludes everyone.
    """
    if session.get_bind().dialect.name != "postgresql":
        return

    fn = "pg_advisory_xact_lock_shared" if shared else "pg_advisory_xact_lock"
    session.execute(text(f"SELECT {fn}(:key)"), {"key": lock_key(scope)})
    logger.debug(
        "advisory_lock_acquired",
        extra={"scope": scope, "shared": shared},
    )


def ledger_scope(tenant_id) -> str:
    return f"ledger:{tenant_id}"


def period_scope(tenant_id, year: int, month: int) -> str:
    return f"period:{tenant_id}:{year:04d}-{month:02d}"
