"""
BaseService -- common constructor for tenant-scoped kernel services.

Responsibility:
    Holds the SQLAlchemy session, the tenant the service acts for and the
    injected clock.  Every write-side service in ``ledger_kernel/services/``
    extends it.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back; the caller (``session_scope()``, an API handler, a test)
      owns the boundary so that posting, projection and balance updates
      land together or not at all.
    - Every query a service issues filters on ``self.tenant_id``.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a ``Session`` and a tenant id from the caller and persists
        through ``session.flush()`` only.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide report-style reads; those live in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session, tenant_id: UUID, clock: Clock | None = None):
        self.session = session
        self.tenant_id = tenant_id
        self.clock = clock or SystemClock()
