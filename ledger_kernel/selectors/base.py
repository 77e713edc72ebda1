"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only, tenant-scoped query
    selectors.
Architecture position: Kernel > Selectors.  May import db/, models/ and
    domain/ DTOs.  MUST NOT import services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Every query filters on ``self.tenant_id``.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session and a tenant id from the caller, performs read-only
        queries and returns DTOs or ORM rows for display.
    """

    def __init__(self, session: Session, tenant_id: UUID):
        self.session = session
        self.tenant_id = tenant_id
