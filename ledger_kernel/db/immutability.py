"""
ORM-level immutability enforcement for booked records.

Posted journal entries are never edited; they are reversed.  Ledger
transactions are a projection and are never edited either; they are
regenerated.  These listeners stop application code from doing otherwise
through the ORM unit of work:

    session.flush()
         |
         v
    [before_update / before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities:

    Entity            | When immutable              | Allowed changes
    ------------------|-----------------------------|-------------------------------
    JournalEntry      | status posted or reversed   | updated_at, updated_by_id
    JournalEntryLine  | parent entry booked         | none (no update, no delete)
    LedgerTransaction | always                      | none

Sanctioned state changes (draft -> posted, posted -> reversed) and the
rebuild's wholesale delete of ledger rows go through bulk ``update()`` /
``delete()`` statements guarded by a WHERE clause on the expected status,
which do not pass through these mapper events.

Usage:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_BOOKED = ("posted", "reversed")
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_registered = False


def _status_value(status) -> str | None:
    return getattr(status, "value", status)


def _was_booked(target) -> bool:
    history = get_history(target, "status")
    if history.deleted:
        return _status_value(history.deleted[0]) in _BOOKED
    return _status_value(target.status) in _BOOKED


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_journal_entry_update(mapper, connection, target):
    """Booked entries accept audit-field changes only."""
    if not _was_booked(target):
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _blocked(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a {_status_value(target.status)} journal entry",
                field=attr.key,
            )


def _check_journal_entry_delete(mapper, connection, target):
    if _was_booked(target):
        _blocked(
            "JournalEntry",
            target.id,
            "DELETE",
            f"Cannot delete a {_status_value(target.status)} journal entry",
        )


def _parent_is_booked(connection, target) -> bool:
    from ledger_kernel.models.journal import JournalEntry

    row = connection.execute(
        JournalEntry.__table__.select()
        .with_only_columns(JournalEntry.__table__.c.status)
        .where(JournalEntry.__table__.c.id == str(target.entry_id))
    ).first()
    return row is not None and row[0] in _BOOKED


def _check_journal_line_update(mapper, connection, target):
    if _parent_is_booked(connection, target):
        _blocked(
            "JournalEntryLine",
            target.id,
            "UPDATE",
            "Cannot modify a line of a booked journal entry",
        )


def _check_journal_line_delete(mapper, connection, target):
    if _parent_is_booked(connection, target):
        _blocked(
            "JournalEntryLine",
            target.id,
            "DELETE",
            "Cannot delete a line of a booked journal entry",
        )


def _check_ledger_transaction_update(mapper, connection, target):
    _blocked(
        "LedgerTransaction",
        target.id,
        "UPDATE",
        "Ledger transactions are immutable; rebuild the ledger instead",
    )


def _check_ledger_transaction_delete(mapper, connection, target):
    _blocked(
        "LedgerTransaction",
        target.id,
        "DELETE",
        "Ledger transactions are immutable; rebuild the ledger instead",
    )


def _listeners():
    from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
    from ledger_kernel.models.ledger import LedgerTransaction

    return [
        (JournalEntry, "before_update", _check_journal_entry_update),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalEntryLine, "before_update", _check_journal_line_update),
        (JournalEntryLine, "before_delete", _check_journal_line_delete),
        (LedgerTransaction, "before_update", _check_ledger_transaction_update),
        (LedgerTransaction, "before_delete", _check_ledger_transaction_delete),
    ]


def register_immutability_listeners() -> None:
    """Register all immutability listeners.  Safe to call more than once."""
    global _registered
    if _registered:
        return
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)
    _registered = True
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the listeners (tests only)."""
    global _registered
    for target, name, fn in _listeners():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
    _registered = False


def immutability_listeners_registered() -> bool:
    return _registered
