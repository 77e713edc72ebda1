"""
LedgerProjector -- write side of the per-account ledger projection.

Responsibility:
    Turns the lines of a booked journal entry into ``ledger_transactions``
    rows carrying a running balance, and regenerates the projection (and the
    monthly balance cache) from the journal on demand.

Architecture position:
    Kernel > Services.  ``project()`` is called only by
    JournalEntryService.post_entry(); ``rebuild()`` by
    ReconciliationService.auto_fix() and operators.

Invariants enforced:
    - Per account, rows ordered by (transaction_date, entry_seq, line_number)
      form an exact running-balance chain starting at the account's opening
      balance.  A back-dated projection deletes the rows keyed after it and
      regenerates them on top of the new rows.
    - project() is idempotent: an entry that already has rows is skipped.
    - Row ids are UUID5 of the journal line id and created_at is the entry's
      posted_at, so rebuild() produces identical rows on every run.
    - Projection holds the tenant ledger advisory lock in shared mode,
      rebuild in exclusive mode: a rebuild never interleaves with a post.

Failure modes:
    - EntryNotFoundError / EntryNotPostedError from project().
    - AccountNotFoundError from rebuild(account_id) for a foreign account.

Audit relevance:
    The journal is the system of record; this table is disposable and can
    always be regenerated from it.  Every projection and rebuild is logged
    with row counts.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, delete, insert, or_, select

from ledger_kernel.db.locks import advisory_xact_lock, ledger_scope
from ledger_kernel.domain.dtos import RebuildResult
from ledger_kernel.domain.money import signed_amount, to_decimal
from ledger_kernel.exceptions import AccountNotFoundError, EntryNotFoundError, EntryNotPostedError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import BOOKED_STATUSES, JournalEntry, JournalEntryLine
from ledger_kernel.models.ledger import LedgerTransaction, ledger_transaction_id
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.balance_service import AccountBalanceService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.ledger_projector")

_INSERT_CHUNK = 500


def _value(v):
    return getattr(v, "value", v)


def _key_before(key: tuple[date, int, int]):
    d, seq, line = key
    return or_(
        LedgerTransaction.transaction_date < d,
        and_(LedgerTransaction.transaction_date == d, LedgerTransaction.entry_seq < seq),
        and_(
            LedgerTransaction.transaction_date == d,
            LedgerTransaction.entry_seq == seq,
            LedgerTransaction.line_number < line,
        ),
    )


def _key_after(key: tuple[date, int, int]):
    d, seq, line = key
    return or_(
        LedgerTransaction.transaction_date > d,
        and_(LedgerTransaction.transaction_date == d, LedgerTransaction.entry_seq > seq),
        and_(
            LedgerTransaction.transaction_date == d,
            LedgerTransaction.entry_seq == seq,
            LedgerTransaction.line_number > line,
        ),
    )


def _order_key(row: dict) -> tuple[date, int, int]:
    return (row["transaction_date"], row["entry_seq"], row["line_number"])


class LedgerProjector(BaseService):
    """
    Projection of booked journal lines onto per-account ledgers.

    Guarantees:
        - The only writer of ``ledger_transactions``.
        - Rows are inserted and bulk-deleted, never updated.
    """

    def _row(self, entry: JournalEntry, line: JournalEntryLine, account: Account) -> dict:
        return {
            "id": ledger_transaction_id(line.id),
            "tenant_id": self.tenant_id,
            "account_id": account.id,
            "journal_entry_id": entry.id,
            "journal_entry_line_id": line.id,
            "transaction_date": entry.entry_date,
            "entry_seq": entry.seq,
            "line_number": line.line_number,
            "entry_number": entry.entry_number,
            "description": line.description or entry.description,
            "reference": entry.reference,
            "source_type": _value(entry.source_type),
            "source_id": entry.source_id,
            "debit_amount": to_decimal(line.debit_amount),
            "credit_amount": to_decimal(line.credit_amount),
            "running_balance": None,
            "account_code": account.code,
            "account_name": account.name,
            "account_type": _value(account.account_type),
            "normal_balance": _value(account.normal_balance),
            "created_at": entry.posted_at or self.clock.now(),
        }

    def _insert(self, rows: list[dict]) -> None:
        for start in range(0, len(rows), _INSERT_CHUNK):
            self.session.execute(insert(LedgerTransaction), rows[start : start + _INSERT_CHUNK])

    def _accounts(self, account_ids) -> dict[UUID, Account]:
        ids = list(set(account_ids))
        if not ids:
            return {}
        accounts = self.session.execute(
            select(Account).where(Account.tenant_id == self.tenant_id, Account.id.in_(ids))
        ).scalars().all()
        return {a.id: a for a in accounts}

    # Incremental projection

    def project(self, entry_id: UUID) -> int:
        """
        Project one booked entry.

        Returns:
            Number of new ledger rows (0 when the entry was already projected).
        """
        entry = JournalSelector(self.session, self.tenant_id).get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        if _value(entry.status) not in BOOKED_STATUSES:
            raise EntryNotPostedError(str(entry_id), _value(entry.status))

        advisory_xact_lock(self.session, ledger_scope(self.tenant_id), shared=True)

        already = self.session.execute(
            select(LedgerTransaction.id)
            .where(
                LedgerTransaction.tenant_id == self.tenant_id,
                LedgerTransaction.journal_entry_id == entry.id,
            )
            .limit(1)
        ).first()
        if already is not None:
            logger.debug("ledger_projection_skipped", extra={"entry_number": entry.entry_number})
            return 0

        accounts = self._accounts(line.account_id for line in entry.lines)
        new_rows: dict[UUID, list[dict]] = defaultdict(list)
        for line in sorted(entry.lines, key=lambda l: l.line_number):
            account = accounts.get(line.account_id)
            if account is None:
                raise AccountNotFoundError(str(line.account_id))
            new_rows[account.id].append(self._row(entry, line, account))

        regenerated = 0
        to_insert: list[dict] = []
        for account_id, rows in new_rows.items():
            account = accounts[account_id]
            first_key = min(_order_key(r) for r in rows)

            previous = self.session.execute(
                select(LedgerTransaction.running_balance)
                .where(
                    LedgerTransaction.tenant_id == self.tenant_id,
                    LedgerTransaction.account_id == account_id,
                    _key_before(first_key),
                )
                .order_by(
                    LedgerTransaction.transaction_date.desc(),
                    LedgerTransaction.entry_seq.desc(),
                    LedgerTransaction.line_number.desc(),
                )
                .limit(1)
            ).scalar_one_or_none()
            balance = to_decimal(account.opening_balance) if previous is None else to_decimal(previous)

            # Back-dated: rows keyed after this entry are regenerated
            later = self.session.execute(
                select(LedgerTransaction).where(
                    LedgerTransaction.tenant_id == self.tenant_id,
                    LedgerTransaction.account_id == account_id,
                    _key_after(first_key),
                )
            ).scalars().all()
            columns = [attr.key for attr in LedgerTransaction.__mapper__.column_attrs]
            later_rows = [{col: getattr(tx, col) for col in columns} for tx in later]
            if later_rows:
                self.session.execute(
                    delete(LedgerTransaction)
                    .where(LedgerTransaction.id.in_([r["id"] for r in later_rows]))
                    .execution_options(synchronize_session="fetch")
                )
                regenerated += len(later_rows)

            for row in sorted(rows + later_rows, key=_order_key):
                balance += signed_amount(
                    to_decimal(row["debit_amount"]),
                    to_decimal(row["credit_amount"]),
                    account.normal_balance,
                )
                row["running_balance"] = balance
                to_insert.append(row)

        self._insert(to_insert)
        self.session.flush()

        created = sum(len(rows) for rows in new_rows.values())
        logger.info(
            "ledger_projected",
            extra={
                "tenant_id": str(self.tenant_id),
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "rows_created": created,
                "rows_regenerated": regenerated,
            },
        )
        return created

    # Full replay

    def rebuild(self, account_id: UUID | None = None) -> RebuildResult:
        """
        Delete and regenerate the projection for the tenant or one account.

        Replays every posted and reversed entry in (entry_date, seq) order,
        each account starting from its opening balance, then regenerates
        the monthly balance cache for the same scope.
        """
        advisory_xact_lock(self.session, ledger_scope(self.tenant_id), shared=False)

        if account_id is not None:
            exists = self.session.execute(
                select(Account.id).where(Account.id == account_id, Account.tenant_id == self.tenant_id)
            ).first()
            if exists is None:
                raise AccountNotFoundError(str(account_id))

        scope = delete(LedgerTransaction).where(LedgerTransaction.tenant_id == self.tenant_id)
        if account_id is not None:
            scope = scope.where(LedgerTransaction.account_id == account_id)
        rows_deleted = self.session.execute(
            scope.execution_options(synchronize_session="fetch")
        ).rowcount or 0

        entries = JournalSelector(self.session, self.tenant_id).booked_entries_in_replay_order()
        accounts = self._accounts(
            line.account_id for entry in entries for line in entry.lines
        )

        balances: dict[UUID, Decimal] = {}
        rows: list[dict] = []
        for entry in entries:
            for line in sorted(entry.lines, key=lambda l: l.line_number):
                if account_id is not None and line.account_id != account_id:
                    continue
                account = accounts.get(line.account_id)
                if account is None:
                    raise AccountNotFoundError(str(line.account_id))
                balance = balances.get(account.id, to_decimal(account.opening_balance))
                balance += signed_amount(
                    to_decimal(line.debit_amount),
                    to_decimal(line.credit_amount),
                    account.normal_balance,
                )
                balances[account.id] = balance
                row = self._row(entry, line, account)
                row["running_balance"] = balance
                rows.append(row)

        self._insert(rows)
        self.session.flush()
        balance_rows = AccountBalanceService(self.session, self.tenant_id, self.clock).rebuild(account_id)

        result = RebuildResult(
            rows_deleted=rows_deleted,
            rows_created=len(rows),
            accounts_rebuilt=1 if account_id is not None else len(balances),
            account_id=account_id,
            balance_rows_created=balance_rows,
        )
        logger.info(
            "ledger_rebuilt",
            extra={
                "tenant_id": str(self.tenant_id),
                "account_id": str(account_id) if account_id else None,
                "rows_deleted": result.rows_deleted,
                "rows_created": result.rows_created,
                "accounts_rebuilt": result.accounts_rebuilt,
                "balance_rows_created": result.balance_rows_created,
            },
        )
        return result
