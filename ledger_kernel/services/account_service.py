"""
ChartOfAccountsService -- tenant chart of accounts lifecycle.

Responsibility:
    Creates, edits, soft-deletes and seeds accounts, keeping the
    materialized hierarchy (``level`` / ``path``) consistent with the parent
    chain, and serves the chart as flat lists or a nested tree.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - A live account code is unique per tenant (service check, backed by the
      partial unique index).
    - level = parent.level + 1 and path = parent.path + "/" + code, for the
      account and, after a code or parent change, every descendant.
    - The parent graph is acyclic.
    - System accounts, accounts with live children and accounts referenced
      by journal lines are never deleted.
    - Seeding is all-or-nothing (SAVEPOINT) and inserts parents before
      children.

Failure modes:
    - DuplicateAccountCodeError, AccountNotFoundError,
      InvalidAccountHierarchyError, SystemAccountProtectedError,
      AccountHasChildrenError, AccountReferencedError,
      ChartAlreadySeededError.

Audit relevance:
    created_by_id / updated_by_id record the actor; creation, deletion and
    seeding are logged with the account code.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import AccountNode, AccountSpec
from ledger_kernel.domain.money import has_money_precision, to_decimal
from ledger_kernel.exceptions import (
    AccountHasChildrenError,
    AccountNotFoundError,
    AccountReferencedError,
    ChartAlreadySeededError,
    DuplicateAccountCodeError,
    InvalidAccountHierarchyError,
    SystemAccountProtectedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    DEFAULT_NORMAL_BALANCE,
    Account,
    AccountSubType,
    AccountType,
    NormalBalance,
    SstTaxCode,
)
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.accounts")

_EDITABLE_FIELDS = frozenset(
    {
        "code",
        "name",
        "description",
        "parent_id",
        "sub_type",
        "sst_tax_code",
        "is_active",
        "is_header",
        "opening_balance",
        "account_type",
        "normal_balance",
    }
)


def _coerce_enum(enum_cls, value, field: str):
    if value is None:
        return None
    try:
        return enum_cls(getattr(value, "value", value)).value
    except ValueError:
        raise ValueError(f"Invalid {field}: {value!r}") from None


def _check_opening_balance(code: str, value) -> Decimal:
    amount = to_decimal(value)
    if not has_money_precision(amount):
        raise ValueError(f"Account {code}: opening balance has more than two decimal places")
    return amount


class ChartOfAccountsService(BaseService):
    """
    Chart-of-accounts manager for one tenant.

    Contract:
        Every lookup is tenant-scoped and ignores soft-deleted rows unless
        stated otherwise; another tenant's account is reported as not found.

    Non-goals:
        - Does NOT check balances or period state; accounts carry no
          period-sensitive data apart from ``opening_balance``.
    """

    def __init__(self, session: Session, tenant_id: UUID, clock: Clock | None = None):
        super().__init__(session, tenant_id, clock)
        self._journal = JournalSelector(session, tenant_id)

    # Lookups

    def _live_query(self):
        return select(Account).where(
            Account.tenant_id == self.tenant_id,
            Account.deleted_at.is_(None),
        )

    def get_account(self, account_id: UUID, include_deleted: bool = False) -> Account:
        query = select(Account).where(
            Account.id == account_id,
            Account.tenant_id == self.tenant_id,
        )
        if not include_deleted:
            query = query.where(Account.deleted_at.is_(None))
        account = self.session.execute(query).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_account_by_code(self, code: str) -> Account:
        account = self.find_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def find_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            self._live_query().where(Account.code == code)
        ).scalar_one_or_none()

    def list_accounts(
        self,
        include_deleted: bool = False,
        account_type: AccountType | str | None = None,
        postable_only: bool = False,
    ) -> list[Account]:
        query = select(Account).where(Account.tenant_id == self.tenant_id)
        if not include_deleted:
            query = query.where(Account.deleted_at.is_(None))
        if account_type is not None:
            query = query.where(
                Account.account_type == _coerce_enum(AccountType, account_type, "account_type")
            )
        if postable_only:
            query = query.where(
                Account.is_header.is_(False),
                Account.is_active.is_(True),
                Account.deleted_at.is_(None),
            )
        return list(self.session.execute(query.order_by(Account.code)).scalars().all())

    def get_tree(self) -> list[AccountNode]:
        """Live accounts as nested nodes, roots and children ordered by code."""
        accounts = self.list_accounts()
        by_parent: dict[UUID | None, list[Account]] = {}
        live_ids = {a.id for a in accounts}
        for account in accounts:
            parent = account.parent_id if account.parent_id in live_ids else None
            by_parent.setdefault(parent, []).append(account)

        def build(account: Account) -> AccountNode:
            children = sorted(by_parent.get(account.id, []), key=lambda a: a.code)
            return AccountNode(
                id=account.id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                level=account.level,
                path=account.path,
                is_header=account.is_header,
                is_active=account.is_active,
                is_system_account=account.is_system_account,
                children=tuple(build(child) for child in children),
            )

        return [build(root) for root in sorted(by_parent.get(None, []), key=lambda a: a.code)]

    def _children(self, account_id: UUID) -> list[Account]:
        return list(
            self.session.execute(
                self._live_query().where(Account.parent_id == account_id)
            ).scalars().all()
        )

    def _ensure_code_free(self, code: str, exclude_id: UUID | None = None) -> None:
        existing = self.find_by_code(code)
        if existing is not None and existing.id != exclude_id:
            logger.warning(
                "account_code_duplicate_rejected",
                extra={"tenant_id": str(self.tenant_id), "account_code": code},
            )
            raise DuplicateAccountCodeError(code)

    # Create

    def _build_account(self, spec: AccountSpec, parent: Account | None, actor_id: UUID) -> Account:
        account_type = _coerce_enum(AccountType, spec.account_type, "account_type")
        if account_type is None:
            raise ValueError(f"Account {spec.code}: account_type is required")
        normal_balance = _coerce_enum(NormalBalance, spec.normal_balance, "normal_balance")
        if normal_balance is None:
            normal_balance = DEFAULT_NORMAL_BALANCE[AccountType(account_type)].value

        return Account(
            id=uuid4(),
            tenant_id=self.tenant_id,
            code=spec.code,
            name=spec.name.strip(),
            description=spec.description,
            account_type=account_type,
            normal_balance=normal_balance,
            sub_type=_coerce_enum(AccountSubType, spec.sub_type, "sub_type"),
            sst_tax_code=_coerce_enum(SstTaxCode, spec.sst_tax_code, "sst_tax_code"),
            parent_id=parent.id if parent is not None else None,
            level=parent.level + 1 if parent is not None else 0,
            path=f"{parent.path}/{spec.code}" if parent is not None else spec.code,
            is_active=spec.is_active,
            is_system_account=spec.is_system_account,
            is_header=spec.is_header,
            opening_balance=_check_opening_balance(spec.code, spec.opening_balance),
            created_by_id=actor_id,
        )

    def create_account(self, spec: AccountSpec, actor_id: UUID) -> Account:
        """
        Create one account.

        The normal balance defaults from the account type (asset/expense
        debit, everything else credit).  The parent, given by id or code,
        must be a live account of this tenant.

        Raises:
            DuplicateAccountCodeError: the code is taken by a live account.
            AccountNotFoundError: the parent does not exist for this tenant.
        """
        self._ensure_code_free(spec.code)

        parent = None
        if spec.parent_id is not None:
            parent = self.get_account(spec.parent_id)
        elif spec.parent_code is not None:
            parent = self.get_account_by_code(spec.parent_code)

        account = self._build_account(spec, parent, actor_id)
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "tenant_id": str(self.tenant_id),
                "account_id": str(account.id),
                "account_code": account.code,
                "account_type": account.account_type,
                "parent_code": parent.code if parent is not None else None,
            },
        )
        return account

    # Update

    def _ancestors(self, account: Account) -> Iterable[Account]:
        seen: set[UUID] = set()
        current = account
        while current.parent_id is not None and current.parent_id not in seen:
            seen.add(current.parent_id)
            current = self.get_account(current.parent_id, include_deleted=True)
            yield current

    def _refresh_hierarchy(self, account: Account, actor_id: UUID) -> int:
        """Recompute level/path for ``account`` and cascade to descendants."""
        parent = (
            self.get_account(account.parent_id, include_deleted=True)
            if account.parent_id is not None
            else None
        )
        account.level = parent.level + 1 if parent is not None else 0
        account.path = f"{parent.path}/{account.code}" if parent is not None else account.code

        updated = 0
        stack = [account]
        while stack:
            node = stack.pop()
            for child in self._children(node.id):
                child.level = node.level + 1
                child.path = f"{node.path}/{child.code}"
                child.updated_by_id = actor_id
                updated += 1
                stack.append(child)
        return updated

    def update_account(self, account_id: UUID, actor_id: UUID, **changes) -> Account:
        """
        Edit an account.

        Editable: code, name, description, parent_id, sub_type,
        sst_tax_code, is_active, is_header; account_type, normal_balance and
        opening_balance only while no journal line references the account.

        Raises:
            ValueError: unknown field.
            DuplicateAccountCodeError: new code taken.
            InvalidAccountHierarchyError: self-parenting or a cycle.
            AccountReferencedError: type, normal-balance or opening-balance
                change, or header conversion, of an account with journal lines.
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update account fields: {', '.join(sorted(unknown))}")

        account = self.get_account(account_id)
        hierarchy_changed = False

        if "code" in changes and changes["code"] != account.code:
            new_code = str(changes["code"]).strip()
            if not new_code:
                raise ValueError("Account code is required")
            self._ensure_code_free(new_code, exclude_id=account.id)
            account.code = new_code
            hierarchy_changed = True

        if "parent_id" in changes and changes["parent_id"] != account.parent_id:
            new_parent_id = changes["parent_id"]
            if new_parent_id is not None:
                if new_parent_id == account.id:
                    raise InvalidAccountHierarchyError(account.code, "an account cannot be its own parent")
                new_parent = self.get_account(new_parent_id)
                if new_parent.id == account.id or any(
                    a.id == account.id for a in self._ancestors(new_parent)
                ):
                    logger.warning(
                        "account_hierarchy_cycle_rejected",
                        extra={"account_code": account.code, "parent_code": new_parent.code},
                    )
                    raise InvalidAccountHierarchyError(
                        account.code,
                        f"making {new_parent.code} the parent would create a cycle",
                    )
            account.parent_id = new_parent_id
            hierarchy_changed = True

        structural = {
            key: changes[key]
            for key in ("account_type", "normal_balance")
            if key in changes and getattr(changes[key], "value", changes[key]) != getattr(account, key)
        }
        if structural or (changes.get("is_header") is True and not account.is_header):
            if self._journal.account_has_lines(account.id):
                action = "change type of" if structural else "convert to header"
                logger.warning(
                    "account_structural_change_rejected",
                    extra={"account_code": account.code, "action": action},
                )
                raise AccountReferencedError(account.code, action)
        if "account_type" in structural:
            account.account_type = _coerce_enum(AccountType, structural["account_type"], "account_type")
        if "normal_balance" in structural:
            account.normal_balance = _coerce_enum(NormalBalance, structural["normal_balance"], "normal_balance")

        if "name" in changes:
            if not changes["name"] or not str(changes["name"]).strip():
                raise ValueError("Account name is required")
            account.name = str(changes["name"]).strip()
        if "description" in changes:
            account.description = changes["description"]
        if "sub_type" in changes:
            account.sub_type = _coerce_enum(AccountSubType, changes["sub_type"], "sub_type")
        if "sst_tax_code" in changes:
            account.sst_tax_code = _coerce_enum(SstTaxCode, changes["sst_tax_code"], "sst_tax_code")
        if "is_active" in changes:
            account.is_active = bool(changes["is_active"])
        if "is_header" in changes:
            account.is_header = bool(changes["is_header"])
        if "opening_balance" in changes:
            opening = _check_opening_balance(account.code, changes["opening_balance"])
            if opening != account.opening_balance and self._journal.account_has_lines(account.id):
                logger.warning(
                    "account_structural_change_rejected",
                    extra={"account_code": account.code, "action": "change opening balance of"},
                )
                raise AccountReferencedError(account.code, "change opening balance of")
            account.opening_balance = opening

        descendants = 0
        if hierarchy_changed:
            descendants = self._refresh_hierarchy(account, actor_id)

        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_updated",
            extra={
                "tenant_id": str(self.tenant_id),
                "account_id": str(account.id),
                "account_code": account.code,
                "fields": sorted(changes),
                "descendants_updated": descendants,
            },
        )
        return account

    # Delete

    def delete_account(self, account_id: UUID, actor_id: UUID) -> Account:
        """
        Soft-delete an account (sets ``deleted_at`` and deactivates it).

        Raises:
            SystemAccountProtectedError, AccountHasChildrenError,
            AccountReferencedError.
        """
        account = self.get_account(account_id)

        if account.is_system_account:
            logger.warning("system_account_delete_rejected", extra={"account_code": account.code})
            raise SystemAccountProtectedError(account.code)

        children = self._children(account.id)
        if children:
            logger.warning(
                "account_with_children_delete_rejected",
                extra={"account_code": account.code, "child_count": len(children)},
            )
            raise AccountHasChildrenError(account.code, len(children))

        if self._journal.account_has_lines(account.id):
            logger.warning("referenced_account_delete_rejected", extra={"account_code": account.code})
            raise AccountReferencedError(account.code, "delete")

        account.deleted_at = self.clock.now()
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_deleted",
            extra={
                "tenant_id": str(self.tenant_id),
                "account_id": str(account.id),
                "account_code": account.code,
            },
        )
        return account

    # Seeding

    @staticmethod
    def order_topologically(specs: Iterable[AccountSpec]) -> list[AccountSpec]:
        """
        Parents before children, siblings in template order.

        Raises:
            DuplicateAccountCodeError: a code appears twice.
            InvalidAccountHierarchyError: unknown parent code or a cycle.
        """
        specs = list(specs)
        by_code: dict[str, AccountSpec] = {}
        for spec in specs:
            if spec.code in by_code:
                raise DuplicateAccountCodeError(spec.code)
            by_code[spec.code] = spec

        for spec in specs:
            if spec.parent_code is not None and spec.parent_code not in by_code:
                raise InvalidAccountHierarchyError(
                    spec.code, f"parent code {spec.parent_code} is not in the chart"
                )

        ordered: list[AccountSpec] = []
        state: dict[str, str] = {}

        def visit(spec: AccountSpec) -> None:
            mark = state.get(spec.code)
            if mark == "done":
                return
            if mark == "visiting":
                raise InvalidAccountHierarchyError(spec.code, "parent chain forms a cycle")
            state[spec.code] = "visiting"
            if spec.parent_code is not None:
                visit(by_code[spec.parent_code])
            state[spec.code] = "done"
            ordered.append(spec)

        for spec in specs:
            visit(spec)
        return ordered

    def seed_default_chart(self, specs: Iterable[AccountSpec], actor_id: UUID) -> list[Account]:
        """
        Install a chart template for a tenant that has no accounts yet.

        Every account is inserted inside one SAVEPOINT; any failure rolls the
        whole chart back and re-raises.

        Raises:
            ChartAlreadySeededError: the tenant already has accounts.
        """
        existing = self.session.execute(
            select(func.count(Account.id)).where(Account.tenant_id == self.tenant_id)
        ).scalar_one()
        if existing:
            logger.warning(
                "chart_seed_rejected",
                extra={"tenant_id": str(self.tenant_id), "account_count": existing},
            )
            raise ChartAlreadySeededError(str(self.tenant_id), existing)

        ordered = self.order_topologically(specs)

        created: list[Account] = []
        savepoint = self.session.begin_nested()
        try:
            by_code: dict[str, Account] = {}
            for spec in ordered:
                parent = by_code.get(spec.parent_code) if spec.parent_code else None
                account = self._build_account(spec, parent, actor_id)
                self.session.add(account)
                by_code[spec.code] = account
                created.append(account)
            self.session.flush()
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            logger.error(
                "chart_seed_failed",
                extra={"tenant_id": str(self.tenant_id), "accounts_attempted": len(ordered)},
                exc_info=True,
            )
            raise

        logger.info(
            "chart_seeded",
            extra={"tenant_id": str(self.tenant_id), "account_count": len(created)},
        )
        return created
