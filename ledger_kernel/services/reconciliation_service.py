"""
ReconciliationService -- detect and repair ledger drift.

Responsibility:
    Compares the journal (system of record) with the ledger projection,
    per account and in aggregate, and repairs drift by rebuilding.

Architecture position:
    Kernel > Services.  reconcile() is read-only; auto_fix() delegates to
    LedgerProjector.rebuild().

Invariants enforced:
    - Drift is data: it is logged at WARNING and returned in the report,
      never raised.
    - Repair is a rebuild from the journal; rows are never patched one by
      one.
"""

from uuid import UUID

from ledger_kernel.domain.dtos import (
    AccountDiscrepancy,
    RebuildResult,
    ReconciliationReport,
)
from ledger_kernel.domain.money import ZERO, format_money, signed_amount, to_decimal
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_projector import LedgerProjector

logger = get_logger("services.reconciliation")


class ReconciliationService(BaseService):
    def reconcile(self, account_id: UUID | None = None) -> ReconciliationReport:
        """
        Compare journal-implied balances with ledger running balances.

        For every live account (or just ``account_id``): journal balance is
        the opening balance plus the signed lines of posted and reversed
        entries; ledger balance is the last running balance, or the opening
        balance when the account has no rows.
        """
        journal = JournalSelector(self.session, self.tenant_id)
        ledger = LedgerSelector(self.session, self.tenant_id)

        accounts = ledger.account_activity(include_headers=True, account_id=account_id)
        booked = journal.booked_activity(account_id=account_id)
        last_balances = ledger.ledger_balances()

        discrepancies = []
        for account in accounts:
            debit, credit = booked.get(account.account_id, (ZERO, ZERO))
            journal_balance = account.opening_balance + signed_amount(
                debit, credit, account.normal_balance
            )
            ledger_balance = last_balances.get(account.account_id, account.opening_balance)
            if journal_balance != ledger_balance:
                discrepancies.append(
                    AccountDiscrepancy(
                        account_id=account.account_id,
                        account_code=account.code,
                        account_name=account.name,
                        journal_balance=journal_balance,
                        ledger_balance=to_decimal(ledger_balance),
                    )
                )

        journal_debit = sum((d for d, _ in booked.values()), ZERO)
        journal_credit = sum((c for _, c in booked.values()), ZERO)
        ledger_debit, ledger_credit = ledger.ledger_totals(account_id)

        report = ReconciliationReport(
            tenant_id=self.tenant_id,
            checked_at=self.clock.now(),
            accounts_checked=len(accounts),
            discrepancies=tuple(discrepancies),
            journal_total_debit=journal_debit,
            journal_total_credit=journal_credit,
            ledger_total_debit=ledger_debit,
            ledger_total_credit=ledger_credit,
        )

        if report.is_clean:
            logger.info(
                "reconciliation_clean",
                extra={"tenant_id": str(self.tenant_id), "accounts_checked": report.accounts_checked},
            )
        else:
            logger.warning(
                "reconciliation_drift_detected",
                extra={
                    "tenant_id": str(self.tenant_id),
                    "accounts_checked": report.accounts_checked,
                    "discrepancy_count": len(report.discrepancies),
                    "account_codes": [d.account_code for d in report.discrepancies],
                    "journal_total_debit": format_money(journal_debit),
                    "ledger_total_debit": format_money(ledger_debit),
                    "journal_total_credit": format_money(journal_credit),
                    "ledger_total_credit": format_money(ledger_credit),
                },
            )
        return report

    def auto_fix(self, account_ids: list[UUID] | None = None) -> list[RebuildResult]:
        """Rebuild the whole tenant ledger, or each listed account."""
        projector = LedgerProjector(self.session, self.tenant_id, self.clock)
        if not account_ids:
            results = [projector.rebuild()]
        else:
            results = [projector.rebuild(account_id) for account_id in account_ids]
        logger.info(
            "reconciliation_auto_fix_completed",
            extra={
                "tenant_id": str(self.tenant_id),
                "rebuilds": len(results),
                "rows_created": sum(r.rows_created for r in results),
            },
        )
        return results
