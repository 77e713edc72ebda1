"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates report generation -- trial balance, profit and loss (plain and
comparative), balance sheet (plain and comparative) and the indirect cash
flow statement -- by bridging ``LedgerSelector.account_activity`` to the
pure transformation functions in ``statements.py``.  This is a
**read-only** service.

Architecture position
---------------------
**Modules layer**.  ``ReportingService`` is the sole public entry point
for report generation.  Constructor: ``session`` + ``tenant_id`` +
``clock`` + ``config``.

Invariants enforced
-------------------
* Every report reads per-account totals from one grouped query per date
  window; there are no per-account query loops.
* Header and soft-deleted accounts never appear.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* ``end < start`` for any date range -> ``ValueError`` before any query.
* Selector query failure -> exception propagates (read-only, nothing to
  roll back).
"""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.money import format_money
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowStatementReport,
    ComparativeBalanceSheetReport,
    ComparativeProfitAndLossReport,
    ProfitAndLossReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_comparative_balance_sheet,
    build_comparative_profit_and_loss,
    build_profit_and_loss,
    build_trial_balance,
    render_to_dict,
)

logger = get_logger("modules.reporting.service")


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise ValueError(f"Report range end {end.isoformat()} is before start {start.isoformat()}")


class ReportingService:
    """
    Financial report generation for one tenant.

    Contract
    --------
    * Every public method returns a frozen report DTO.
    * All methods are read-only.

    Non-goals
    ---------
    * Does NOT enforce period status: closed and locked months are
      reported like any other.
    """

    def __init__(
        self,
        session: Session,
        tenant_id: UUID,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session, tenant_id)

    @property
    def config(self) -> ReportingConfig:
        return self._config

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _build_metadata(
        self,
        report_type: ReportType,
        as_of_date: date | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
        comparative_start: date | None = None,
        comparative_end: date | None = None,
    ) -> ReportMetadata:
        """Build report metadata with injected clock timestamp."""
        return ReportMetadata(
            report_type=report_type,
            tenant_id=self._tenant_id,
            entity_name=self._config.entity_name,
            currency=self._config.default_currency,
            generated_at=self._clock.now().isoformat(),
            as_of_date=as_of_date,
            period_start=period_start,
            period_end=period_end,
            comparative_start=comparative_start,
            comparative_end=comparative_end,
        )

    def fiscal_year_start(self, as_of: date) -> date:
        """First day of the fiscal year containing ``as_of``."""
        start_month = self._config.fiscal_year_start_month
        year = as_of.year if as_of.month >= start_month else as_of.year - 1
        return date(year, start_month, 1)

    # =========================================================================
    # Public API
    # =========================================================================

    def trial_balance(self, as_of: date) -> TrialBalanceReport:
        """
        Trial balance as of ``as_of`` (inclusive).

        Returns:
            TrialBalanceReport; ``is_balanced`` uses the one-cent tolerance.
        """
        activities = self._ledger.account_activity(as_of=as_of)
        report = build_trial_balance(
            activities,
            self._build_metadata(ReportType.TRIAL_BALANCE, as_of_date=as_of),
        )
        logger.info(
            "trial_balance_generated",
            extra={
                "tenant_id": str(self._tenant_id),
                "as_of_date": as_of.isoformat(),
                "line_count": len(report.lines),
                "total_debits": format_money(report.total_debits),
                "total_credits": format_money(report.total_credits),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def profit_and_loss(self, start: date, end: date) -> ProfitAndLossReport:
        """Profit and loss over ``[start, end]``."""
        _check_range(start, end)
        window = self._ledger.account_activity(as_of=end, start=start)
        report = build_profit_and_loss(
            window,
            self._config,
            self._build_metadata(ReportType.PROFIT_AND_LOSS, period_start=start, period_end=end),
        )
        logger.info(
            "profit_and_loss_generated",
            extra={
                "tenant_id": str(self._tenant_id),
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "net_profit": format_money(report.net_profit),
            },
        )
        return report

    def comparative_profit_and_loss(
        self,
        current_start: date,
        current_end: date,
        previous_start: date,
        previous_end: date,
    ) -> ComparativeProfitAndLossReport:
        """Two P&L reports with absolute and percentage variance per line."""
        _check_range(current_start, current_end)
        _check_range(previous_start, previous_end)
        current = self.profit_and_loss(current_start, current_end)
        previous = self.profit_and_loss(previous_start, previous_end)
        return build_comparative_profit_and_loss(
            current,
            previous,
            self._build_metadata(
                ReportType.COMPARATIVE_PROFIT_AND_LOSS,
                period_start=current_start,
                period_end=current_end,
                comparative_start=previous_start,
                comparative_end=previous_end,
            ),
        )

    def balance_sheet(self, as_of: date) -> BalanceSheetReport:
        """
        Classified balance sheet as of ``as_of``.

        Current-year earnings come from a fresh P&L over the fiscal year to
        date; earlier years' earnings are folded into retained earnings.
        """
        fy_start = self.fiscal_year_start(as_of)
        balances = self._ledger.account_activity(as_of=as_of)
        prior = self._ledger.account_activity(as_of=fy_start - timedelta(days=1))
        year_to_date = self.profit_and_loss(fy_start, as_of)

        report = build_balance_sheet(
            balances,
            prior,
            year_to_date.net_profit,
            self._config,
            self._build_metadata(
                ReportType.BALANCE_SHEET,
                as_of_date=as_of,
                period_start=fy_start,
                period_end=as_of,
            ),
        )
        log = logger.info if report.is_balanced else logger.warning
        log(
            "balance_sheet_generated",
            extra={
                "tenant_id": str(self._tenant_id),
                "as_of_date": as_of.isoformat(),
                "total_assets": format_money(report.total_assets),
                "total_liabilities_and_equity": format_money(report.total_liabilities_and_equity),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def comparative_balance_sheet(
        self,
        as_of: date,
        compare_as_of: date,
    ) -> ComparativeBalanceSheetReport:
        current = self.balance_sheet(as_of)
        previous = self.balance_sheet(compare_as_of)
        return build_comparative_balance_sheet(
            current,
            previous,
            self._build_metadata(
                ReportType.COMPARATIVE_BALANCE_SHEET,
                as_of_date=as_of,
                comparative_end=compare_as_of,
            ),
        )

    def cash_flow_statement(self, start: date, end: date) -> CashFlowStatementReport:
        """Indirect-method cash flow statement over ``[start, end]``."""
        _check_range(start, end)
        window = self._ledger.account_activity(as_of=end, start=start)
        opening = self._ledger.account_activity(as_of=start - timedelta(days=1))
        closing = self._ledger.account_activity(as_of=end)

        report = build_cash_flow_statement(
            window,
            opening,
            closing,
            self._config,
            self._build_metadata(ReportType.CASH_FLOW, period_start=start, period_end=end),
        )
        log = logger.info if report.reconciles else logger.warning
        log(
            "cash_flow_statement_generated",
            extra={
                "tenant_id": str(self._tenant_id),
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "net_change_in_cash": format_money(report.net_change_in_cash),
                "reconciles": report.reconciles,
            },
        )
        return report

    @staticmethod
    def to_dict(report: object) -> dict:
        """JSON-safe dict of any report (money as two-place strings)."""
        return render_to_dict(report)
