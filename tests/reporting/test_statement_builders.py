"""
Pure function unit tests for ledger_modules.reporting.statements.

NO database, NO I/O.  Every builder is fed synthetic AccountActivity rows.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from ledger_kernel.domain.dtos import AccountActivity
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import ReportMetadata, ReportType
from ledger_modules.reporting.statements import (
    accumulated_earnings,
    build_balance_sheet,
    build_cash_flow_statement,
    build_comparative_balance_sheet,
    build_comparative_profit_and_loss,
    build_profit_and_loss,
    build_trial_balance,
    compute_net_income,
    debit_side_balance,
    render_to_dict,
    section_amount,
    variance_line,
)

# =========================================================================
# Fixtures / helpers
# =========================================================================

_IDS: dict[str, UUID] = {}

_CHART = {
    "1010": ("Cash on Hand", "asset", "debit", None),
    "1100": ("Accounts Receivable", "asset", "debit", None),
    "1200": ("Inventory", "asset", "debit", None),
    "1500": ("Property, Plant and Equipment", "asset", "debit", "fixed_asset"),
    "1590": ("Accumulated Depreciation", "asset", "credit", "fixed_asset"),
    "2100": ("Accounts Payable", "liability", "credit", None),
    "2700": ("Long-Term Borrowings", "liability", "credit", "non_current_liability"),
    "3100": ("Share Capital", "equity", "credit", None),
    "3200": ("Retained Earnings", "equity", "credit", None),
    "3300": ("Current Year Earnings", "equity", "credit", None),
    "4100": ("Sales Revenue", "revenue", "credit", None),
    "4150": ("Sales Returns", "revenue", "credit", None),
    "4200": ("Service Revenue", "revenue", "credit", None),
    "4900": ("Other Income", "revenue", "credit", None),
    "5050": ("Freight In", "expense", "debit", None),
    "5100": ("Purchases", "expense", "debit", "cost_of_goods_sold"),
    "5200": ("Salaries", "expense", "debit", None),
    "5800": ("Depreciation Expense", "expense", "debit", None),
    "5900": ("Interest Expense", "expense", "debit", None),
    "5960": ("Software Subscriptions", "expense", "debit", "operating_expense"),
}


def _id(code: str) -> UUID:
    return _IDS.setdefault(code, uuid4())


def _act(code: str, debit: str = "0", credit: str = "0", opening: str = "0") -> AccountActivity:
    name, account_type, normal, sub_type = _CHART[code]
    return AccountActivity(
        account_id=_id(code),
        code=code,
        name=name,
        account_type=account_type,
        normal_balance=normal,
        sub_type=sub_type,
        opening_balance=Decimal(opening),
        debit_total=Decimal(debit),
        credit_total=Decimal(credit),
    )


def _config() -> ReportingConfig:
    return ReportingConfig.with_defaults()


def _metadata(report_type: ReportType = ReportType.TRIAL_BALANCE) -> ReportMetadata:
    return ReportMetadata(
        report_type=report_type,
        tenant_id=uuid4(),
        entity_name="Test Sdn Bhd",
        currency="MYR",
        generated_at="2025-01-15T09:00:00+00:00",
        as_of_date=date(2025, 12, 31),
    )


def _amounts(section) -> dict[str, Decimal]:
    return {line.account_code: line.amount for line in section.lines}


# =========================================================================
# Helpers
# =========================================================================


class TestSignHelpers:
    def test_debit_side_balance(self):
        assert debit_side_balance(_act("1010", debit="100")) == Decimal("100")
        assert debit_side_balance(_act("2100", credit="100")) == Decimal("-100")

    def test_contra_asset_section_amount_is_negative(self):
        assert section_amount(_act("1590", credit="250")) == Decimal("-250")

    def test_opening_balance_included(self):
        assert section_amount(_act("3100", credit="100", opening="900")) == Decimal("1000")

    def test_net_income_ignores_opening_balances(self):
        window = [_act("4100", credit="500", opening="9999"), _act("5200", debit="200")]
        assert compute_net_income(window) == Decimal("300")

    def test_accumulated_earnings_includes_opening_balances(self):
        balances = [_act("4100", credit="500", opening="1000"), _act("5200", debit="200")]
        assert accumulated_earnings(balances) == Decimal("1300")

    def test_variance_line(self):
        line = variance_line("Revenue", Decimal("150"), Decimal("100"))
        assert line.variance == Decimal("50")
        assert line.variance_percent == Decimal("50.00")


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


class TestBuildTrialBalance:
    def test_balances_land_in_natural_columns(self):
        report = build_trial_balance(
            [_act("1100", debit="1000"), _act("4100", credit="1000")],
            _metadata(),
        )
        assert report.total_debits == Decimal("1000")
        assert report.total_credits == Decimal("1000")
        assert report.is_balanced
        ar, revenue = report.lines
        assert (ar.account_code, ar.debit_balance, ar.credit_balance) == ("1100", Decimal("1000"), Decimal("0.00"))
        assert (revenue.account_code, revenue.credit_balance) == ("4100", Decimal("1000"))

    def test_negative_balance_lands_in_opposite_column(self):
        report = build_trial_balance(
            [_act("1010", debit="50", credit="80"), _act("2100", debit="30")],
            _metadata(),
        )
        cash, payables = report.lines
        assert cash.credit_balance == Decimal("30")
        assert payables.debit_balance == Decimal("30")
        assert report.is_balanced

    def test_contra_account_in_credit_column(self):
        report = build_trial_balance(
            [_act("1590", credit="200"), _act("5800", debit="200")],
            _metadata(),
        )
        by_code = {line.account_code: line for line in report.lines}
        assert by_code["1590"].credit_balance == Decimal("200")
        assert by_code["5800"].debit_balance == Decimal("200")

    def test_effectively_zero_balances_skipped(self):
        report = build_trial_balance(
            [
                _act("1010", debit="100", credit="100"),
                _act("1100", debit="0.01"),
                _act("4100", credit="0.01"),
            ],
            _metadata(),
        )
        assert report.lines == ()
        assert report.total_debits == Decimal("0")

    def test_lines_sorted_by_code(self):
        report = build_trial_balance(
            [_act("4100", credit="10"), _act("1010", debit="10")],
            _metadata(),
        )
        assert [line.account_code for line in report.lines] == ["1010", "4100"]

    def test_unbalanced_detected(self):
        report = build_trial_balance([_act("1010", debit="10")], _metadata())
        assert not report.is_balanced


# =========================================================================
# 2. PROFIT AND LOSS
# =========================================================================


def _pnl_window() -> list[AccountActivity]:
    return [
        _act("1010", debit="99999"),  # balance sheet accounts are ignored
        _act("4100", credit="10000"),
        _act("4150", debit="100"),
        _act("4900", credit="600"),
        _act("5050", debit="500"),
        _act("5100", debit="3500"),
        _act("5200", debit="2000"),
        _act("5800", debit="300"),
        _act("5960", debit="150"),
        _act("5900", debit="250"),
    ]


class TestBuildProfitAndLoss:
    def test_multi_step_totals(self):
        report = build_profit_and_loss(_pnl_window(), _config(), _metadata(ReportType.PROFIT_AND_LOSS))
        assert report.total_revenue == Decimal("10500")
        assert report.cost_of_goods_sold.total == Decimal("4000")
        assert report.gross_profit == Decimal("6500")
        assert report.operating_expenses.total == Decimal("2450")
        assert report.operating_profit == Decimal("4050")
        assert report.other_expenses.total == Decimal("250")
        assert report.net_profit == Decimal("3800")
        assert report.total_expenses == Decimal("6700")

    def test_contra_revenue_reduces_revenue(self):
        report = build_profit_and_loss(_pnl_window(), _config(), _metadata())
        assert _amounts(report.revenue)["4150"] == Decimal("-100")

    def test_code_range_classification(self):
        report = build_profit_and_loss(_pnl_window(), _config(), _metadata())
        assert set(_amounts(report.cost_of_goods_sold)) == {"5050", "5100"}
        assert "5200" in _amounts(report.operating_expenses)
        assert set(_amounts(report.other_expenses)) == {"5900"}

    def test_sub_type_wins_over_code_range(self):
        # 5960 is outside the operating range but tagged operating_expense
        report = build_profit_and_loss(_pnl_window(), _config(), _metadata())
        assert "5960" in _amounts(report.operating_expenses)

    def test_expense_credit_reduces_expenses(self):
        window = [_act("4100", credit="1000"), _act("5200", debit="400", credit="100")]
        report = build_profit_and_loss(window, _config(), _metadata())
        assert report.operating_expenses.total == Decimal("300")
        assert report.net_profit == Decimal("700")

    def test_zero_lines_omitted(self):
        window = [_act("4100", credit="1000"), _act("4200")]
        report = build_profit_and_loss(window, _config(), _metadata())
        assert list(_amounts(report.revenue)) == ["4100"]

    def test_empty_window(self):
        report = build_profit_and_loss([], _config(), _metadata())
        assert report.net_profit == Decimal("0")
        assert report.revenue.lines == ()


class TestBuildComparativeProfitAndLoss:
    def test_variance_per_line_and_total(self):
        current = build_profit_and_loss(
            [_act("4100", credit="1500"), _act("5200", debit="500")], _config(), _metadata()
        )
        previous = build_profit_and_loss(
            [_act("4100", credit="1000"), _act("4200", credit="500"), _act("5200", debit="500")],
            _config(),
            _metadata(),
        )
        report = build_comparative_profit_and_loss(
            current, previous, _metadata(ReportType.COMPARATIVE_PROFIT_AND_LOSS)
        )

        lines = {line.account_code: line for line in report.revenue.lines}
        assert lines["4100"].variance == Decimal("500")
        assert lines["4100"].variance_percent == Decimal("50.00")
        assert lines["4200"].current == Decimal("0")
        assert lines["4200"].variance_percent == Decimal("-100.00")
        assert report.revenue.total.label == "Total Revenue"
        assert report.revenue.total.variance == Decimal("0")
        assert report.net_profit.variance_percent == Decimal("0.00")

    def test_new_line_against_zero_baseline_is_one_hundred_percent(self):
        current = build_profit_and_loss([_act("4900", credit="250")], _config(), _metadata())
        previous = build_profit_and_loss([], _config(), _metadata())
        report = build_comparative_profit_and_loss(current, previous, _metadata())
        (line,) = report.revenue.lines
        assert line.previous == Decimal("0")
        assert line.variance_percent == Decimal("100.00")

    def test_lines_unioned_and_sorted_by_code(self):
        current = build_profit_and_loss([_act("4900", credit="1")], _config(), _metadata())
        previous = build_profit_and_loss([_act("4100", credit="1")], _config(), _metadata())
        report = build_comparative_profit_and_loss(current, previous, _metadata())
        assert [line.account_code for line in report.revenue.lines] == ["4100", "4900"]


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def _balances() -> list[AccountActivity]:
    return [
        _act("1010", debit="15000"),
        _act("1100", debit="3000"),
        _act("1500", debit="10000"),
        _act("1590", credit="1000"),
        _act("2100", credit="2000"),
        _act("2700", credit="8000"),
        _act("3100", credit="10000"),
        _act("3200", credit="1000"),
        _act("4100", credit="12000"),
        _act("5200", debit="5000"),
        _act("5800", debit="1000"),
    ]


class TestBuildBalanceSheet:
    def test_classified_sections(self):
        report = build_balance_sheet(_balances(), [], Decimal("6000"), _config(), _metadata())
        assert report.current_assets.total == Decimal("18000")
        assert report.fixed_assets.total == Decimal("9000")
        assert _amounts(report.fixed_assets)["1590"] == Decimal("-1000")
        assert report.current_liabilities.total == Decimal("2000")
        assert report.non_current_liabilities.total == Decimal("8000")
        assert report.total_assets == Decimal("27000")
        assert report.total_liabilities == Decimal("10000")

    def test_equity_and_identity(self):
        report = build_balance_sheet(_balances(), [], Decimal("6000"), _config(), _metadata())
        assert [line.account_code for line in report.equity.lines] == ["3100"]
        assert report.equity.retained_earnings == Decimal("1000")
        assert report.equity.current_year_earnings == Decimal("6000")
        assert report.total_equity == Decimal("17000")
        assert report.total_liabilities_and_equity == Decimal("27000")
        assert report.is_balanced

    def test_prior_years_fold_into_retained_earnings(self):
        balances = [_act("1010", debit="8000"), _act("4100", credit="8000")]
        prior = [_act("1010", debit="5000"), _act("4100", credit="5000")]
        report = build_balance_sheet(balances, prior, Decimal("3000"), _config(), _metadata())
        assert report.equity.retained_earnings == Decimal("5000")
        assert report.total_equity == Decimal("8000")
        assert report.is_balanced

    def test_identity_survives_year_end_close(self):
        # Dr 3300 / Cr 3200 for the prior year's 5000 profit
        balances = [
            _act("1010", debit="8000"),
            _act("4100", credit="8000"),
            _act("3200", credit="5000"),
            _act("3300", debit="5000"),
        ]
        prior = [
            _act("1010", debit="5000"),
            _act("4100", credit="5000"),
            _act("3200", credit="5000"),
            _act("3300", debit="5000"),
        ]
        report = build_balance_sheet(balances, prior, Decimal("3000"), _config(), _metadata())
        assert report.equity.retained_earnings == Decimal("5000")
        assert report.equity.lines == ()
        assert report.is_balanced

    def test_unbalanced_flagged(self):
        report = build_balance_sheet([_act("1010", debit="10")], [], Decimal("0"), _config(), _metadata())
        assert not report.is_balanced


class TestBuildComparativeBalanceSheet:
    def test_totals_with_variance(self):
        current = build_balance_sheet(_balances(), [], Decimal("6000"), _config(), _metadata())
        previous = build_balance_sheet(
            [_act("1010", debit="10000"), _act("3100", credit="10000")],
            [],
            Decimal("0"),
            _config(),
            _metadata(),
        )
        report = build_comparative_balance_sheet(current, previous, _metadata())
        total_assets = report.total("total_assets")
        assert total_assets.current == Decimal("27000")
        assert total_assets.previous == Decimal("10000")
        assert total_assets.variance == Decimal("17000")
        assert total_assets.variance_percent == Decimal("170.00")
        assert report.total("non_current_liabilities").variance_percent == Decimal("100.00")

    def test_unknown_total_label(self):
        current = build_balance_sheet([], [], Decimal("0"), _config(), _metadata())
        report = build_comparative_balance_sheet(current, current, _metadata())
        with pytest.raises(KeyError):
            report.total("goodwill")


# =========================================================================
# 4. CASH FLOW STATEMENT
# =========================================================================


def _cash_flow_inputs():
    opening = [
        _act("1010", debit="10000"),
        _act("1100"),
        _act("1200"),
        _act("1500"),
        _act("1590"),
        _act("2100"),
        _act("2700"),
        _act("3100", credit="10000"),
    ]
    window = [
        _act("1010", debit="5000", credit="4000"),
        _act("1100", debit="6000", credit="2000"),
        _act("1200", debit="1000"),
        _act("1500", debit="4000"),
        _act("1590", credit="500"),
        _act("2100", credit="1000"),
        _act("2700", credit="3000"),
        _act("3100"),
        _act("4100", credit="6000"),
        _act("5800", debit="500"),
    ]
    closing = [
        _act("1010", debit="15000", credit="4000"),
        _act("1100", debit="6000", credit="2000"),
        _act("1200", debit="1000"),
        _act("1500", debit="4000"),
        _act("1590", credit="500"),
        _act("2100", credit="1000"),
        _act("2700", credit="3000"),
        _act("3100", credit="10000"),
        _act("4100", credit="6000"),
        _act("5800", debit="500"),
    ]
    return window, opening, closing


def _fixed_asset_opening():
    return [
        _act("1010", debit="1000"),
        _act("1500", debit="5000"),
        _act("1590", credit="2000"),
        _act("3100", credit="4000"),
    ]


class TestBuildCashFlowStatement:
    def test_indirect_method(self):
        window, opening, closing = _cash_flow_inputs()
        report = build_cash_flow_statement(window, opening, closing, _config(), _metadata(ReportType.CASH_FLOW))

        assert report.net_income == Decimal("5500")
        assert report.non_cash_adjustments.total == Decimal("500")
        assert report.non_cash_adjustments.lines[0].description == "Add back: Depreciation Expense"

        wc = {line.description: line.amount for line in report.working_capital_changes.lines}
        assert wc == {
            "Change in accounts receivable": Decimal("-4000"),
            "Change in inventory": Decimal("-1000"),
            "Change in accounts payable": Decimal("1000"),
        }
        assert report.net_cash_from_operations == Decimal("2000")
        assert report.net_cash_from_investing == Decimal("-4000")
        assert report.net_cash_from_financing == Decimal("3000")
        assert report.net_change_in_cash == Decimal("1000")

    def test_reconciles_to_cash_balances(self):
        window, opening, closing = _cash_flow_inputs()
        report = build_cash_flow_statement(window, opening, closing, _config(), _metadata())
        assert report.beginning_cash == Decimal("10000")
        assert report.ending_cash == Decimal("11000")
        assert report.reconciles

    def test_depreciation_matched_by_add_back_adds_no_investing_line(self):
        window, opening, closing = _cash_flow_inputs()
        report = build_cash_flow_statement(window, opening, closing, _config(), _metadata())
        codes = [line.account_code for line in report.investing_activities.lines]
        assert codes == ["1500"]

    def test_disposal_nets_accumulated_depreciation(self):
        opening = _fixed_asset_opening()
        window = [_act("1010", debit="3000"), _act("1500", credit="5000"), _act("1590", debit="2000")]
        closing = [
            _act("1010", debit="4000"),
            _act("1500", debit="5000", credit="5000"),
            _act("1590", debit="2000", credit="2000"),
            _act("3100", credit="4000"),
        ]

        report = build_cash_flow_statement(window, opening, closing, _config(), _metadata())

        investing = {line.description: line.amount for line in report.investing_activities.lines}
        assert investing == {
            "Change in Property, Plant and Equipment": Decimal("5000"),
            "Accumulated depreciation on disposals": Decimal("-2000"),
        }
        assert report.net_cash_from_investing == Decimal("3000")
        assert report.net_change_in_cash == Decimal("3000")
        assert report.reconciles

    def test_disposal_in_same_window_as_depreciation(self):
        opening = _fixed_asset_opening()
        window = [
            _act("1010", debit="2500"),
            _act("1500", credit="5000"),
            _act("1590", debit="2500", credit="500"),
            _act("5800", debit="500"),
        ]
        closing = [
            _act("1010", debit="3500"),
            _act("1500", debit="5000", credit="5000"),
            _act("1590", debit="2500", credit="2500"),
            _act("3100", credit="4000"),
            _act("5800", debit="500"),
        ]

        report = build_cash_flow_statement(window, opening, closing, _config(), _metadata())

        assert report.net_cash_from_operations == Decimal("0")
        assert report.net_cash_from_investing == Decimal("2500")
        assert report.net_change_in_cash == report.ending_cash - report.beginning_cash == Decimal("2500")
        assert report.reconciles

    def test_unchanged_accounts_produce_no_lines(self):
        window, opening, closing = _cash_flow_inputs()
        report = build_cash_flow_statement(window, opening, closing, _config(), _metadata())
        assert [line.account_code for line in report.financing_activities.lines] == ["2700"]

    def test_earnings_accounts_combined(self):
        opening = [_act("1010", debit="100"), _act("3100", credit="100"), _act("3200"), _act("3300")]
        closing = [
            _act("1010", debit="100"),
            _act("3100", credit="100"),
            _act("3200", credit="700"),
            _act("3300", debit="700"),
        ]
        window = [_act("3200", credit="700"), _act("3300", debit="700")]
        report = build_cash_flow_statement(window, opening, closing, _config(), _metadata())
        assert report.financing_activities.lines == ()
        assert report.net_change_in_cash == Decimal("0")
        assert report.reconciles


# =========================================================================
# 5. RENDERER
# =========================================================================


class TestRenderToDict:
    def test_trial_balance_json_safe(self):
        report = build_trial_balance(
            [_act("1100", debit="1000"), _act("4100", credit="1000")],
            _metadata(),
        )
        data = render_to_dict(report)
        assert data["total_debits"] == "1000.00"
        assert data["is_balanced"] is True
        assert data["metadata"]["report_type"] == "trial_balance"
        assert data["metadata"]["as_of_date"] == "2025-12-31"
        assert data["metadata"]["period_start"] is None
        assert data["lines"][0]["account_id"] == str(_id("1100"))
        assert data["lines"][0]["credit_balance"] == "0.00"

    def test_nested_sections(self):
        report = build_profit_and_loss(_pnl_window(), _config(), _metadata())
        data = render_to_dict(report)
        assert data["revenue"]["label"] == "Revenue"
        assert isinstance(data["revenue"]["lines"], list)
        assert data["net_profit"] == "3800.00"
