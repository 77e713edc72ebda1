"""
Unit tests for calendar helpers and service-boundary DTOs.

NO database.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.calendar import last_day_of_month, month_bounds, period_of, validate_month
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import (
    AccountActivity,
    AccountDiscrepancy,
    AccountSpec,
    LineSpec,
    ReconciliationReport,
    TrialBalanceTotals,
)
from ledger_kernel.models.account import AccountType, SstTaxCode


class TestCalendar:
    def test_month_bounds(self):
        assert month_bounds(2025, 1) == (date(2025, 1, 1), date(2025, 1, 31))

    def test_leap_february(self):
        assert last_day_of_month(2024, 2) == date(2024, 2, 29)
        assert last_day_of_month(2025, 2) == date(2025, 2, 28)

    def test_period_of(self):
        assert period_of(date(2025, 7, 19)) == (2025, 7)

    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_invalid_month(self, month):
        with pytest.raises(ValueError):
            validate_month(2025, month)


class TestDeterministicClock:
    def test_default_instant(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2025, 1, 15)

    def test_advance(self):
        clock = DeterministicClock()
        before = clock.now()
        clock.advance(60)
        assert (clock.now() - before).total_seconds() == 60


class TestLineSpec:
    def test_amounts_normalised_to_decimal(self):
        line = LineSpec(account_id=uuid4(), debit="100.50")
        assert line.debit == Decimal("100.50")
        assert line.credit == Decimal("0.00")

    def test_float_amount_refused(self):
        with pytest.raises(TypeError):
            LineSpec(account_id=uuid4(), debit=100.5)

    def test_debit_and_credit_constructors(self):
        account_id = uuid4()
        assert LineSpec.debit_line(account_id, "10").debit == Decimal("10")
        assert LineSpec.credit_line(account_id, "10").credit == Decimal("10")

    def test_swapped(self):
        line = LineSpec.debit_line(uuid4(), "25.00", "memo", sst_tax_code=SstTaxCode.SR)
        swapped = line.swapped()
        assert swapped.credit == Decimal("25.00")
        assert swapped.debit == Decimal("0.00")
        assert swapped.description == "memo"
        assert swapped.sst_tax_code == "sr"


class TestAccountSpec:
    def test_enum_values_normalised(self):
        spec = AccountSpec(code=" 1010 ", name="Cash", account_type=AccountType.ASSET)
        assert spec.code == "1010"
        assert spec.account_type == "asset"

    def test_code_required(self):
        with pytest.raises(ValueError):
            AccountSpec(code="", name="Cash", account_type="asset")

    def test_name_required(self):
        with pytest.raises(ValueError):
            AccountSpec(code="1010", name="  ", account_type="asset")


def _activity(normal_balance: str, opening: str, debit: str, credit: str) -> AccountActivity:
    return AccountActivity(
        account_id=uuid4(),
        code="1000",
        name="Test",
        account_type="asset" if normal_balance == "debit" else "liability",
        normal_balance=normal_balance,
        sub_type=None,
        opening_balance=Decimal(opening),
        debit_total=Decimal(debit),
        credit_total=Decimal(credit),
    )


class TestAccountActivity:
    def test_debit_normal_balance(self):
        activity = _activity("debit", "100.00", "50.00", "20.00")
        assert activity.movement == Decimal("30.00")
        assert activity.balance == Decimal("130.00")

    def test_credit_normal_balance(self):
        activity = _activity("credit", "100.00", "50.00", "20.00")
        assert activity.movement == Decimal("-30.00")
        assert activity.balance == Decimal("70.00")


class TestTotalsAndReports:
    def test_trial_balance_totals_tolerance(self):
        totals = TrialBalanceTotals(date(2025, 1, 31), Decimal("100.00"), Decimal("100.01"))
        assert totals.is_balanced
        assert totals.difference == Decimal("-0.01")

    def test_reconciliation_report_clean(self):
        report = ReconciliationReport(
            tenant_id=uuid4(),
            checked_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
            accounts_checked=3,
        )
        assert report.is_clean

    def test_reconciliation_report_with_discrepancy(self):
        discrepancy = AccountDiscrepancy(
            account_id=uuid4(),
            account_code="1010",
            account_name="Cash",
            journal_balance=Decimal("100.00"),
            ledger_balance=Decimal("60.00"),
        )
        report = ReconciliationReport(
            tenant_id=uuid4(),
            checked_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
            accounts_checked=1,
            discrepancies=(discrepancy,),
        )
        assert discrepancy.difference == Decimal("-40.00")
        assert not report.is_clean
