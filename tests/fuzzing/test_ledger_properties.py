"""
Property-based tests over randomly generated books.

Each example seeds a fresh tenant on the shared test session and posts a
generated batch of balanced entries in arbitrary date order, then checks
the accounting identities that must hold for any such batch:

- the trial balance balances, up to the sub-cent lines it leaves out;
- the balance sheet identity holds at any date;
- ledger running balances, the monthly balance cache and the journal agree;
- the indirect cash flow statement reconciles to the change in cash;
- allocate() never creates or loses a cent.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from ledger_config.loader import default_chart_of_accounts
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.money import allocate
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_service import ChartOfAccountsService
from ledger_kernel.services.balance_service import AccountBalanceService
from ledger_kernel.services.journal_service import JournalEntryService
from ledger_modules.reporting.service import ReportingService

POSTABLE_CODES = sorted(
    spec.code for spec in default_chart_of_accounts() if not spec.is_header
)

YEAR_START, YEAR_END = date(2025, 1, 1), date(2025, 12, 31)

DB_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)


@dataclass(frozen=True)
class GeneratedEntry:
    entry_date: date
    debit_code: str
    amount: Decimal
    credit_codes: tuple[str, ...]
    weights: tuple[int, ...]


@composite
def money_amounts(draw, max_cents=5_000_000):
    cents = draw(st.integers(min_value=1, max_value=max_cents))
    return Decimal(cents) / 100


@composite
def generated_entries(draw, codes=tuple(POSTABLE_CODES)):
    credit_count = draw(st.integers(min_value=1, max_value=3))
    return GeneratedEntry(
        entry_date=draw(st.dates(min_value=YEAR_START, max_value=YEAR_END)),
        debit_code=draw(st.sampled_from(codes)),
        amount=draw(money_amounts()),
        credit_codes=tuple(draw(st.lists(st.sampled_from(codes), min_size=credit_count, max_size=credit_count))),
        weights=tuple(
            draw(st.lists(st.integers(min_value=1, max_value=9), min_size=credit_count, max_size=credit_count))
        ),
    )


def batches(codes=tuple(POSTABLE_CODES)):
    return st.lists(generated_entries(codes), min_size=1, max_size=6)


def _post_batch(session, clock, actor_id, batch):
    """Seed a new tenant and post ``batch``; returns (tenant_id, accounts by code)."""
    tenant_id = uuid4()
    accounts = {
        account.code: account
        for account in ChartOfAccountsService(session, tenant_id, clock).seed_default_chart(
            default_chart_of_accounts(), actor_id
        )
    }
    journal = JournalEntryService(session, tenant_id, clock)
    for generated in batch:
        parts = allocate(generated.amount, generated.weights)
        lines = [LineSpec.debit_line(accounts[generated.debit_code].id, generated.amount)]
        lines.extend(
            LineSpec.credit_line(accounts[code].id, part)
            for code, part in zip(generated.credit_codes, parts)
            if part
        )
        entry = journal.create_entry(generated.entry_date, "Generated entry", lines, actor_id)
        journal.post_entry(entry.id, actor_id)
    return tenant_id, accounts


class TestAllocationProperties:
    @given(amount=money_amounts(), weights=st.lists(st.integers(min_value=0, max_value=50), min_size=1, max_size=8))
    @settings(max_examples=200)
    def test_parts_sum_to_total(self, amount, weights):
        if not any(weights):
            with pytest.raises(ValueError):
                allocate(amount, weights)
            return
        parts = allocate(amount, weights)
        assert sum(parts) == amount
        assert all(part >= 0 for part in parts)
        assert all(part == part.quantize(Decimal("0.01")) for part in parts)
        total_weight = sum(weights)
        for part, weight in zip(parts, weights):
            assert abs(part - amount * weight / total_weight) < Decimal("0.01")

    @given(amount=money_amounts())
    def test_zero_weights_receive_nothing(self, amount):
        assert allocate(amount, [0, 1, 0]) == [Decimal("0"), amount, Decimal("0")]


class TestBookProperties:
    @given(batch=batches(), as_of=st.dates(min_value=YEAR_START, max_value=YEAR_END))
    @DB_SETTINGS
    def test_trial_balance_balances(self, session, deterministic_clock, test_actor_id, batch, as_of):
        tenant_id, _ = _post_batch(session, deterministic_clock, test_actor_id, batch)
        report = ReportingService(session, tenant_id, deterministic_clock).trial_balance(as_of)

        activities = LedgerSelector(session, tenant_id).account_activity(as_of=as_of)
        assert sum((a.debit_total for a in activities), Decimal("0")) == sum(
            (a.credit_total for a in activities), Decimal("0")
        )
        # balances within a cent of zero are left off the report
        dust = sum(1 for a in activities if a.balance and abs(a.balance) <= Decimal("0.01"))
        assert abs(report.total_debits - report.total_credits) <= Decimal("0.01") * dust
        if not dust:
            assert report.total_debits == report.total_credits
            assert report.is_balanced

    @given(batch=batches(), as_of=st.dates(min_value=YEAR_START, max_value=YEAR_END))
    @DB_SETTINGS
    def test_balance_sheet_identity(self, session, deterministic_clock, test_actor_id, batch, as_of):
        tenant_id, _ = _post_batch(session, deterministic_clock, test_actor_id, batch)
        report = ReportingService(session, tenant_id, deterministic_clock).balance_sheet(as_of)
        assert report.total_assets == report.total_liabilities_and_equity
        assert report.is_balanced

    @given(batch=batches())
    @DB_SETTINGS
    def test_ledger_cache_and_journal_agree(self, session, deterministic_clock, test_actor_id, batch):
        tenant_id, accounts = _post_batch(session, deterministic_clock, test_actor_id, batch)
        journal = JournalEntryService(session, tenant_id, deterministic_clock)
        ledger = LedgerSelector(session, tenant_id)
        balances = AccountBalanceService(session, tenant_id, deterministic_clock)

        touched = {g.debit_code for g in batch} | {c for g in batch for c in g.credit_codes}
        for code in touched:
            account = accounts[code]
            expected = journal.get_account_balance(account.id)
            rows = ledger.account_transactions(account.id)
            if not rows:
                # every credit part for this account rounded to zero
                continue
            assert rows[-1].running_balance == expected
            assert balances.list_balances(account.id)[-1].closing_balance == expected

    @given(batch=batches())
    @DB_SETTINGS
    def test_cash_flow_reconciles(self, session, deterministic_clock, test_actor_id, batch):
        tenant_id, _ = _post_batch(session, deterministic_clock, test_actor_id, batch)
        report = ReportingService(session, tenant_id, deterministic_clock).cash_flow_statement(YEAR_START, YEAR_END)
        assert report.net_change_in_cash == report.ending_cash - report.beginning_cash
        assert report.reconciles
