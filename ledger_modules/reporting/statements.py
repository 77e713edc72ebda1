"""
Pure financial statement transformation functions.

These functions turn per-account ledger activity (``AccountActivity``
DTOs produced by one grouped query in ``LedgerSelector``) into structured
reports.  ZERO I/O. ZERO side effects.

Sign conventions used throughout:
- Statement lines carry each account's contribution to its section:
  assets and expenses on the debit side, liabilities, equity and revenue
  on the credit side.  A contra account (e.g. accumulated depreciation
  under assets) therefore shows a negative amount and reduces its
  section total.
- Section totals cover every account in the section; zero lines are
  omitted from ``lines`` only.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.dtos import AccountActivity
from ledger_kernel.domain.money import (
    TOLERANCE,
    ZERO,
    amounts_equal,
    format_money,
    is_effectively_zero,
    percent_change,
)
from ledger_kernel.models.account import AccountType
from ledger_modules.reporting.config import (
    COGS,
    CURRENT_ASSET,
    CURRENT_LIABILITY,
    FIXED_ASSET,
    NON_CURRENT_LIABILITY,
    OPERATING,
    OTHER,
    ReportingConfig,
)
from ledger_modules.reporting.models import (
    AccountLine,
    BalanceSheetReport,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    ComparativeBalanceSheetReport,
    ComparativeProfitAndLossReport,
    ComparativeSection,
    EquitySection,
    ProfitAndLossReport,
    ReportMetadata,
    StatementSection,
    TrialBalanceLineItem,
    TrialBalanceReport,
    VarianceLine,
)

_ASSET = AccountType.ASSET.value
_LIABILITY = AccountType.LIABILITY.value
_EQUITY = AccountType.EQUITY.value
_REVENUE = AccountType.REVENUE.value
_EXPENSE = AccountType.EXPENSE.value


# =========================================================================
# Helpers
# =========================================================================


def _type(activity: AccountActivity) -> str:
    return getattr(activity.account_type, "value", activity.account_type)


def debit_side_balance(activity: AccountActivity) -> Decimal:
    """Opening plus movement, expressed as debit minus credit."""
    return activity.balance if activity.is_debit_normal else -activity.balance


def section_amount(activity: AccountActivity, balance: Decimal | None = None) -> Decimal:
    """
    Contribution of an account to its statement section.

    With ``balance`` omitted the account's full balance (opening included)
    is used; pass a debit-side figure to convert a window movement.
    """
    debit_side = debit_side_balance(activity) if balance is None else balance
    if _type(activity) in (_ASSET, _EXPENSE):
        return debit_side
    return -debit_side


def window_amount(activity: AccountActivity) -> Decimal:
    """Section contribution of the window movement only (no opening balance)."""
    return section_amount(activity, activity.debit_total - activity.credit_total)


def _line(activity: AccountActivity, amount: Decimal) -> AccountLine:
    return AccountLine(
        account_id=activity.account_id,
        account_code=activity.code,
        account_name=activity.name,
        amount=amount,
    )


def _section(label: str, items: list[tuple[AccountActivity, Decimal]]) -> StatementSection:
    ordered = sorted(items, key=lambda item: item[0].code)
    return StatementSection(
        label=label,
        lines=tuple(_line(a, amount) for a, amount in ordered if amount != ZERO),
        total=sum((amount for _, amount in ordered), ZERO),
    )


def compute_net_income(window: Iterable[AccountActivity]) -> Decimal:
    """Revenue minus expenses over the movement window of ``window``."""
    revenue = ZERO
    expenses = ZERO
    for activity in window:
        kind = _type(activity)
        if kind == _REVENUE:
            revenue += window_amount(activity)
        elif kind == _EXPENSE:
            expenses += window_amount(activity)
    return revenue - expenses


def accumulated_earnings(balances: Iterable[AccountActivity]) -> Decimal:
    """Revenue minus expenses over full balances (opening balances included)."""
    total = ZERO
    for activity in balances:
        kind = _type(activity)
        if kind == _REVENUE:
            total += section_amount(activity)
        elif kind == _EXPENSE:
            total -= section_amount(activity)
    return total


def variance_line(
    label: str,
    current: Decimal,
    previous: Decimal,
    account_id: UUID | None = None,
    account_code: str | None = None,
) -> VarianceLine:
    return VarianceLine(
        label=label,
        current=current,
        previous=previous,
        variance=current - previous,
        variance_percent=percent_change(current, previous),
        account_id=account_id,
        account_code=account_code,
    )


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    activities: list[AccountActivity],
    metadata: ReportMetadata,
) -> TrialBalanceReport:
    """
    Trial balance from full account balances as of the report date.

    A positive balance lands in the account's normal column, a negative
    one in the opposite column.  Balances within 0.01 of zero are left
    out of both the lines and the totals.
    """
    lines: list[TrialBalanceLineItem] = []
    total_debits = ZERO
    total_credits = ZERO
    for activity in sorted(activities, key=lambda a: a.code):
        balance = activity.balance
        if is_effectively_zero(balance):
            continue
        debit = credit = ZERO
        if (balance > 0) == activity.is_debit_normal:
            debit = abs(balance)
        else:
            credit = abs(balance)
        total_debits += debit
        total_credits += credit
        lines.append(
            TrialBalanceLineItem(
                account_id=activity.account_id,
                account_code=activity.code,
                account_name=activity.name,
                account_type=_type(activity),
                debit_balance=debit,
                credit_balance=credit,
            )
        )

    return TrialBalanceReport(
        metadata=metadata,
        lines=tuple(lines),
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=amounts_equal(total_debits, total_credits, TOLERANCE),
    )


# =========================================================================
# 2. PROFIT AND LOSS
# =========================================================================


def build_profit_and_loss(
    window: list[AccountActivity],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> ProfitAndLossReport:
    """
    Multi-step P&L over the movement window of ``window``.

    gross = revenue - COGS; operating = gross - operating expenses;
    net = operating - other expenses.
    """
    clf = config.classification
    revenue: list[tuple[AccountActivity, Decimal]] = []
    expenses: dict[str, list[tuple[AccountActivity, Decimal]]] = {
        COGS: [],
        OPERATING: [],
        OTHER: [],
    }
    for activity in window:
        kind = _type(activity)
        if kind == _REVENUE:
            revenue.append((activity, window_amount(activity)))
        elif kind == _EXPENSE:
            bucket = clf.expense_section(activity.code, activity.sub_type)
            expenses[bucket].append((activity, window_amount(activity)))

    revenue_section = _section("Revenue", revenue)
    cogs = _section("Cost of Goods Sold", expenses[COGS])
    operating = _section("Operating Expenses", expenses[OPERATING])
    other = _section("Other Expenses", expenses[OTHER])

    gross_profit = revenue_section.total - cogs.total
    operating_profit = gross_profit - operating.total
    net_profit = operating_profit - other.total

    return ProfitAndLossReport(
        metadata=metadata,
        revenue=revenue_section,
        cost_of_goods_sold=cogs,
        operating_expenses=operating,
        other_expenses=other,
        total_revenue=revenue_section.total,
        total_expenses=cogs.total + operating.total + other.total,
        gross_profit=gross_profit,
        operating_profit=operating_profit,
        net_profit=net_profit,
    )


def _compare_sections(
    label: str,
    current: tuple[AccountLine, ...],
    previous: tuple[AccountLine, ...],
    current_total: Decimal,
    previous_total: Decimal,
) -> ComparativeSection:
    current_by_id = {line.account_id: line for line in current}
    previous_by_id = {line.account_id: line for line in previous}
    merged: dict[UUID, AccountLine] = {**previous_by_id, **current_by_id}

    lines = []
    for account_id, line in sorted(merged.items(), key=lambda item: item[1].account_code):
        cur = current_by_id.get(account_id)
        prev = previous_by_id.get(account_id)
        lines.append(
            variance_line(
                line.account_name,
                cur.amount if cur else ZERO,
                prev.amount if prev else ZERO,
                account_id=account_id,
                account_code=line.account_code,
            )
        )
    return ComparativeSection(
        label=label,
        lines=tuple(lines),
        total=variance_line(f"Total {label}", current_total, previous_total),
    )


def build_comparative_profit_and_loss(
    current: ProfitAndLossReport,
    previous: ProfitAndLossReport,
    metadata: ReportMetadata,
) -> ComparativeProfitAndLossReport:
    """Per-line and per-total variance of two P&L reports."""

    def compare(attr: str) -> ComparativeSection:
        cur = getattr(current, attr)
        prev = getattr(previous, attr)
        return _compare_sections(cur.label, cur.lines, prev.lines, cur.total, prev.total)

    return ComparativeProfitAndLossReport(
        metadata=metadata,
        current=current,
        previous=previous,
        revenue=compare("revenue"),
        cost_of_goods_sold=compare("cost_of_goods_sold"),
        operating_expenses=compare("operating_expenses"),
        other_expenses=compare("other_expenses"),
        gross_profit=variance_line("Gross Profit", current.gross_profit, previous.gross_profit),
        operating_profit=variance_line(
            "Operating Profit", current.operating_profit, previous.operating_profit,
        ),
        net_profit=variance_line("Net Profit", current.net_profit, previous.net_profit),
    )


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    balances: list[AccountActivity],
    prior_year_balances: list[AccountActivity],
    current_year_earnings: Decimal,
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> BalanceSheetReport:
    """
    Classified balance sheet.

    Args:
        balances: full balances as of the report date.
        prior_year_balances: full balances as of the day before the
            current fiscal year starts; their revenue/expense accounts
            give the earnings of earlier years not yet closed out.
        current_year_earnings: net profit of a fresh P&L over the fiscal
            year to date.

    The retained and current-year earnings accounts are kept out of the
    equity lines; their balances plus the earlier years' earnings form the
    retained-earnings line, so nothing is counted twice before or after a
    year-end close.
    """
    clf = config.classification
    earnings_codes = config.earnings_codes

    sections: dict[str, list[tuple[AccountActivity, Decimal]]] = {
        CURRENT_ASSET: [],
        FIXED_ASSET: [],
        CURRENT_LIABILITY: [],
        NON_CURRENT_LIABILITY: [],
    }
    equity_items: list[tuple[AccountActivity, Decimal]] = []
    earnings_accounts_total = ZERO

    for activity in balances:
        kind = _type(activity)
        amount = section_amount(activity)
        if kind == _ASSET:
            sections[clf.asset_section(activity.code, activity.sub_type)].append((activity, amount))
        elif kind == _LIABILITY:
            sections[clf.liability_section(activity.code, activity.sub_type)].append(
                (activity, amount)
            )
        elif kind == _EQUITY:
            if activity.code in earnings_codes:
                earnings_accounts_total += amount
            else:
                equity_items.append((activity, amount))

    current_assets = _section("Current Assets", sections[CURRENT_ASSET])
    fixed_assets = _section("Fixed Assets", sections[FIXED_ASSET])
    current_liabilities = _section("Current Liabilities", sections[CURRENT_LIABILITY])
    non_current_liabilities = _section("Non-Current Liabilities", sections[NON_CURRENT_LIABILITY])
    equity_lines = _section("Equity", equity_items)

    retained_earnings = earnings_accounts_total + accumulated_earnings(prior_year_balances)
    total_equity = equity_lines.total + retained_earnings + current_year_earnings
    equity = EquitySection(
        lines=equity_lines.lines,
        retained_earnings=retained_earnings,
        current_year_earnings=current_year_earnings,
        total=total_equity,
    )

    total_assets = current_assets.total + fixed_assets.total
    total_liabilities = current_liabilities.total + non_current_liabilities.total
    total_liabilities_and_equity = total_liabilities + total_equity

    return BalanceSheetReport(
        metadata=metadata,
        current_assets=current_assets,
        fixed_assets=fixed_assets,
        current_liabilities=current_liabilities,
        non_current_liabilities=non_current_liabilities,
        equity=equity,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        total_equity=total_equity,
        total_liabilities_and_equity=total_liabilities_and_equity,
        is_balanced=amounts_equal(total_assets, total_liabilities_and_equity, TOLERANCE),
    )


def build_comparative_balance_sheet(
    current: BalanceSheetReport,
    previous: BalanceSheetReport,
    metadata: ReportMetadata,
) -> ComparativeBalanceSheetReport:
    """Section totals of two balance sheets with variance."""
    pairs = (
        ("current_assets", current.current_assets.total, previous.current_assets.total),
        ("fixed_assets", current.fixed_assets.total, previous.fixed_assets.total),
        ("total_assets", current.total_assets, previous.total_assets),
        (
            "current_liabilities",
            current.current_liabilities.total,
            previous.current_liabilities.total,
        ),
        (
            "non_current_liabilities",
            current.non_current_liabilities.total,
            previous.non_current_liabilities.total,
        ),
        ("total_liabilities", current.total_liabilities, previous.total_liabilities),
        ("retained_earnings", current.equity.retained_earnings, previous.equity.retained_earnings),
        (
            "current_year_earnings",
            current.equity.current_year_earnings,
            previous.equity.current_year_earnings,
        ),
        ("total_equity", current.total_equity, previous.total_equity),
        (
            "total_liabilities_and_equity",
            current.total_liabilities_and_equity,
            previous.total_liabilities_and_equity,
        ),
    )
    return ComparativeBalanceSheetReport(
        metadata=metadata,
        current=current,
        previous=previous,
        totals=tuple(variance_line(label, cur, prev) for label, cur, prev in pairs),
    )


# =========================================================================
# 4. CASH FLOW STATEMENT (indirect method)
# =========================================================================


def _cash_section(label: str, lines: list[CashFlowLineItem]) -> CashFlowSection:
    kept = tuple(line for line in lines if line.amount != ZERO)
    return CashFlowSection(
        label=label,
        lines=kept,
        total=sum((line.amount for line in lines), ZERO),
    )


def build_cash_flow_statement(
    window: list[AccountActivity],
    opening: list[AccountActivity],
    closing: list[AccountActivity],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> CashFlowStatementReport:
    """
    Statement of cash flows using the indirect method.

    Args:
        window: movement over [start, end] (drives net income and add-backs).
        opening: full balances as of the day before ``start``.
        closing: full balances as of ``end``.

    Every balance-sheet account outside the cash range contributes the
    negative of its debit-side change:
    - current assets and current liabilities -> working capital, grouped
      into receivables, inventory, other current assets, payables and
      other current liabilities;
    - debit-normal fixed assets -> investing, one line each;
    - credit-normal contra fixed assets (accumulated depreciation) ->
      investing as one net line, after taking out the part already added
      back as depreciation, so a disposal nets its written-off depreciation
      against the cost leaving the books;
    - non-current liabilities and equity -> financing, with the retained
      and current-year earnings accounts combined into one line.
    """
    clf = config.classification
    net_income = compute_net_income(window)

    opening_by_id = {a.account_id: debit_side_balance(a) for a in opening}
    closing_by_id = {a.account_id: debit_side_balance(a) for a in closing}
    accounts = {a.account_id: a for a in (*opening, *closing)}

    def cash_effect(account_id: UUID) -> Decimal:
        change = closing_by_id.get(account_id, ZERO) - opening_by_id.get(account_id, ZERO)
        return -change

    # --- Non-cash add-backs ---
    add_backs = [
        CashFlowLineItem(
            description=f"Add back: {activity.name}",
            amount=window_amount(activity),
            account_code=activity.code,
        )
        for activity in sorted(window, key=lambda a: a.code)
        if _type(activity) == _EXPENSE and clf.is_non_cash_expense(activity.code, activity.name)
    ]
    non_cash = _cash_section("Non-Cash Adjustments", add_backs)

    # --- Working capital, investing, financing ---
    wc_buckets: dict[str, Decimal] = {
        "Change in accounts receivable": ZERO,
        "Change in inventory": ZERO,
        "Change in other current assets": ZERO,
        "Change in accounts payable": ZERO,
        "Change in other current liabilities": ZERO,
    }
    investing_lines: list[CashFlowLineItem] = []
    financing_lines: list[CashFlowLineItem] = []
    earnings_effect = ZERO
    contra_effect = ZERO
    contra_codes: list[str] = []

    for activity in sorted(accounts.values(), key=lambda a: a.code):
        kind = _type(activity)
        code = activity.code
        if kind in (_REVENUE, _EXPENSE) or clf.is_cash(code):
            continue
        effect = cash_effect(activity.account_id)

        if kind == _ASSET:
            if clf.asset_section(code, activity.sub_type) == CURRENT_ASSET:
                if clf.matches_prefix(code, clf.receivable_prefixes):
                    wc_buckets["Change in accounts receivable"] += effect
                elif clf.matches_prefix(code, clf.inventory_prefixes):
                    wc_buckets["Change in inventory"] += effect
                else:
                    wc_buckets["Change in other current assets"] += effect
            elif activity.is_debit_normal:
                investing_lines.append(
                    CashFlowLineItem(
                        description=f"Change in {activity.name}",
                        amount=effect,
                        account_code=code,
                    )
                )
            else:
                contra_effect += effect
                contra_codes.append(code)
        elif kind == _LIABILITY:
            if clf.liability_section(code, activity.sub_type) == CURRENT_LIABILITY:
                if clf.matches_prefix(code, clf.payable_prefixes):
                    wc_buckets["Change in accounts payable"] += effect
                else:
                    wc_buckets["Change in other current liabilities"] += effect
            else:
                financing_lines.append(
                    CashFlowLineItem(
                        description=f"Change in {activity.name}",
                        amount=effect,
                        account_code=code,
                    )
                )
        elif kind == _EQUITY:
            if code in config.earnings_codes:
                earnings_effect += effect
            else:
                financing_lines.append(
                    CashFlowLineItem(
                        description=f"Change in {activity.name}",
                        amount=effect,
                        account_code=code,
                    )
                )

    unmatched = contra_effect - sum((line.amount for line in add_backs), ZERO)
    if unmatched != ZERO:
        if contra_codes:
            description = "Accumulated depreciation on disposals"
        else:
            description = "Non-cash fixed asset reductions"
        investing_lines.append(
            CashFlowLineItem(
                description=description,
                amount=unmatched,
                account_code=contra_codes[0] if len(contra_codes) == 1 else None,
            )
        )

    if earnings_effect != ZERO:
        financing_lines.append(
            CashFlowLineItem(
                description="Change in retained earnings",
                amount=earnings_effect,
                account_code=config.retained_earnings_code,
            )
        )

    working_capital = _cash_section(
        "Changes in Working Capital",
        [CashFlowLineItem(description=label, amount=amount) for label, amount in wc_buckets.items()],
    )
    investing = _cash_section("Investing Activities", investing_lines)
    financing = _cash_section("Financing Activities", financing_lines)

    net_cash_from_operations = net_income + non_cash.total + working_capital.total
    net_change = net_cash_from_operations + investing.total + financing.total

    beginning_cash = sum(
        (balance for account_id, balance in opening_by_id.items() if clf.is_cash(accounts[account_id].code)),
        ZERO,
    )
    ending_cash = sum(
        (balance for account_id, balance in closing_by_id.items() if clf.is_cash(accounts[account_id].code)),
        ZERO,
    )

    return CashFlowStatementReport(
        metadata=metadata,
        net_income=net_income,
        non_cash_adjustments=non_cash,
        working_capital_changes=working_capital,
        net_cash_from_operations=net_cash_from_operations,
        investing_activities=investing,
        net_cash_from_investing=investing.total,
        financing_activities=financing,
        net_cash_from_financing=financing.total,
        net_change_in_cash=net_change,
        beginning_cash=beginning_cash,
        ending_cash=ending_cash,
        reconciles=amounts_equal(ending_cash - beginning_cash, net_change, TOLERANCE),
    )


# =========================================================================
# 5. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Handles:
    - Decimal -> fixed two-place string ("1000.00")
    - UUID -> str
    - date -> ISO format string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    - None preserved
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return format_money(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, bool)):
        return obj
    return str(obj)
