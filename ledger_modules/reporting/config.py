"""
Reporting Configuration Schema.

Defines how accounts are classified into statement sections.  Resolution
order for every account is: explicit ``sub_type`` on the account, then the
configurable code-range table, then the section default.  Ranges are data
and can be replaced per chart-of-accounts template via ``from_dict()`` or
the YAML loader in ``ledger_config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Self

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountSubType

logger = get_logger("modules.reporting.config")


@dataclass(frozen=True)
class CodeRange:
    """Inclusive numeric range of account codes, e.g. 5000-5199."""

    start: int
    end: int

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"CodeRange end {self.end} is before start {self.start}")

    @classmethod
    def parse(cls, value) -> CodeRange:
        """Accept a CodeRange, a ``[start, end]`` pair or a ``"start-end"`` string."""
        if isinstance(value, CodeRange):
            return value
        if isinstance(value, str):
            head, sep, tail = value.partition("-")
            if not sep:
                raise ValueError(f"Invalid code range: {value!r}")
            return cls(int(head.strip()), int(tail.strip()))
        if isinstance(value, dict):
            return cls(int(value["start"]), int(value["end"]))
        start, end = value
        return cls(int(start), int(end))

    def contains(self, code: str) -> bool:
        number = code_number(code)
        return number is not None and self.start <= number <= self.end


def code_number(code: str) -> int | None:
    """Leading integer of an account code ("1100-01" -> 1100), or None."""
    digits = ""
    for ch in code.strip():
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else None


def _ranges(values) -> tuple[CodeRange, ...]:
    return tuple(CodeRange.parse(v) for v in values)


# Section names returned by the classification strategy
COGS = "cost_of_goods_sold"
OPERATING = "operating_expense"
OTHER = "other_expense"
CURRENT_ASSET = "current_asset"
FIXED_ASSET = "fixed_asset"
CURRENT_LIABILITY = "current_liability"
NON_CURRENT_LIABILITY = "non_current_liability"

_EXPENSE_SUB_TYPES = {
    AccountSubType.COST_OF_GOODS_SOLD.value: COGS,
    AccountSubType.OPERATING_EXPENSE.value: OPERATING,
    AccountSubType.OTHER_EXPENSE.value: OTHER,
}
_ASSET_SUB_TYPES = {
    AccountSubType.CURRENT_ASSET.value: CURRENT_ASSET,
    AccountSubType.FIXED_ASSET.value: FIXED_ASSET,
}
_LIABILITY_SUB_TYPES = {
    AccountSubType.CURRENT_LIABILITY.value: CURRENT_LIABILITY,
    AccountSubType.NON_CURRENT_LIABILITY.value: NON_CURRENT_LIABILITY,
}


@dataclass
class AccountClassification:
    """
    Rules for classifying accounts into financial statement sections.

    Range matching is on the leading integer of the account code; prefix
    matching is on the raw code string.
    """

    # Income statement -- expense breakdown
    cogs_ranges: tuple[CodeRange, ...] = (CodeRange(5000, 5199),)
    operating_expense_ranges: tuple[CodeRange, ...] = (CodeRange(5200, 5899),)

    # Balance sheet
    current_asset_ranges: tuple[CodeRange, ...] = (CodeRange(1000, 1499),)
    current_liability_ranges: tuple[CodeRange, ...] = (CodeRange(2000, 2599),)

    # Cash flow
    cash_ranges: tuple[CodeRange, ...] = (CodeRange(1000, 1099),)
    receivable_prefixes: tuple[str, ...] = ("11",)
    inventory_prefixes: tuple[str, ...] = ("12",)
    payable_prefixes: tuple[str, ...] = ("21",)
    non_cash_expense_ranges: tuple[CodeRange, ...] = (CodeRange(5800, 5899),)
    non_cash_keywords: tuple[str, ...] = ("depreciation", "amortization")

    def __post_init__(self):
        for name in (
            "cogs_ranges",
            "operating_expense_ranges",
            "current_asset_ranges",
            "current_liability_ranges",
            "cash_ranges",
            "non_cash_expense_ranges",
        ):
            setattr(self, name, _ranges(getattr(self, name)))
        for name in ("receivable_prefixes", "inventory_prefixes", "payable_prefixes"):
            setattr(self, name, tuple(str(p) for p in getattr(self, name)))
        self.non_cash_keywords = tuple(k.lower() for k in self.non_cash_keywords)

    @staticmethod
    def in_ranges(code: str, ranges: tuple[CodeRange, ...]) -> bool:
        return any(r.contains(code) for r in ranges)

    @staticmethod
    def matches_prefix(code: str, prefixes: tuple[str, ...]) -> bool:
        return any(code.startswith(p) for p in prefixes)

    def expense_section(self, code: str, sub_type: str | None = None) -> str:
        sub_type = getattr(sub_type, "value", sub_type)
        if sub_type in _EXPENSE_SUB_TYPES:
            return _EXPENSE_SUB_TYPES[sub_type]
        if self.in_ranges(code, self.cogs_ranges):
            return COGS
        if self.in_ranges(code, self.operating_expense_ranges):
            return OPERATING
        return OTHER

    def asset_section(self, code: str, sub_type: str | None = None) -> str:
        sub_type = getattr(sub_type, "value", sub_type)
        if sub_type in _ASSET_SUB_TYPES:
            return _ASSET_SUB_TYPES[sub_type]
        if self.in_ranges(code, self.current_asset_ranges):
            return CURRENT_ASSET
        return FIXED_ASSET

    def liability_section(self, code: str, sub_type: str | None = None) -> str:
        sub_type = getattr(sub_type, "value", sub_type)
        if sub_type in _LIABILITY_SUB_TYPES:
            return _LIABILITY_SUB_TYPES[sub_type]
        if self.in_ranges(code, self.current_liability_ranges):
            return CURRENT_LIABILITY
        return NON_CURRENT_LIABILITY

    def is_cash(self, code: str) -> bool:
        return self.in_ranges(code, self.cash_ranges)

    def is_non_cash_expense(self, code: str, name: str) -> bool:
        if self.in_ranges(code, self.non_cash_expense_ranges):
            return True
        lowered = name.lower()
        return any(keyword in lowered for keyword in self.non_cash_keywords)


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    ``retained_earnings_code`` and ``current_year_earnings_code`` name the
    equity accounts the year-end close moves earnings between; the balance
    sheet folds both into its retained-earnings line.
    """

    classification: AccountClassification = field(
        default_factory=AccountClassification,
    )

    entity_name: str = "Company"
    default_currency: str = "MYR"

    retained_earnings_code: str = "3200"
    current_year_earnings_code: str = "3300"
    fiscal_year_start_month: int = 1

    def __post_init__(self):
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError("fiscal_year_start_month must be between 1 and 12")
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")
        if self.retained_earnings_code == self.current_year_earnings_code:
            raise ValueError("retained and current-year earnings accounts must differ")

    @property
    def earnings_codes(self) -> tuple[str, str]:
        return (self.retained_earnings_code, self.current_year_earnings_code)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g. a parsed YAML table)."""
        data = dict(data)
        if "classification" in data and isinstance(data["classification"], dict):
            data["classification"] = AccountClassification(**data["classification"])
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
