"""Calendar-month helpers for accounting periods."""

import calendar
from datetime import date


def validate_month(year: int, month: int) -> None:
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month!r}")
    if not isinstance(year, int) or not 1 <= year <= 9999:
        raise ValueError(f"year out of range: {year!r}")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of (year, month)."""
    validate_month(year, month)
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def last_day_of_month(year: int, month: int) -> date:
    return month_bounds(year, month)[1]


def period_of(d: date) -> tuple[int, int]:
    return d.year, d.month
