"""
Money -- exact decimal arithmetic for ledger amounts.

Responsibility:
    The only place that decides how monetary values are parsed, rounded,
    compared and serialised.  Every amount in the ledger is a
    ``decimal.Decimal`` with two places; binary floats are refused at the
    boundary.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - No floats: ``to_decimal`` raises TypeError for ``float`` input.
    - One rounding rule: ROUND_HALF_UP to two places via ``round_money``.
    - "Balanced" and "zero" checks use TOLERANCE (one cent) because
      percentage allocations can leave sub-cent residue; entry-level
      debit/credit equality is exact and does NOT use these helpers.
    - ``allocate`` parts always sum exactly to the allocated total.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Sequence

ZERO = Decimal("0.00")
TOLERANCE = Decimal("0.01")
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)
_HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str | None) -> Decimal:
    """
    Parse an amount without going through binary floating point.

    ``None`` and ``""`` are treated as zero, matching the "0" default of
    journal line amounts.

    Raises:
        TypeError: value is a float (or another unsupported type).
        ValueError: value is a non-numeric string or not finite.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary amounts must not be {type(value).__name__}: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid monetary amount: {value!r}") from exc
    else:
        raise TypeError(f"Unsupported monetary amount type: {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"Monetary amount must be finite: {value!r}")
    return result


def round_money(value: Decimal | int | str) -> Decimal:
    return to_decimal(value).quantize(_QUANTUM, rounding=DEFAULT_ROUNDING)


def format_money(value: Decimal | int | str | None) -> str:
    """Fixed two-place string, e.g. ``"1000.00"`` or ``"-0.50"``."""
    rounded = round_money(to_decimal(value))
    if rounded == 0:
        rounded = ZERO
    return f"{rounded:.2f}"


def has_money_precision(value: Decimal) -> bool:
    """True when ``value`` needs no more than two decimal places."""
    return value == value.quantize(_QUANTUM, rounding=ROUND_DOWN)


def is_effectively_zero(value: Decimal, tolerance: Decimal = TOLERANCE) -> bool:
    return abs(value) <= tolerance


def amounts_equal(a: Decimal, b: Decimal, tolerance: Decimal = TOLERANCE) -> bool:
    return abs(a - b) <= tolerance


def signed_amount(
    debit: Decimal,
    credit: Decimal,
    normal_balance: str,
) -> Decimal:
    """
    Balance movement in the account's natural direction.

    Debit-normal accounts grow with debits, credit-normal accounts with
    credits.  ``normal_balance`` is a NormalBalance member or its value.
    """
    if normal_balance == "debit":
        return debit - credit
    return credit - debit


def allocate(total: Decimal | int | str, weights: Sequence[Decimal | int | str]) -> list[Decimal]:
    """
    Split ``total`` across ``weights`` into two-place parts.

    Parts are rounded down and the leftover cents are handed out one by one
    to the parts with the largest discarded remainder (earliest index wins
    ties), so ``sum(parts) == round_money(total)`` exactly.

    Raises:
        ValueError: empty weights, a negative weight, or all weights zero.
    """
    amount = round_money(total)
    ws = [to_decimal(w) for w in weights]
    if not ws:
        raise ValueError("allocate() needs at least one weight")
    if any(w < 0 for w in ws):
        raise ValueError("allocate() weights must not be negative")
    weight_sum = sum(ws, Decimal("0"))
    if weight_sum == 0:
        raise ValueError("allocate() weights must not all be zero")

    sign = Decimal(-1) if amount < 0 else Decimal(1)
    magnitude = abs(amount)

    exact = [magnitude * w / weight_sum for w in ws]
    parts = [e.quantize(_QUANTUM, rounding=ROUND_DOWN) for e in exact]
    leftover_cents = int(((magnitude - sum(parts, Decimal("0"))) / _QUANTUM).to_integral_value())

    order = sorted(range(len(ws)), key=lambda i: (-(exact[i] - parts[i]), i))
    for i in order[:leftover_cents]:
        parts[i] += _QUANTUM

    return [sign * p for p in parts]


def percent_change(current: Decimal, baseline: Decimal) -> Decimal:
    """
    Variance of ``current`` against ``baseline`` in percent, two places.

    Both zero -> 0; baseline zero -> 100; otherwise
    ``(current - baseline) / |baseline| * 100``.
    """
    if current == 0 and baseline == 0:
        return ZERO
    if baseline == 0:
        return Decimal("100.00")
    return round_money((current - baseline) / abs(baseline) * _HUNDRED)
