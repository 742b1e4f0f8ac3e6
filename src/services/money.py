"""Money and ordering helpers shared by the ledger services.

All amounts are ``Decimal`` quantized to cents. Floats are refused outright:
a binary float cannot represent most cent values and would drift inside the
allocation prefix sums.
"""

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest value a Numeric(10, 2) amount column holds
MAX_AMOUNT = Decimal("99999999.99")


def to_money(value) -> Decimal:
    """Convert a monetary value to a cent-quantized Decimal.

    Args:
        value: Decimal, int, numeric string, or None (treated as zero)

    Returns:
        Decimal rounded half-up to two places

    Raises:
        TypeError: For floats, bools and other non-monetary types
        ValueError: For strings that are not numbers, and for values whose
            magnitude exceeds MAX_AMOUNT

    Sub-cent input is rounded, not rejected: "10.005" becomes 10.01.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary amounts must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a monetary amount: {value!r}") from e
    else:
        raise TypeError(f"Monetary amounts must be Decimal, int or str, got {type(value).__name__}")

    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Amount out of range: {value!r}") from e
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"Amount out of range: {value!r} exceeds {MAX_AMOUNT}")
    return amount


def money_sum(values: Iterable[Decimal]) -> Decimal:
    """Exact sum of cent amounts; 0.00 for an empty iterable."""
    return sum((to_money(v) for v in values), ZERO)


def as_ledger_datetime(value: date | datetime) -> datetime:
    """Normalize a charge or payment date to a naive UTC datetime.

    Appointments carry timezone-aware start times while lab orders and
    payments carry plain dates; SQLite also returns aware columns as naive.
    Aware values are converted to UTC, naive values are taken as UTC, and
    plain dates become midnight.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


__all__ = ["CENT", "ZERO", "MAX_AMOUNT", "to_money", "money_sum", "as_ledger_datetime"]
