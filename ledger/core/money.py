"""
Decimal money helpers
=====================

Every amount that enters the ledger passes through ``to_money`` so balances
are summed as exact two-place decimals, never floats.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ledger.core.config import settings
from ledger.core.errors import ValidationError

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(amount, field: str = "amount") -> Decimal:
    """
    Convert an int, str, float or Decimal into a two-place Decimal.

    Floats go through ``str`` first so ``0.1`` becomes ``Decimal('0.10')``
    rather than its binary expansion.

    Raises:
        ValidationError: if the value is missing or not a finite number
    """
    if amount is None:
        raise ValidationError(f"{field} is required", field=field)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} is not a valid amount", field=field, value=amount)
    if not value.is_finite():
        raise ValidationError(f"{field} is not a valid amount", field=field, value=amount)
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def positive_money(amount, field: str = "amount") -> Decimal:
    """Like ``to_money`` but rejects zero and negative amounts"""
    value = to_money(amount, field)
    if value <= ZERO:
        raise ValidationError(f"{field} must be greater than zero", field=field, value=value)
    return value


def round_money(amount) -> Decimal:
    """Round to two places, half up"""
    return Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_currency(amount) -> str:
    """
    Format amount for log and activity messages, e.g. ``৳1,234.50``.
    """
    return f"{settings.CURRENCY_SYMBOL}{round_money(amount):,.2f}"
