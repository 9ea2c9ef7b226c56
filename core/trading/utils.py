from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Convert a price or amount to a Decimal rounded half-up to cents.

    Floats go through ``str`` so 178.5 becomes 178.50 rather than its binary
    expansion.
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        amount = Decimal(value)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money_or_none(value: Any) -> Optional[Decimal]:
    """Like ``to_money`` but maps None, NaN and garbage to None."""
    if value is None:
        return None
    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite():
        return None
    return amount


def normalize_symbol(symbol: Any) -> str:
    """Upper-case, stripped ticker; empty string for anything unusable."""
    if not isinstance(symbol, str):
        return ""
    return symbol.strip().upper()
