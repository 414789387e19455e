# currency.py
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

DEFAULT_CURRENCY = "UGX"


def _to_decimal(amount) -> Decimal:
    if isinstance(amount, bool):
        raise ValueError(f"Not an amount: {amount!r}")
    if isinstance(amount, float) and not math.isfinite(amount):
        raise ValueError(f"Not an amount: {amount!r}")
    try:
        d = Decimal(str(amount).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not an amount: {amount!r}") from None
    if not d.is_finite():
        raise ValueError(f"Not an amount: {amount!r}")
    return d


def format_number(amount, decimals: int = 0) -> str:
    """1200000 -> '1,200,000'."""
    q = Decimal(1).scaleb(-decimals)
    d = _to_decimal(amount).quantize(q, rounding=ROUND_HALF_UP)
    if d == 0:
        d = abs(d)
    return f"{d:,.{decimals}f}"


def format_currency(amount, currency: str = DEFAULT_CURRENCY) -> str:
    """UGX has no minor unit in everyday use, so amounts show whole shillings."""
    s = format_number(amount)
    if s.startswith("-"):
        return f"-{currency} {s[1:]}"
    return f"{currency} {s}"
