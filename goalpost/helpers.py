# goalpost/helpers.py
"""
goalpost.helpers: money and serialization helpers shared by models, forms and routes.

- to_decimal: strict money parser ("$1,234.50", "25", 25.5, Decimal)
- to_cents / from_cents: integer minor units <-> Decimal
- money_str: stable two-decimal string for JSON payloads
- json_sanitize: Decimal/datetime -> JSON-safe values
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def to_decimal(val: Any) -> Decimal:
    """
    Convert a money-like value to Decimal.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(val, bool) or val is None:
        # avoid True->1 surprises in money paths
        raise ValueError(f"not a money value: {val!r}")
    if isinstance(val, Decimal):
        d = val
    elif isinstance(val, (int, float)):
        # float -> Decimal via string to reduce binary wobble
        d = Decimal(str(val))
    else:
        s = str(val).strip().replace("$", "").replace(",", "")
        try:
            d = Decimal(s)
        except InvalidOperation as e:
            raise ValueError(f"not a money value: {val!r}") from e
    if not d.is_finite():
        raise ValueError(f"not a money value: {val!r}")
    return d


def to_cents(val: Any) -> int:
    """
    Return integer cents from a money-like value.

    HALF_UP rounding, so 10.005 -> 1001 cents.
    """
    d = to_decimal(val)
    try:
        return int((d * _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except DecimalException as e:
        # more digits than the decimal context can hold
        raise ValueError(f"money value out of range: {val!r}") from e


def from_cents(cents: Any) -> Decimal:
    return (Decimal(int(cents or 0)) / _HUNDRED).quantize(CENT)


def money_str(val: Decimal) -> str:
    return str(val.quantize(CENT, rounding=ROUND_HALF_UP))


def json_sanitize(x: Any) -> Any:
    """Recursively convert Decimal / datetime into JSON-safe equivalents."""
    if x is None or isinstance(x, (str, int, float, bool)):
        return x
    if isinstance(x, Decimal):
        return float(x)
    if isinstance(x, (datetime, date)):
        return x.isoformat()
    if isinstance(x, dict):
        return {str(k): json_sanitize(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [json_sanitize(v) for v in x]
    return str(x)
