# backend/fieldquote/domain/money.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


def to_decimal(x: Any, *, field: str = "value") -> Decimal:
    """
    Exact conversion for money/rate inputs.

    Floats go through str() so 2.5 becomes Decimal("2.5"), not its binary
    expansion. Raises ValueError on garbage; callers wrap it in their own error.
    """
    if isinstance(x, Decimal):
        d = x
    elif isinstance(x, bool):
        raise ValueError(f"{field} must be numeric, got bool")
    elif isinstance(x, (int, float)):
        d = Decimal(str(x))
    else:
        try:
            d = Decimal(str(x).strip())
        except (InvalidOperation, AttributeError) as e:
            raise ValueError(f"{field} must be numeric, got {x!r}") from e
    if not d.is_finite():
        raise ValueError(f"{field} must be finite, got {x!r}")
    return d


def round_money(value: Decimal, places: int = 2) -> Decimal:
    """Half-up rounding. Only call this at an output boundary."""
    q = Decimal(1).scaleb(-places)
    return value.quantize(q, rounding=ROUND_HALF_UP)
