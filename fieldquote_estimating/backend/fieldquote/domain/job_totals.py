# backend/fieldquote/domain/job_totals.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from .errors import ValidationError
from .money import round_money, to_decimal


@dataclass(frozen=True)
class JobTotals:
    subtotal: Decimal
    overhead_amount: Decimal
    profit_amount: Decimal
    taxable_base: Decimal
    tax_amount: Decimal
    total: Decimal
    item_count: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "overhead_amount": self.overhead_amount,
            "profit_amount": self.profit_amount,
            "taxable_base": self.taxable_base,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "item_count": self.item_count,
        }


def _non_negative(x: Any, field: str) -> Decimal:
    try:
        d = to_decimal(x, field=field)
    except ValueError as e:
        raise ValidationError(str(e), field=field) from e
    if d < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return d


def _qty(item: Any) -> Any:
    for attr in ("qty", "quantity"):
        if hasattr(item, attr):
            return getattr(item, attr)
    if isinstance(item, dict):
        return item.get("qty", item.get("quantity"))
    return None


def _unit_price(item: Any) -> Any:
    if isinstance(item, dict):
        return item.get("unit_price")
    return getattr(item, "unit_price", None)


def line_total(qty: Any, unit_price: Any, *, places: int = 2) -> Decimal:
    """Snapshot value stored on a job item at write time."""
    q = _non_negative(qty, "qty")
    p = _non_negative(unit_price, "unit_price")
    return round_money(q * p, places)


def compute_job_totals(
    items: Iterable[Any],
    *,
    overhead_rate: Any = 0,
    profit_rate: Any = 0,
    tax_rate: Any = 0,
    places: int = 2,
) -> JobTotals:
    """
    Pricing policy (order is fixed):

      subtotal     = sum(qty * unit_price)
      overhead     = subtotal * overhead%
      profit       = (subtotal + overhead) * profit%
      taxable_base = subtotal + overhead + profit
      tax          = taxable_base * tax%
      total        = taxable_base + tax

    unit_price is the value stored on the item, never the live catalog price.
    Intermediates stay exact; only the reported figures are rounded.
    """
    ovr = _non_negative(overhead_rate if overhead_rate is not None else 0, "overhead_rate")
    prf = _non_negative(profit_rate if profit_rate is not None else 0, "profit_rate")
    tax = _non_negative(tax_rate if tax_rate is not None else 0, "tax_rate")

    hundred = Decimal(100)
    subtotal = Decimal(0)
    n = 0
    for it in items:
        subtotal += _non_negative(_qty(it), "qty") * _non_negative(_unit_price(it), "unit_price")
        n += 1

    overhead_amt = subtotal * ovr / hundred
    profit_amt = (subtotal + overhead_amt) * prf / hundred
    taxable_base = subtotal + overhead_amt + profit_amt
    tax_amt = taxable_base * tax / hundred
    total = taxable_base + tax_amt

    return JobTotals(
        subtotal=round_money(subtotal, places),
        overhead_amount=round_money(overhead_amt, places),
        profit_amount=round_money(profit_amt, places),
        taxable_base=round_money(taxable_base, places),
        tax_amount=round_money(tax_amt, places),
        total=round_money(total, places),
        item_count=n,
    )
