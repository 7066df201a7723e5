# backend/tests/test_job_totals.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from fieldquote.domain.errors import ValidationError
from fieldquote.domain.job_totals import compute_job_totals, line_total


@dataclass
class Item:
    qty: Decimal
    unit_price: Decimal


ITEMS = [
    Item(qty=Decimal("120"), unit_price=Decimal("2.50")),
    Item(qty=Decimal("3"), unit_price=Decimal("150")),
    Item(qty=Decimal("1"), unit_price=Decimal("450")),
]


def test_totals_overhead_then_profit_then_tax():
    t = compute_job_totals(ITEMS, overhead_rate=10, profit_rate=20, tax_rate="6.25")
    assert t.subtotal == Decimal("1200.00")
    assert t.overhead_amount == Decimal("120.00")
    assert t.profit_amount == Decimal("264.00")
    assert t.taxable_base == Decimal("1584.00")
    assert t.tax_amount == Decimal("99.00")
    assert t.total == Decimal("1683.00")
    assert t.item_count == 3


def test_totals_are_idempotent():
    a = compute_job_totals(ITEMS, overhead_rate=10, profit_rate=20, tax_rate="6.25")
    b = compute_job_totals(ITEMS, overhead_rate=10, profit_rate=20, tax_rate="6.25")
    assert a == b


def test_dict_items_and_quantity_alias():
    t = compute_job_totals([{"quantity": 2, "unit_price": "0.125"}], tax_rate=0)
    # 0.25 exactly; rounding happens once at the end
    assert t.subtotal == Decimal("0.25")


def test_empty_job_is_zero():
    t = compute_job_totals([], overhead_rate=10, profit_rate=20, tax_rate=5)
    assert t.total == Decimal("0.00")
    assert t.item_count == 0


def test_negative_inputs_rejected():
    with pytest.raises(ValidationError):
        compute_job_totals([Item(qty=Decimal("-1"), unit_price=Decimal("5"))])
    with pytest.raises(ValidationError):
        compute_job_totals(ITEMS, tax_rate=-1)


def test_line_total_rounds_half_up():
    assert line_total(Decimal("3"), Decimal("0.335")) == Decimal("1.01")
    assert line_total(1, "2.005") == Decimal("2.01")
