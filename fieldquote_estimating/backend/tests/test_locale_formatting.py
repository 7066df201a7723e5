# backend/tests/test_locale_formatting.py
from __future__ import annotations

from decimal import Decimal

from fieldquote.domain.locale import format_money, format_totals, resolve_locale, status_label


def test_money_en_and_pt():
    assert format_money(Decimal("1683"), "en") == "$1,683.00"
    assert format_money(Decimal("1683"), "pt") == "R$ 1.683,00"
    assert format_money(Decimal("1234567.005"), "en") == "$1,234,567.01"
    assert format_money(Decimal("-5.5"), "pt") == "-R$ 5,50"


def test_locale_resolution():
    assert resolve_locale("pt-BR") == "pt"
    assert resolve_locale("fr", "pt") == "pt"
    assert resolve_locale(None, None) == "en"


def test_status_labels():
    assert status_label("IN_PROGRESS", "pt") == "Em andamento"
    assert status_label("DRAFT", "en") == "Draft"


def test_format_totals_skips_counts():
    out = format_totals({"total": Decimal("99"), "item_count": 3}, "en")
    assert out == {"total": "$99.00"}
