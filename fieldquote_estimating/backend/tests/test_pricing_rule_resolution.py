# backend/tests/test_pricing_rule_resolution.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

import pytest

from fieldquote.domain.errors import ConfigurationError, PricingRuleNotFound, ValidationError
from fieldquote.domain.pricing import (
    compute_unit_price,
    normalize_unit,
    quote_unit_price,
    resolve_pricing_rule,
    validate_multiplier_tables,
)


@dataclass
class R:
    id: int
    region_id: int
    trade_id: int
    specialty_id: Optional[int]
    unit: str
    base_price: Any = Decimal("10.00")
    anchor_multiplier: Any = Decimal("1.15")
    material_multiplier: Any = field(default_factory=lambda: {"basic": 1.0, "standard": 1.15, "premium": 1.35})
    complexity_multiplier: Any = field(default_factory=lambda: {"normal": 1.0, "hard": 1.2})
    enabled: bool = True


def test_standard_hard_baseboard_quote():
    rules = [R(id=1, region_id=1, trade_id=2, specialty_id=5, unit="LF")]
    q = quote_unit_price(
        rules,
        region_id=1,
        trade_id=2,
        specialty_id=5,
        unit="LF",
        material_tier="standard",
        complexity_level="hard",
    )
    # 10 * 1.15 * 1.15 * 1.2 = 15.87
    assert q.unit_price == Decimal("15.87")
    assert q.rule_id == 1
    assert q.used_fallback is False


def test_exact_specialty_beats_trade_wide():
    rules = [
        R(id=1, region_id=1, trade_id=2, specialty_id=None, unit="LF"),
        R(id=2, region_id=1, trade_id=2, specialty_id=5, unit="LF"),
    ]
    rule, fallback = resolve_pricing_rule(rules, region_id=1, trade_id=2, specialty_id=5, unit="lf")
    assert rule.id == 2
    assert fallback is False


def test_null_specialty_fallback():
    rules = [R(id=7, region_id=1, trade_id=2, specialty_id=None, unit="LF", base_price="8")]
    q = quote_unit_price(
        rules, region_id=1, trade_id=2, specialty_id=9, unit="LF", material_tier="basic", complexity_level="normal"
    )
    assert q.rule_id == 7
    assert q.used_fallback is True
    assert q.unit_price == Decimal("9.20")


def test_disabled_rules_are_ignored():
    rules = [
        R(id=1, region_id=1, trade_id=2, specialty_id=5, unit="LF", enabled=False),
        R(id=2, region_id=1, trade_id=2, specialty_id=None, unit="LF"),
    ]
    rule, fallback = resolve_pricing_rule(rules, region_id=1, trade_id=2, specialty_id=5, unit="LF")
    assert rule.id == 2
    assert fallback is True


def test_no_rule_raises_not_found():
    rules = [R(id=1, region_id=1, trade_id=2, specialty_id=5, unit="SF")]
    with pytest.raises(PricingRuleNotFound) as ei:
        resolve_pricing_rule(rules, region_id=1, trade_id=2, specialty_id=5, unit="LF")
    assert isinstance(ei.value, LookupError)
    assert ei.value.unit == "LF"


def test_missing_tier_is_configuration_error():
    rule = R(id=3, region_id=1, trade_id=2, specialty_id=5, unit="LF", material_multiplier={"basic": 1.0, "premium": 1.3})
    with pytest.raises(ConfigurationError) as ei:
        compute_unit_price(rule, material_tier="basic", complexity_level="normal")
    assert ei.value.rule_id == 3
    assert ei.value.key == "standard"


def test_non_positive_factor_is_configuration_error():
    with pytest.raises(ConfigurationError):
        validate_multiplier_tables({"basic": 1, "standard": 0, "premium": 1.3}, {"normal": 1, "hard": 1.2})


def test_multiplier_tables_may_arrive_as_json_text():
    rule = R(
        id=4,
        region_id=1,
        trade_id=2,
        specialty_id=5,
        unit="LF",
        material_multiplier='{"basic": 1, "standard": 1.15, "premium": 1.35}',
        complexity_multiplier='{"normal": 1, "hard": 1.2}',
    )
    q = compute_unit_price(rule, material_tier="premium", complexity_level="normal")
    # 10 * 1.15 * 1.35 = 15.525 -> half-up
    assert q.unit_price == Decimal("15.53")


def test_unknown_tier_and_unit_are_validation_errors():
    rule = R(id=1, region_id=1, trade_id=2, specialty_id=5, unit="LF")
    with pytest.raises(ValidationError):
        compute_unit_price(rule, material_tier="gold", complexity_level="normal")
    with pytest.raises(ValidationError):
        normalize_unit("furlong")
