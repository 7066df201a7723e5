# backend/fieldquote/domain/pricing.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

from .errors import ConfigurationError, PricingRuleNotFound, ValidationError
from .money import round_money, to_decimal

log = logging.getLogger(__name__)

PRICING_UNITS: tuple[str, ...] = ("EA", "LF", "SF", "HR", "JOB")
MATERIAL_TIERS: tuple[str, ...] = ("basic", "standard", "premium")
COMPLEXITY_LEVELS: tuple[str, ...] = ("normal", "hard")

DEFAULT_ANCHOR_MULTIPLIER = Decimal("1.15")
DEFAULT_MATERIAL_MULTIPLIER = {"basic": 1.0, "standard": 1.15, "premium": 1.35}
DEFAULT_COMPLEXITY_MULTIPLIER = {"normal": 1.0, "hard": 1.2}


def normalize_unit(unit: Any) -> str:
    u = str(unit or "").strip().upper()
    if u not in PRICING_UNITS:
        raise ValidationError(f"unknown pricing unit {unit!r}; expected one of {', '.join(PRICING_UNITS)}", field="unit")
    return u


@dataclass(frozen=True)
class MultiplierTable:
    kind: str  # "material" | "complexity"
    factors: dict[str, Decimal]

    @classmethod
    def from_mapping(
        cls,
        kind: str,
        mapping: Any,
        required_keys: Sequence[str],
        *,
        rule_id: Optional[int] = None,
    ) -> "MultiplierTable":
        """
        Validate a stored multiplier table.

        Every enumerated tier must be present with a positive numeric factor.
        A gap is a data-entry defect and raises ConfigurationError; it is never
        papered over with 1.0.
        """
        if isinstance(mapping, str):
            try:
                mapping = json.loads(mapping)
            except ValueError as e:
                raise ConfigurationError(f"{kind} multiplier table is not valid JSON", rule_id=rule_id) from e
        if not isinstance(mapping, Mapping):
            raise ConfigurationError(f"{kind} multiplier table must be an object", rule_id=rule_id)

        factors: dict[str, Decimal] = {}
        for key in required_keys:
            if key not in mapping or mapping[key] is None:
                raise ConfigurationError(
                    f"{kind} multiplier table is missing tier {key!r}",
                    rule_id=rule_id,
                    key=key,
                )
            try:
                v = to_decimal(mapping[key], field=f"{kind}[{key}]")
            except ValueError as e:
                raise ConfigurationError(str(e), rule_id=rule_id, key=key) from e
            if v <= 0:
                raise ConfigurationError(f"{kind} multiplier {key!r} must be > 0", rule_id=rule_id, key=key)
            factors[key] = v
        return cls(kind=kind, factors=factors)

    def factor(self, key: str) -> Decimal:
        return self.factors[key]


@dataclass(frozen=True)
class PriceQuote:
    rule_id: Optional[int]
    used_fallback: bool
    unit: str
    material_tier: str
    complexity_level: str
    base_price: Decimal
    anchor_multiplier: Decimal
    material_multiplier: Decimal
    complexity_multiplier: Decimal
    unit_price: Decimal


def _rule_id(rule: Any) -> Optional[int]:
    rid = getattr(rule, "id", None)
    return int(rid) if rid is not None else None


def _matches(rule: Any, *, region_id: int, trade_id: int, specialty_id: Optional[int], unit: str) -> bool:
    if not bool(getattr(rule, "enabled", True)):
        return False
    if int(rule.region_id) != int(region_id) or int(rule.trade_id) != int(trade_id):
        return False
    if str(rule.unit).upper() != unit:
        return False
    rs = getattr(rule, "specialty_id", None)
    if specialty_id is None:
        return rs is None
    return rs is not None and int(rs) == int(specialty_id)


def resolve_pricing_rule(
    rules: Iterable[Any],
    *,
    region_id: int,
    trade_id: int,
    specialty_id: Optional[int],
    unit: str,
) -> tuple[Any, bool]:
    """
    Pick the single enabled rule for (region, trade, specialty, unit).

    Order:
      1) exact match on specialty
      2) trade-wide rule (specialty NULL) for the same region/trade/unit
    Returns (rule, used_fallback). Raises PricingRuleNotFound otherwise.
    """
    u = normalize_unit(unit)
    candidates = list(rules)

    if specialty_id is not None:
        for r in candidates:
            if _matches(r, region_id=region_id, trade_id=trade_id, specialty_id=specialty_id, unit=u):
                return r, False

    for r in candidates:
        if _matches(r, region_id=region_id, trade_id=trade_id, specialty_id=None, unit=u):
            if specialty_id is not None:
                log.info(
                    "pricing rule fallback to trade-wide rule",
                    extra={"rule_id": _rule_id(r)},
                )
            return r, specialty_id is not None

    raise PricingRuleNotFound(region_id=region_id, trade_id=trade_id, specialty_id=specialty_id, unit=u)


def compute_unit_price(
    rule: Any,
    *,
    material_tier: str,
    complexity_level: str,
    places: int = 2,
) -> PriceQuote:
    """
    unit_price = base * anchor * material[tier] * complexity[level]

    Exact Decimal arithmetic; one half-up rounding at the end.
    """
    tier = str(material_tier or "").strip().lower()
    level = str(complexity_level or "").strip().lower()
    if tier not in MATERIAL_TIERS:
        raise ValidationError(f"unknown material tier {material_tier!r}", field="material_tier")
    if level not in COMPLEXITY_LEVELS:
        raise ValidationError(f"unknown complexity level {complexity_level!r}", field="complexity_level")

    rid = _rule_id(rule)
    try:
        material = MultiplierTable.from_mapping("material", rule.material_multiplier, MATERIAL_TIERS, rule_id=rid)
        complexity = MultiplierTable.from_mapping(
            "complexity", rule.complexity_multiplier, COMPLEXITY_LEVELS, rule_id=rid
        )
        try:
            base = to_decimal(rule.base_price, field="base_price")
            anchor = to_decimal(rule.anchor_multiplier, field="anchor_multiplier")
        except ValueError as e:
            raise ConfigurationError(str(e), rule_id=rid) from e
    except ConfigurationError as e:
        log.error("pricing rule misconfigured: %s", e, extra={"rule_id": rid})
        raise

    if base < 0:
        raise ConfigurationError("base_price must be >= 0", rule_id=rid, key="base_price")
    if anchor <= 0:
        raise ConfigurationError("anchor_multiplier must be > 0", rule_id=rid, key="anchor_multiplier")

    m = material.factor(tier)
    c = complexity.factor(level)
    raw = base * anchor * m * c

    return PriceQuote(
        rule_id=rid,
        used_fallback=False,
        unit=str(rule.unit).upper(),
        material_tier=tier,
        complexity_level=level,
        base_price=base,
        anchor_multiplier=anchor,
        material_multiplier=m,
        complexity_multiplier=c,
        unit_price=round_money(raw, places),
    )


def quote_unit_price(
    rules: Iterable[Any],
    *,
    region_id: int,
    trade_id: int,
    specialty_id: Optional[int],
    unit: str,
    material_tier: str,
    complexity_level: str,
    places: int = 2,
) -> PriceQuote:
    rule, used_fallback = resolve_pricing_rule(
        rules, region_id=region_id, trade_id=trade_id, specialty_id=specialty_id, unit=unit
    )
    q = compute_unit_price(rule, material_tier=material_tier, complexity_level=complexity_level, places=places)
    if used_fallback:
        q = replace(q, used_fallback=True)
    return q


def validate_multiplier_tables(material: Any, complexity: Any, *, rule_id: Optional[int] = None) -> None:
    """Write-time check for admin edits; same rules as compute time."""
    MultiplierTable.from_mapping("material", material, MATERIAL_TIERS, rule_id=rule_id)
    MultiplierTable.from_mapping("complexity", complexity, COMPLEXITY_LEVELS, rule_id=rule_id)
