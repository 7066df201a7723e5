# backend/fieldquote/services/pricing_service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.errors import ConflictError, ValidationError
from ..domain.pricing import PriceQuote, normalize_unit, quote_unit_price, validate_multiplier_tables
from ..models import PricingRule, Region, Specialty, Trade

log = logging.getLogger(__name__)


def load_candidate_rules(db: Session, *, region_id: int, trade_id: int, unit: str) -> list[PricingRule]:
    """Enabled rules for a region/trade/unit; specialty filtering happens in the domain resolver."""
    return list(
        db.scalars(
            select(PricingRule)
            .where(
                PricingRule.region_id == int(region_id),
                PricingRule.trade_id == int(trade_id),
                PricingRule.unit == normalize_unit(unit),
                PricingRule.enabled.is_(True),
            )
            .order_by(PricingRule.id)
        ).all()
    )


def quote(
    db: Session,
    *,
    region_id: int,
    trade_id: int,
    specialty_id: Optional[int],
    unit: str,
    material_tier: str,
    complexity_level: str,
) -> PriceQuote:
    rules = load_candidate_rules(db, region_id=region_id, trade_id=trade_id, unit=unit)
    return quote_unit_price(
        rules,
        region_id=region_id,
        trade_id=trade_id,
        specialty_id=specialty_id,
        unit=unit,
        material_tier=material_tier,
        complexity_level=complexity_level,
        places=settings.currency_decimals,
    )


def find_rule_by_key(
    db: Session, *, region_id: int, trade_id: int, specialty_id: Optional[int], unit: str
) -> Optional[PricingRule]:
    q = select(PricingRule).where(
        PricingRule.region_id == int(region_id),
        PricingRule.trade_id == int(trade_id),
        PricingRule.unit == normalize_unit(unit),
    )
    if specialty_id is None:
        q = q.where(PricingRule.specialty_id.is_(None))
    else:
        q = q.where(PricingRule.specialty_id == int(specialty_id))
    return db.scalar(q)


def _check_references(db: Session, *, region_id: int, trade_id: int, specialty_id: Optional[int]) -> None:
    if db.get(Region, int(region_id)) is None:
        raise ValidationError(f"unknown region {region_id}", field="region_id")
    if db.get(Trade, int(trade_id)) is None:
        raise ValidationError(f"unknown trade {trade_id}", field="trade_id")
    if specialty_id is not None:
        spec = db.get(Specialty, int(specialty_id))
        if spec is None or int(spec.trade_id) != int(trade_id):
            raise ValidationError(f"specialty {specialty_id} does not belong to trade {trade_id}", field="specialty_id")


_REQUIRED_RULE_FIELDS = (
    "region_id",
    "trade_id",
    "unit",
    "base_price",
    "anchor_multiplier",
    "material_multiplier",
    "complexity_multiplier",
    "enabled",
)


def apply_rule_fields(db: Session, row: PricingRule, fields: dict[str, Any]) -> PricingRule:
    """
    Validate and apply admin edits to a rule (new or existing).

    Multiplier tables are checked with the same rules used at quote time, so a
    table that would fail an estimate is rejected on write instead.
    """
    for key, value in fields.items():
        if value is None and key in _REQUIRED_RULE_FIELDS:
            raise ValidationError(f"{key} cannot be null", field=key)

    merged = {
        "region_id": row.region_id,
        "trade_id": row.trade_id,
        "specialty_id": row.specialty_id,
        "unit": row.unit,
        "base_price": row.base_price,
        "anchor_multiplier": row.anchor_multiplier,
        "material_multiplier": row.material_multiplier,
        "complexity_multiplier": row.complexity_multiplier,
        "enabled": row.enabled,
    }
    merged.update(fields)

    merged["unit"] = normalize_unit(merged["unit"])
    _check_references(
        db, region_id=merged["region_id"], trade_id=merged["trade_id"], specialty_id=merged["specialty_id"]
    )
    validate_multiplier_tables(merged["material_multiplier"], merged["complexity_multiplier"], rule_id=row.id)

    existing = find_rule_by_key(
        db,
        region_id=merged["region_id"],
        trade_id=merged["trade_id"],
        specialty_id=merged["specialty_id"],
        unit=merged["unit"],
    )
    if existing is not None and existing.id != row.id:
        raise ConflictError(f"pricing rule {existing.id} already covers this region/trade/specialty/unit")

    for k, v in merged.items():
        if v is not None or k == "specialty_id":
            setattr(row, k, v)
    return row
