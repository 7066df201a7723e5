# backend/fieldquote/routers/pricing_rules.py
from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_permission
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write
from ..domain.locale import format_money, resolve_locale
from ..models import PricingRule
from ..schemas import PriceQuoteIn, PriceQuoteOut, PricingRuleCreate, PricingRuleOut, PricingRuleUpdate
from ..services import job_service, pricing_service

router = APIRouter(prefix="/pricing-rules", tags=["pricing"])


def _snapshot(r: PricingRule) -> dict:
    return {
        "region_id": r.region_id,
        "trade_id": r.trade_id,
        "specialty_id": r.specialty_id,
        "unit": r.unit,
        "base_price": str(r.base_price),
        "anchor_multiplier": str(r.anchor_multiplier),
        "material_multiplier": r.material_multiplier,
        "complexity_multiplier": r.complexity_multiplier,
        "enabled": r.enabled,
    }


@router.get("", response_model=list[PricingRuleOut])
def list_rules(
    region_id: Optional[int] = Query(default=None),
    trade_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(PricingRule)
    if region_id is not None:
        q = q.where(PricingRule.region_id == region_id)
    if trade_id is not None:
        q = q.where(PricingRule.trade_id == trade_id)
    return list(db.scalars(q.order_by(PricingRule.id)).all())


@router.post("", response_model=PricingRuleOut, status_code=201)
def create_rule(
    payload: PricingRuleCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_permission("can_edit_prices")),
):
    row = PricingRule()
    pricing_service.apply_rule_fields(db, row, payload.model_dump())
    db.add(row)
    db.flush()

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="pricing_rule.create",
        entity_type="PricingRule",
        entity_id=row.id,
        after=_snapshot(row),
    )

    db.commit()
    db.refresh(row)
    return row


@router.put("/{rule_id}", response_model=PricingRuleOut)
def update_rule(
    rule_id: int,
    payload: PricingRuleUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_permission("can_edit_prices")),
):
    row = db.get(PricingRule, rule_id)
    if row is None:
        raise HTTPException(status_code=404, detail="pricing rule not found")
    before = _snapshot(row)

    pricing_service.apply_rule_fields(db, row, payload.model_dump(exclude_unset=True))
    db.flush()

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="pricing_rule.update",
        entity_type="PricingRule",
        entity_id=row.id,
        before=before,
        after=_snapshot(row),
    )

    db.commit()
    db.refresh(row)
    return row


@router.post("/quote", response_model=PriceQuoteOut)
def quote(
    payload: PriceQuoteIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_permission("can_view_prices")),
):
    cs = job_service.get_company_settings(db, company_id=p.company_id)
    region_id = payload.region_id if payload.region_id is not None else (cs.region_id if cs else None)
    if region_id is None:
        raise HTTPException(status_code=400, detail="region_id is required (company settings have no region)")

    q = pricing_service.quote(
        db,
        region_id=int(region_id),
        trade_id=payload.trade_id,
        specialty_id=payload.specialty_id,
        unit=payload.unit,
        material_tier=payload.material_tier,
        complexity_level=payload.complexity_level,
    )
    out = PriceQuoteOut(**asdict(q))
    if payload.locale is not None:
        loc = resolve_locale(payload.locale, cs.default_language if cs else settings.default_locale)
        out.formatted_unit_price = format_money(q.unit_price, loc, places=settings.currency_decimals)
    return out
