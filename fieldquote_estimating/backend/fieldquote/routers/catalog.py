# backend/fieldquote/routers/catalog.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_admin
from ..db import get_db
from ..domain.audit import audit_write
from ..domain.pricing import normalize_unit
from ..models import Region, Service, Specialty, Trade
from ..schemas import RegionOut, ServiceCreate, ServiceOut, SpecialtyOut, TradeOut
from ..services import permission_service

router = APIRouter(tags=["catalog"])


@router.get("/trades", response_model=list[TradeOut])
def list_trades(db: Session = Depends(get_db)):
    return list(db.scalars(select(Trade).order_by(Trade.name)).all())


@router.get("/specialties", response_model=list[SpecialtyOut])
def list_specialties(db: Session = Depends(get_db)):
    return list(db.scalars(select(Specialty).order_by(Specialty.trade_id, Specialty.name)).all())


@router.get("/trades/{trade_id}/specialties", response_model=list[SpecialtyOut])
def trade_specialties(trade_id: int, db: Session = Depends(get_db)):
    if db.get(Trade, trade_id) is None:
        raise HTTPException(status_code=404, detail="trade not found")
    return list(db.scalars(select(Specialty).where(Specialty.trade_id == trade_id).order_by(Specialty.name)).all())


@router.get("/regions", response_model=list[RegionOut])
def list_regions(db: Session = Depends(get_db)):
    return list(db.scalars(select(Region).order_by(Region.code)).all())


# -------------------------
# Company service catalog
# -------------------------
def _services(
    db: Session,
    p: Principal,
    *,
    trade_id: Optional[int] = None,
    specialty_id: Optional[int] = None,
    include_inactive: bool = False,
) -> list[ServiceOut]:
    q = select(Service).where(Service.company_id == p.company_id)
    if specialty_id is not None:
        q = q.where(Service.specialty_id == specialty_id)
    if trade_id is not None:
        q = q.join(Specialty, Specialty.id == Service.specialty_id).where(Specialty.trade_id == trade_id)
    if not include_inactive:
        q = q.where(Service.active.is_(True))

    # employees only see services of the specialties they work in
    if not p.permissions.can_view_all_specialties:
        mine = permission_service.user_specialty_ids(db, company_id=p.company_id, user_id=p.user_id)
        q = q.where(Service.specialty_id.in_(mine))

    rows = db.scalars(q.order_by(Service.category, Service.name)).all()
    out = [ServiceOut.model_validate(r) for r in rows]
    if not p.permissions.can_view_prices:
        for s in out:
            s.unit_price = None
    return out


@router.get("/services", response_model=list[ServiceOut])
def list_services(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return _services(db, p, include_inactive=include_inactive)


@router.get("/trades/{trade_id}/services", response_model=list[ServiceOut])
def trade_services(trade_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return _services(db, p, trade_id=trade_id)


@router.get("/specialties/{specialty_id}/services", response_model=list[ServiceOut])
def specialty_services(specialty_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return _services(db, p, specialty_id=specialty_id)


@router.post("/services", response_model=ServiceOut, status_code=201)
def create_service(payload: ServiceCreate, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    if db.get(Specialty, payload.specialty_id) is None:
        raise HTTPException(status_code=400, detail=f"unknown specialty {payload.specialty_id}")

    row = Service(
        company_id=p.company_id,
        specialty_id=payload.specialty_id,
        category=payload.category.strip(),
        name=payload.name.strip(),
        pricing_unit=normalize_unit(payload.pricing_unit),
        unit_price=payload.unit_price,
        description=payload.description,
        active=payload.active,
    )
    db.add(row)
    db.flush()

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="service.create",
        entity_type="Service",
        entity_id=row.id,
        after={"name": row.name, "unit_price": str(row.unit_price), "pricing_unit": row.pricing_unit},
    )

    db.commit()
    db.refresh(row)
    return row
