# backend/fieldquote/routers/settings.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_admin
from ..db import get_db
from ..domain.audit import audit_write
from ..domain.locale import SUPPORTED_LOCALES
from ..models import CompanySettings, Region
from ..schemas import CompanySettingsIn, CompanySettingsOut
from ..services.auth_service import ensure_company_settings

router = APIRouter(prefix="/settings", tags=["settings"])


def _snapshot(cs: CompanySettings) -> dict:
    return {
        "default_language": cs.default_language,
        "theme": cs.theme,
        "tax_rate": str(cs.tax_rate),
        "overhead_rate": str(cs.overhead_rate),
        "profit_rate": str(cs.profit_rate),
        "region_id": cs.region_id,
    }


@router.get("", response_model=CompanySettingsOut)
def get_settings(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    cs = db.get(CompanySettings, p.company_id)
    if cs is None:
        # first read materializes the defaults
        cs = ensure_company_settings(db, company_id=p.company_id)
        db.commit()
        db.refresh(cs)
    return cs


def _save(db: Session, p: Principal, payload: CompanySettingsIn) -> CompanySettings:
    cs = ensure_company_settings(db, company_id=p.company_id)
    before = _snapshot(cs)

    fields = payload.model_dump(exclude_unset=True)
    if fields.get("default_language") is not None:
        lang = str(fields["default_language"]).strip().lower()
        if lang not in SUPPORTED_LOCALES:
            raise HTTPException(status_code=400, detail=f"unsupported language: {lang}")
        fields["default_language"] = lang
    if fields.get("region_id") is not None and db.get(Region, int(fields["region_id"])) is None:
        raise HTTPException(status_code=400, detail=f"unknown region {fields['region_id']}")

    for k, v in fields.items():
        if v is None and k != "region_id":
            continue
        setattr(cs, k, v)
    cs.updated_at = datetime.utcnow()
    db.flush()

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="settings.update",
        entity_type="CompanySettings",
        entity_id=p.company_id,
        before=before,
        after=_snapshot(cs),
    )

    db.commit()
    db.refresh(cs)
    return cs


@router.post("", response_model=CompanySettingsOut)
def create_settings(payload: CompanySettingsIn, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return _save(db, p, payload)


@router.put("", response_model=CompanySettingsOut)
def update_settings(payload: CompanySettingsIn, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return _save(db, p, payload)
