# backend/fieldquote/routers/auth.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain.audit import audit_write
from ..models import Company, CompanyUser, Trade
from ..schemas import LoginIn, PermissionsSchema, PrincipalOut, RegisterIn, TokenOut
from ..services.auth_service import (
    create_access_token,
    create_user,
    ensure_company_settings,
    ensure_membership,
    get_user_by_username,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _company_ids(db: Session, user_id: int) -> list[int]:
    return list(
        db.scalars(
            select(CompanyUser.company_id)
            .where(CompanyUser.user_id == int(user_id), CompanyUser.is_active.is_(True))
            .order_by(CompanyUser.company_id)
        ).all()
    )


@router.post("/register", response_model=TokenOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    """
    Create a user and, when company_name is given, a company owned by that user
    (owner membership + settings row).
    """
    if get_user_by_username(db, payload.username) is not None:
        raise HTTPException(status_code=409, detail="Username already registered")

    company = None
    if payload.company_name:
        if not payload.trade_slug:
            raise HTTPException(status_code=400, detail="trade_slug is required when creating a company")
        trade = db.scalar(select(Trade).where(Trade.slug == payload.trade_slug.strip().lower()))
        if trade is None:
            raise HTTPException(status_code=400, detail=f"Unknown trade: {payload.trade_slug}")

    u = create_user(db, username=payload.username, password=payload.password, role="OWNER" if payload.company_name else "USER")

    if payload.company_name:
        company = Company(
            name=payload.company_name.strip(),
            trade_id=int(trade.id),
            owner_user_id=int(u.id),
            created_at=datetime.utcnow(),
        )
        db.add(company)
        db.flush()
        ensure_membership(db, company_id=int(company.id), user_id=int(u.id), role="OWNER")
        ensure_company_settings(db, company_id=int(company.id))

        audit_write(
            db,
            company_id=int(company.id),
            actor_user_id=int(u.id),
            action="company.create",
            entity_type="Company",
            entity_id=company.id,
            after={"name": company.name, "trade_id": company.trade_id},
        )

    db.commit()
    return TokenOut(
        access_token=create_access_token(user_id=int(u.id), username=str(u.username)),
        user_id=int(u.id),
        company_ids=_company_ids(db, int(u.id)),
    )


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = get_user_by_username(db, payload.username)
    if user is None or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(payload.password, str(user.password_hash)):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return TokenOut(
        access_token=create_access_token(user_id=int(user.id), username=str(user.username)),
        user_id=int(user.id),
        company_ids=_company_ids(db, int(user.id)),
    )


@router.get("/me", response_model=PrincipalOut)
def me(p: Principal = Depends(get_principal)):
    return PrincipalOut(
        company_id=p.company_id,
        user_id=p.user_id,
        username=p.username,
        role=p.role,
        is_support_admin=p.is_support_admin,
        permissions=PermissionsSchema.from_domain(p.permissions),
    )
