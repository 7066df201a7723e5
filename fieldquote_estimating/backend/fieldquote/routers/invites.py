# backend/fieldquote/routers/invites.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from ..auth import Principal, require_permission
from ..db import get_db
from ..domain.audit import audit_write
from ..models import InviteToken
from ..schemas import InviteAccept, InviteCreate, InviteOut, TokenOut
from ..services import invite_service
from ..services.auth_service import create_access_token

router = APIRouter(tags=["invites"])

_manage_users = require_permission("can_manage_users")


@router.post("/invite/create", response_model=InviteOut, status_code=201)
def create_invite(payload: InviteCreate, db: Session = Depends(get_db), p: Principal = Depends(_manage_users)):
    row = invite_service.create_invite(
        db, company_id=p.company_id, created_by=p.user_id, role=payload.role, expires_days=payload.expires_days
    )

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="invite.create",
        entity_type="InviteToken",
        entity_id=row.id,
        after={"role": row.role, "expires_at": row.expires_at.isoformat()},
    )

    db.commit()
    db.refresh(row)
    return row


@router.post("/invite/accept", response_model=TokenOut)
def accept_invite(payload: InviteAccept, db: Session = Depends(get_db)):
    """Unauthenticated: the token itself is the credential."""
    user, mem = invite_service.accept_invite(db, token=payload.token, username=payload.username, password=payload.password)

    audit_write(
        db,
        company_id=int(mem.company_id),
        actor_user_id=int(user.id),
        action="invite.accept",
        entity_type="CompanyUser",
        entity_id=user.id,
        after={"role": mem.role},
    )

    db.commit()
    return TokenOut(
        access_token=create_access_token(user_id=int(user.id), username=str(user.username)),
        user_id=int(user.id),
        company_ids=[int(mem.company_id)],
    )


@router.get("/invites", response_model=list[InviteOut])
def list_invites(db: Session = Depends(get_db), p: Principal = Depends(_manage_users)):
    return list(
        db.scalars(
            select(InviteToken).where(InviteToken.company_id == p.company_id).order_by(desc(InviteToken.id))
        ).all()
    )
