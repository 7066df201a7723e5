# backend/fieldquote/services/invite_service.py
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.errors import ValidationError
from ..domain.permissions import normalize_role
from ..models import CompanyUser, InviteToken, User
from .auth_service import create_user, ensure_membership, get_user_by_username, verify_password


def create_invite(
    db: Session, *, company_id: int, created_by: int, role: str, expires_days: Optional[int] = None
) -> InviteToken:
    r = normalize_role(role)
    if r == "OWNER":
        raise ValidationError("invites cannot grant OWNER", field="role")
    now = datetime.utcnow()
    row = InviteToken(
        token=secrets.token_urlsafe(24),
        company_id=int(company_id),
        created_by=int(created_by),
        role=r,
        expires_at=now + timedelta(days=int(expires_days or settings.invite_expiry_days)),
        created_at=now,
    )
    db.add(row)
    db.flush()
    return row


def invite_state(row: InviteToken, *, now: Optional[datetime] = None) -> str:
    if row.used_at is not None:
        return "used"
    if row.expires_at < (now or datetime.utcnow()):
        return "expired"
    return "active"


def accept_invite(db: Session, *, token: str, username: str, password: str) -> tuple[User, CompanyUser]:
    """
    Redeem an invite: new usernames get an account, existing users must prove
    their password. The membership gets the invite role's permission template.
    """
    row = db.scalar(select(InviteToken).where(InviteToken.token == token.strip()))
    if row is None:
        raise ValidationError("unknown invite token", field="token")
    state = invite_state(row)
    if state != "active":
        raise ValidationError(f"invite is {state}", field="token")

    user = get_user_by_username(db, username)
    if user is None:
        user = create_user(db, username=username, password=password, role=row.role)
    elif not verify_password(password, user.password_hash):
        raise ValidationError("invalid credentials for existing user", field="password")

    existing = db.scalar(
        select(CompanyUser).where(CompanyUser.company_id == row.company_id, CompanyUser.user_id == user.id)
    )
    if existing is not None:
        raise ValidationError("user is already a member of this company", field="username")

    mem = ensure_membership(db, company_id=int(row.company_id), user_id=int(user.id), role=row.role)
    row.used_at = datetime.utcnow()
    row.used_by = int(user.id)
    db.flush()
    return user, mem
