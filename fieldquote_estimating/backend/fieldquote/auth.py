# backend/fieldquote/auth.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .domain.errors import ConfigurationError
from .domain.permissions import (
    PERMISSION_FLAGS,
    Permissions,
    is_support_admin,
    normalize_role,
    permissions_from_json,
)
from .models import Company, CompanyUser, User
from .services.auth_service import create_user, decode_access_token, ensure_membership, get_user_by_username

log = logging.getLogger(__name__)

ADMIN_ROLES = ("OWNER", "ADMIN")


@dataclass(frozen=True)
class Principal:
    company_id: int
    user_id: int
    username: str
    role: str  # OWNER | ADMIN | USER | SUPPORT
    permissions: Permissions  # company-level grant
    is_support_admin: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def _parse_company_id(raw: Optional[str]) -> int:
    s = str(raw or "").strip()
    if not s:
        raise HTTPException(status_code=401, detail="Missing X-Company-Id (active company context).")
    try:
        return int(s)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Company-Id must be an integer")


def _principal_from_user(db: Session, *, company_id: int, user: User) -> Principal:
    company = db.get(Company, company_id)
    if company is None:
        raise HTTPException(status_code=401, detail="Unknown company")

    mem = db.scalar(
        select(CompanyUser).where(CompanyUser.company_id == company_id, CompanyUser.user_id == int(user.id))
    )
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this company")
    if not mem.is_active:
        raise HTTPException(status_code=403, detail="Membership is inactive")

    try:
        perms = permissions_from_json(mem.permissions)
    except ConfigurationError:
        log.error("corrupt permissions on membership", extra={"company_id": company_id, "user_id": int(user.id)})
        raise HTTPException(status_code=500, detail="Stored permissions are corrupt; contact support")

    return Principal(
        company_id=int(company_id),
        user_id=int(user.id),
        username=str(user.username),
        role=normalize_role(mem.role),
        permissions=perms,
        is_support_admin=is_support_admin(
            str(user.username), user.global_role, support_usernames=settings.support_admin_usernames
        ),
    )


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    x_company_id: Optional[str] = Header(default=None, alias="X-Company-Id"),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes (priority order):
      1) Authorization: Bearer <jwt>
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    company_id = _parse_company_id(x_company_id)

    token = None
    if authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        try:
            claims = decode_access_token(token)
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Token expired")
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")

        user = db.get(User, int(claims.get("sub") or 0))
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return _principal_from_user(db, company_id=company_id, user=user)

    if settings.auth_mode == "dev":
        username = (request.headers.get(settings.dev_header_username) or "").strip().lower()
        role_hint = normalize_role(request.headers.get(settings.dev_header_user_role) or "OWNER")
        if not username:
            raise HTTPException(status_code=401, detail="Missing X-Username for dev auth")

        if db.get(Company, company_id) is None:
            raise HTTPException(status_code=401, detail="Unknown company")

        user = get_user_by_username(db, username)
        if settings.dev_auto_provision:
            if user is None:
                user = create_user(db, username=username, password=None, role=role_hint)
            ensure_membership(db, company_id=company_id, user_id=int(user.id), role=role_hint)
            db.commit()

        if user is None:
            raise HTTPException(status_code=401, detail="Dev auth could not provision user")
        return _principal_from_user(db, company_id=company_id, user=user)

    raise HTTPException(status_code=401, detail="Not authenticated")


def require_admin(p: Principal = Depends(get_principal)) -> Principal:
    if not p.is_admin:
        raise HTTPException(status_code=403, detail="Requires OWNER or ADMIN role")
    return p


def require_permission(flag: str) -> Callable[..., Principal]:
    """Dependency factory gating a route on one company-level capability flag."""
    if flag not in PERMISSION_FLAGS:
        raise ValueError(f"unknown permission flag {flag!r}")

    def _dep(p: Principal = Depends(get_principal)) -> Principal:
        if not getattr(p.permissions, flag):
            raise HTTPException(status_code=403, detail=f"Missing permission: {flag}")
        return p

    return _dep
