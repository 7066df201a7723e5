# backend/fieldquote/services/auth_service.py
from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt  # PyJWT

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.permissions import normalize_role, permissions_for_role, permissions_to_json
from ..models import CompanySettings, CompanyUser, User


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    iters = int(os.getenv("AUTH_PBKDF2_ITERS", "210000"))
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return f"pbkdf2_sha256${iters}${base64.b64encode(salt).decode()}${base64.b64encode(dk).decode()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algo, iters_s, salt_b64, dk_b64 = stored.split("$", 3)
    except (AttributeError, ValueError):
        return False
    if algo != "pbkdf2_sha256":
        return False
    salt = base64.b64decode(salt_b64.encode())
    dk = base64.b64decode(dk_b64.encode())
    test = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iters_s))
    return hmac.compare_digest(test, dk)


def create_access_token(*, user_id: int, username: str, minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(int(user_id)),
        "username": username,
        "iat": now,
        "exp": now + timedelta(minutes=int(minutes or settings.jwt_exp_minutes)),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_access_token(token: str) -> dict[str, Any]:
    """Raises jwt.InvalidTokenError (incl. ExpiredSignatureError) on bad tokens."""
    return jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.scalar(select(User).where(User.username == username.strip().lower()))


def create_user(db: Session, *, username: str, password: Optional[str], role: str = "USER") -> User:
    u = User(
        username=username.strip().lower(),
        password_hash=hash_password(password) if password else "",
        role=normalize_role(role),
        created_at=datetime.utcnow(),
    )
    db.add(u)
    db.flush()
    return u


def ensure_membership(db: Session, *, company_id: int, user_id: int, role: str) -> CompanyUser:
    """
    Membership with the role's provisioning template.
    Existing memberships are returned untouched (their grants may have been edited).
    """
    mem = db.scalar(
        select(CompanyUser).where(CompanyUser.company_id == int(company_id), CompanyUser.user_id == int(user_id))
    )
    if mem is not None:
        return mem
    r = normalize_role(role)
    mem = CompanyUser(
        company_id=int(company_id),
        user_id=int(user_id),
        role=r,
        is_active=True,
        permissions=permissions_to_json(permissions_for_role(r)),
    )
    db.add(mem)
    db.flush()
    return mem


def ensure_company_settings(db: Session, *, company_id: int) -> CompanySettings:
    row = db.get(CompanySettings, int(company_id))
    if row is not None:
        return row
    row = CompanySettings(
        company_id=int(company_id),
        default_language=settings.default_locale,
        tax_rate=settings.default_tax_rate,
        overhead_rate=settings.default_overhead_rate,
        profit_rate=settings.default_profit_rate,
        updated_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()
    return row
