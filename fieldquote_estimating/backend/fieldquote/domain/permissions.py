# backend/fieldquote/domain/permissions.py
from __future__ import annotations

import json
from dataclasses import dataclass, fields
from typing import Any, Iterable, Mapping, Optional

from .errors import ConfigurationError

# snake_case attribute -> stored/wire key
_WIRE_KEYS = {
    "can_manage_users": "canManageUsers",
    "can_view_all_specialties": "canViewAllSpecialties",
    "can_view_prices": "canViewPrices",
    "can_edit_prices": "canEditPrices",
    "can_audit": "canAudit",
}

PERMISSION_FLAGS: tuple[str, ...] = tuple(_WIRE_KEYS)

ROLES = ("OWNER", "ADMIN", "USER", "SUPPORT")


@dataclass(frozen=True)
class Permissions:
    can_manage_users: bool = False
    can_view_all_specialties: bool = False
    can_view_prices: bool = False
    can_edit_prices: bool = False
    can_audit: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Permissions":
        """
        Accepts either camelCase (stored) or snake_case keys.
        Anything missing, null or non-true counts as False.
        """
        if not data:
            return cls()
        values: dict[str, bool] = {}
        for attr, wire in _WIRE_KEYS.items():
            raw = data.get(wire, data.get(attr))
            values[attr] = raw is True
        return cls(**values)

    def to_wire(self) -> dict[str, bool]:
        return {wire: bool(getattr(self, attr)) for attr, wire in _WIRE_KEYS.items()}

    def granted(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


DEFAULT_EMPLOYEE_PERMISSIONS = Permissions(can_view_prices=True)

OWNER_PERMISSIONS = Permissions(
    can_manage_users=True,
    can_view_all_specialties=True,
    can_view_prices=True,
    can_edit_prices=True,
    can_audit=True,
)

ADMIN_PERMISSIONS = Permissions(
    can_manage_users=True,
    can_view_all_specialties=True,
    can_view_prices=True,
    can_edit_prices=True,
    can_audit=True,
)

SUPPORT_PERMISSIONS = Permissions(can_manage_users=True, can_audit=True)

_ROLE_TEMPLATES = {
    "OWNER": OWNER_PERMISSIONS,
    "ADMIN": ADMIN_PERMISSIONS,
    "SUPPORT": SUPPORT_PERMISSIONS,
    "USER": DEFAULT_EMPLOYEE_PERMISSIONS,
}


def _coerce(p: Any) -> Permissions:
    if isinstance(p, Permissions):
        return p
    if p is None or isinstance(p, Mapping):
        return Permissions.from_mapping(p)
    raise TypeError(f"expected Permissions or mapping, got {type(p).__name__}")


def cap_permissions(job_perms: Any, company_perms: Any) -> Permissions:
    """
    Effective permissions for a user on a job.

    The company-level grant is the ceiling: each flag is the AND of the job
    grant and the company grant. Missing flags are False.
    """
    job = _coerce(job_perms)
    company = _coerce(company_perms)
    return Permissions(
        **{attr: bool(getattr(job, attr)) and bool(getattr(company, attr)) for attr in PERMISSION_FLAGS}
    )


def normalize_role(role: Optional[str]) -> str:
    r = (role or "USER").strip().upper()
    return r if r in ROLES else "USER"


def permissions_for_role(role: Optional[str]) -> Permissions:
    """Provisioning template for a new membership."""
    return _ROLE_TEMPLATES[normalize_role(role)]


# -------------------------
# Storage boundary
# -------------------------
def permissions_from_json(raw: Optional[str]) -> Permissions:
    """
    Parse a stored permissions blob into a typed record.

    Empty/NULL columns mean "nothing granted". A blob that is not a JSON
    object is corrupt data and raises ConfigurationError.
    """
    if raw is None or not str(raw).strip():
        return Permissions()
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"stored permissions are not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("stored permissions must be a JSON object")
    return Permissions.from_mapping(data)


def permissions_to_json(perms: Permissions) -> str:
    return json.dumps(perms.to_wire(), separators=(",", ":"))


def is_support_admin(username: str, global_role: Optional[str] = None, *, support_usernames: Iterable[str] = ()) -> bool:
    if global_role in ("support_admin", "super_admin"):
        return True
    names = {str(n).lower() for n in support_usernames}
    return (username or "").lower() in names
