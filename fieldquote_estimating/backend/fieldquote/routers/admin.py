# backend/fieldquote/routers/admin.py
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, require_permission
from ..db import get_db
from ..domain.audit import audit_write
from ..domain.errors import PermissionDenied
from ..domain.permissions import Permissions, permissions_from_json
from ..models import CompanyUser
from ..schemas import ActiveIn, EmployeeOut, PermissionsSchema, SpecialtiesPut
from ..services import permission_service

router = APIRouter(tags=["admin"])

_manage_users = require_permission("can_manage_users")


def _membership_or_404(db: Session, *, company_id: int, user_id: int) -> CompanyUser:
    mem = permission_service.get_membership(db, company_id=company_id, user_id=user_id)
    if mem is None:
        raise HTTPException(status_code=404, detail="user is not a member of this company")
    return mem


def _employee_out(db: Session, mem: CompanyUser) -> EmployeeOut:
    return EmployeeOut(
        user_id=int(mem.user_id),
        username=str(mem.user.username),
        role=mem.role,
        is_active=bool(mem.is_active),
        permissions=mem.permissions,
        specialty_ids=permission_service.user_specialty_ids(db, company_id=int(mem.company_id), user_id=int(mem.user_id)),
    )


def _guard_owner(p: Principal, mem: CompanyUser) -> None:
    if mem.role == "OWNER" and p.role != "OWNER":
        raise HTTPException(status_code=403, detail="Only an owner can change another owner")


def _guard_grant(p: Principal, user_id: int, current: Permissions, new: Permissions) -> None:
    """Non-admin managers can only hand out flags they hold themselves, and never to themselves."""
    if p.is_admin:
        return
    if user_id == p.user_id:
        raise PermissionDenied("only an owner or admin can change their own permissions")
    raised = [f for f in new.granted() if not getattr(current, f) and not getattr(p.permissions, f)]
    if raised:
        raise PermissionDenied(f"cannot grant permissions you do not hold: {', '.join(raised)}")


@router.patch("/admin/users/{user_id}/permissions", response_model=EmployeeOut)
def patch_permissions(
    user_id: int,
    payload: PermissionsSchema,
    db: Session = Depends(get_db),
    p: Principal = Depends(_manage_users),
):
    """Partial update: only the flags present in the body change."""
    mem = _membership_or_404(db, company_id=p.company_id, user_id=user_id)
    _guard_owner(p, mem)

    current = permissions_from_json(mem.permissions)
    merged = {**asdict(current), **payload.model_dump(exclude_unset=True)}
    new = Permissions(**merged)
    _guard_grant(p, user_id, current, new)

    permission_service.set_company_permissions(db, membership=mem, permissions=new)

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="user.permissions.update",
        entity_type="CompanyUser",
        entity_id=user_id,
        before=current.to_wire(),
        after=new.to_wire(),
    )

    db.commit()
    db.refresh(mem)
    return _employee_out(db, mem)


@router.put("/admin/users/{user_id}/specialties", response_model=EmployeeOut)
def put_specialties(
    user_id: int,
    payload: SpecialtiesPut,
    db: Session = Depends(get_db),
    p: Principal = Depends(_manage_users),
):
    mem = _membership_or_404(db, company_id=p.company_id, user_id=user_id)
    before = permission_service.user_specialty_ids(db, company_id=p.company_id, user_id=user_id)

    after = permission_service.replace_user_specialties(
        db, company_id=p.company_id, user_id=user_id, specialty_ids=payload.specialty_ids
    )

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="user.specialties.update",
        entity_type="CompanyUser",
        entity_id=user_id,
        before={"specialty_ids": before},
        after={"specialty_ids": after},
    )

    db.commit()
    return _employee_out(db, mem)


# -------------------------
# Employees
# -------------------------
@router.get("/employees", response_model=list[EmployeeOut])
def list_employees(db: Session = Depends(get_db), p: Principal = Depends(_manage_users)):
    rows = db.scalars(
        select(CompanyUser).where(CompanyUser.company_id == p.company_id).order_by(CompanyUser.id)
    ).all()
    return [_employee_out(db, m) for m in rows]


@router.put("/employees/{user_id}/active", response_model=EmployeeOut)
def set_active(
    user_id: int,
    payload: ActiveIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(_manage_users),
):
    mem = _membership_or_404(db, company_id=p.company_id, user_id=user_id)
    _guard_owner(p, mem)
    if user_id == p.user_id and not payload.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate yourself")

    before = {"is_active": bool(mem.is_active)}
    mem.is_active = payload.is_active
    db.flush()

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="user.activate" if payload.is_active else "user.deactivate",
        entity_type="CompanyUser",
        entity_id=user_id,
        before=before,
        after={"is_active": bool(mem.is_active)},
    )

    db.commit()
    db.refresh(mem)
    return _employee_out(db, mem)
