# backend/fieldquote/services/permission_service.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.errors import ValidationError
from ..domain.permissions import Permissions, cap_permissions, permissions_from_json, permissions_to_json
from ..models import CompanyUser, Job, JobAssignment, Specialty, UserSpecialty


def get_membership(db: Session, *, company_id: int, user_id: int) -> Optional[CompanyUser]:
    return db.scalar(
        select(CompanyUser).where(CompanyUser.company_id == int(company_id), CompanyUser.user_id == int(user_id))
    )


def company_permissions(db: Session, *, company_id: int, user_id: int) -> Permissions:
    mem = get_membership(db, company_id=company_id, user_id=user_id)
    if mem is None or not mem.is_active:
        return Permissions()
    return permissions_from_json(mem.permissions)


def get_assignment(db: Session, *, job_id: int, user_id: int) -> Optional[JobAssignment]:
    return db.scalar(
        select(JobAssignment).where(JobAssignment.job_id == int(job_id), JobAssignment.user_id == int(user_id))
    )


def effective_job_permissions(db: Session, *, job: Job, user_id: int, company_perms: Permissions) -> Permissions:
    """
    Company grant capped by the job grant.

    Users without an assignment on the job act with their company grant alone
    (owners/admins and the job creator work on unassigned jobs).
    """
    a = get_assignment(db, job_id=int(job.id), user_id=user_id)
    if a is None:
        return company_perms
    return cap_permissions(permissions_from_json(a.permissions), company_perms)


def upsert_assignment(db: Session, *, job: Job, user_id: int, permissions: Permissions) -> JobAssignment:
    mem = get_membership(db, company_id=int(job.company_id), user_id=user_id)
    if mem is None:
        raise ValidationError(f"user {user_id} is not a member of this company", field="user_id")

    a = get_assignment(db, job_id=int(job.id), user_id=user_id)
    if a is None:
        a = JobAssignment(job_id=int(job.id), user_id=int(user_id), assigned_at=datetime.utcnow())
        db.add(a)
    a.permissions = permissions_to_json(permissions)
    db.flush()
    return a


def set_company_permissions(db: Session, *, membership: CompanyUser, permissions: Permissions) -> CompanyUser:
    membership.permissions = permissions_to_json(permissions)
    db.flush()
    return membership


def user_specialty_ids(db: Session, *, company_id: int, user_id: int) -> list[int]:
    return list(
        db.scalars(
            select(UserSpecialty.specialty_id)
            .where(UserSpecialty.company_id == int(company_id), UserSpecialty.user_id == int(user_id))
            .order_by(UserSpecialty.specialty_id)
        ).all()
    )


def replace_user_specialties(db: Session, *, company_id: int, user_id: int, specialty_ids: list[int]) -> list[int]:
    wanted = sorted({int(s) for s in specialty_ids})
    if wanted:
        found = set(db.scalars(select(Specialty.id).where(Specialty.id.in_(wanted))).all())
        missing = [s for s in wanted if s not in found]
        if missing:
            raise ValidationError(f"unknown specialties: {missing}", field="specialty_ids")

    rows = db.scalars(
        select(UserSpecialty).where(UserSpecialty.company_id == int(company_id), UserSpecialty.user_id == int(user_id))
    ).all()
    for r in rows:
        if r.specialty_id not in wanted:
            db.delete(r)
    have = {r.specialty_id for r in rows}
    for sid in wanted:
        if sid not in have:
            db.add(UserSpecialty(company_id=int(company_id), user_id=int(user_id), specialty_id=sid))
    db.flush()
    return wanted
