# backend/fieldquote/routers/jobs.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..domain.audit import audit_write
from ..domain.errors import PermissionDenied
from ..domain.job_status import status_stats
from ..domain.locale import format_totals, resolve_locale, status_label
from ..domain.permissions import Permissions, cap_permissions, permissions_from_json
from ..models import EstimatePhoto, Job, JobAssignment
from ..schemas import (
    AssignmentOut,
    AssignmentUpsert,
    EstimatePhotoOut,
    JobCreate,
    JobDetailOut,
    JobItemOut,
    JobListOut,
    JobOut,
    JobStatsOut,
    JobTotalsOut,
    JobUpdate,
    PermissionsSchema,
)
from ..services import job_service, permission_service

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _get_job_or_404(db: Session, *, company_id: int, job_id: int) -> Job:
    job = job_service.get_job_or_none(db, company_id=company_id, job_id=job_id)
    if not job:
        raise HTTPException(status_code=404, detail="job not found")
    return job


def _effective(db: Session, p: Principal, job: Job) -> Permissions:
    return permission_service.effective_job_permissions(db, job=job, user_id=p.user_id, company_perms=p.permissions)


def _totals_out(db: Session, job: Job, locale: Optional[str]) -> JobTotalsOut:
    cs = job_service.get_company_settings(db, company_id=int(job.company_id))
    totals, rates = job_service.compute_totals(job, cs)
    out = JobTotalsOut(**totals.as_dict(), **rates)
    if locale is not None:
        loc = resolve_locale(locale, cs.default_language if cs else settings.default_locale)
        out.locale = loc
        out.formatted = format_totals(totals.as_dict(), loc, places=settings.currency_decimals)
    return out


def _job_detail(db: Session, p: Principal, job: Job, *, locale: Optional[str] = None) -> JobDetailOut:
    perms = _effective(db, p, job)
    out = JobDetailOut.model_validate(job)
    items = [JobItemOut.model_validate(it) for it in job.items]
    if perms.can_view_prices:
        out.totals = _totals_out(db, job, locale)
    else:
        for it in items:
            it.unit_price = None
            it.line_total = None
    out.items = items
    if locale is not None:
        cs = job_service.get_company_settings(db, company_id=int(job.company_id))
        out.status_label = status_label(job.status, resolve_locale(locale, cs.default_language if cs else None))
    return out


@router.get("", response_model=JobListOut)
def list_jobs(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    jobs = job_service.list_jobs(db, company_id=p.company_id)
    return JobListOut(
        items=[JobOut.model_validate(j) for j in jobs],
        stats=JobStatsOut(**status_stats(j.status for j in jobs)),
    )


@router.get("/{job_id}", response_model=JobDetailOut)
def get_job(
    job_id: int,
    locale: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    job = _get_job_or_404(db, company_id=p.company_id, job_id=job_id)
    return _job_detail(db, p, job, locale=locale)


@router.post("", response_model=JobDetailOut, status_code=201)
def create_job(payload: JobCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    job = job_service.create_job(db, principal=p, payload=payload)

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="job.create",
        entity_type="Job",
        entity_id=job.id,
        job_id=job.id,
        before=None,
        after=job_service.job_snapshot(job),
    )

    db.commit()
    db.refresh(job)
    return _job_detail(db, p, job)


@router.put("/{job_id}", response_model=JobDetailOut)
def update_job(job_id: int, payload: JobUpdate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    job = _get_job_or_404(db, company_id=p.company_id, job_id=job_id)
    before = job_service.job_snapshot(job)
    old_status = job.status

    job_service.update_job(db, principal=p, job=job, payload=payload, perms=_effective(db, p, job))

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="job.status_change" if old_status != job.status else "job.update",
        entity_type="Job",
        entity_id=job.id,
        job_id=job.id,
        before=before,
        after=job_service.job_snapshot(job),
    )

    db.commit()
    db.refresh(job)
    return _job_detail(db, p, job)


@router.delete("/{job_id}", status_code=204)
def delete_job(job_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    job = _get_job_or_404(db, company_id=p.company_id, job_id=job_id)
    if not (p.is_admin or int(job.created_by) == p.user_id):
        raise HTTPException(status_code=403, detail="Only the creator or an admin can delete a job")

    before = job_service.job_snapshot(job)
    db.delete(job)
    db.flush()

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="job.delete",
        entity_type="Job",
        entity_id=job_id,
        job_id=job_id,
        before=before,
        after=None,
    )

    db.commit()
    return None


@router.get("/{job_id}/totals", response_model=JobTotalsOut)
def job_totals(
    job_id: int,
    locale: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    job = _get_job_or_404(db, company_id=p.company_id, job_id=job_id)
    if not _effective(db, p, job).can_view_prices:
        raise PermissionDenied("viewing totals requires can_view_prices")
    return _totals_out(db, job, locale)


# -------------------------
# Assignments (job-level permissions)
# -------------------------
def _assignment_out(a: JobAssignment, company_perms: Permissions) -> AssignmentOut:
    job_perms = permissions_from_json(a.permissions)
    return AssignmentOut(
        job_id=int(a.job_id),
        user_id=int(a.user_id),
        permissions=PermissionsSchema.from_domain(job_perms),
        effective_permissions=PermissionsSchema.from_domain(
            cap_permissions(job_perms, company_perms)
        ),
        assigned_at=a.assigned_at,
    )


@router.get("/{job_id}/assignments", response_model=list[AssignmentOut])
def list_assignments(job_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    job = _get_job_or_404(db, company_id=p.company_id, job_id=job_id)
    rows = db.scalars(select(JobAssignment).where(JobAssignment.job_id == job.id).order_by(JobAssignment.id)).all()
    return [
        _assignment_out(a, permission_service.company_permissions(db, company_id=p.company_id, user_id=a.user_id))
        for a in rows
    ]


@router.put("/{job_id}/assignments/{user_id}", response_model=AssignmentOut)
def upsert_assignment(
    job_id: int,
    user_id: int,
    payload: AssignmentUpsert,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    job = _get_job_or_404(db, company_id=p.company_id, job_id=job_id)
    if not (p.is_admin or p.permissions.can_manage_users):
        raise HTTPException(status_code=403, detail="Missing permission: can_manage_users")

    existing = permission_service.get_assignment(db, job_id=job.id, user_id=user_id)
    before = {"permissions": existing.permissions} if existing else None

    a = permission_service.upsert_assignment(db, job=job, user_id=user_id, permissions=payload.permissions.to_domain())

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="job.assignment.upsert",
        entity_type="JobAssignment",
        entity_id=f"{job.id}:{user_id}",
        job_id=job.id,
        before=before,
        after={"permissions": a.permissions},
    )

    db.commit()
    db.refresh(a)
    return _assignment_out(a, permission_service.company_permissions(db, company_id=p.company_id, user_id=user_id))


@router.get("/{job_id}/photos", response_model=list[EstimatePhotoOut])
def job_photos(job_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    job = _get_job_or_404(db, company_id=p.company_id, job_id=job_id)
    return list(
        db.scalars(
            select(EstimatePhoto)
            .where(EstimatePhoto.job_id == job.id, EstimatePhoto.company_id == p.company_id)
            .order_by(desc(EstimatePhoto.id))
        ).all()
    )
