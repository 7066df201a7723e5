# backend/fieldquote/routers/photos.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain.audit import audit_write
from ..models import EstimatePhoto
from ..schemas import EstimatePhotoCreate, EstimatePhotoOut
from ..services import job_service

router = APIRouter(prefix="/estimate-photos", tags=["photos"])


@router.post("", response_model=EstimatePhotoOut, status_code=201)
def create_photo(payload: EstimatePhotoCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    if payload.job_id is not None:
        job = job_service.get_job_or_none(db, company_id=p.company_id, job_id=payload.job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="job not found")

    row = EstimatePhoto(
        job_id=payload.job_id,
        company_id=p.company_id,
        url=payload.url.strip(),
        notes=payload.notes,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()

    audit_write(
        db,
        company_id=p.company_id,
        actor_user_id=p.user_id,
        action="photo.create",
        entity_type="EstimatePhoto",
        entity_id=row.id,
        job_id=payload.job_id,
        after={"url": row.url},
    )

    db.commit()
    db.refresh(row)
    return row
