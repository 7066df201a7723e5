# backend/fieldquote/services/job_service.py
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain.errors import PermissionDenied, ValidationError
from ..domain.job_status import ensure_status_transition, normalize_status
from ..domain.job_totals import JobTotals, compute_job_totals, line_total
from ..domain.money import round_money
from ..domain.permissions import Permissions
from ..domain.pricing import normalize_unit
from ..models import CompanySettings, Job, JobItem, Service, Specialty, Trade
from ..schemas import JobItemIn
from . import pricing_service

log = logging.getLogger(__name__)

QTY_PLACES = 3

JOB_FIELDS = (
    "specialty_id",
    "client_name",
    "client_phone",
    "client_email",
    "address",
    "address_locked",
    "address_released_at",
    "scheduled_at",
    "door_code",
    "notes",
)


def job_snapshot(job: Job) -> dict[str, Any]:
    """Plain dict for audit before/after."""
    return {
        "id": job.id,
        "status": job.status,
        "trade_id": job.trade_id,
        "specialty_id": job.specialty_id,
        "client_name": job.client_name,
        "address": job.address,
        "items": [
            {
                "service_id": it.service_id,
                "qty": str(it.qty),
                "unit_price": str(it.unit_price),
                "line_total": str(it.line_total),
            }
            for it in job.items
        ],
    }


def get_job_or_none(db: Session, *, company_id: int, job_id: int) -> Optional[Job]:
    return db.scalar(select(Job).where(Job.id == int(job_id), Job.company_id == int(company_id)))


def list_jobs(db: Session, *, company_id: int) -> list[Job]:
    return list(db.scalars(select(Job).where(Job.company_id == int(company_id)).order_by(Job.id.desc())).all())


def get_company_settings(db: Session, *, company_id: int) -> Optional[CompanySettings]:
    return db.get(CompanySettings, int(company_id))


def _check_trade(db: Session, *, trade_id: int, specialty_id: Optional[int]) -> None:
    if db.get(Trade, int(trade_id)) is None:
        raise ValidationError(f"unknown trade {trade_id}", field="trade_id")
    if specialty_id is not None:
        spec = db.get(Specialty, int(specialty_id))
        if spec is None or int(spec.trade_id) != int(trade_id):
            raise ValidationError(f"specialty {specialty_id} does not belong to trade {trade_id}", field="specialty_id")


def _service_for(db: Session, *, company_id: int, service_id: int) -> Service:
    svc = db.scalar(select(Service).where(Service.id == int(service_id), Service.company_id == int(company_id)))
    if svc is None:
        raise ValidationError(f"unknown service {service_id}", field="service_id")
    return svc


def _price_item(
    db: Session,
    *,
    job: Job,
    item: JobItemIn,
    svc: Service,
    existing: Optional[JobItem],
    perms: Permissions,
    company_settings: Optional[CompanySettings],
) -> tuple[Decimal, str]:
    """
    Unit price snapshot for one item, in precedence order:
      explicit price (needs can_edit_prices) > pricing-rule quote (tiers given)
      > stored snapshot of the same item > current service price.
    """
    unit = normalize_unit(item.pricing_unit or svc.pricing_unit)

    if item.unit_price is not None:
        manual = round_money(Decimal(item.unit_price), settings.currency_decimals)
        unchanged = existing is not None and Decimal(existing.unit_price) == manual
        if not unchanged and not perms.can_edit_prices:
            raise PermissionDenied("setting a manual unit price requires can_edit_prices")
        return manual, unit

    if item.material_tier or item.complexity_level:
        region_id = company_settings.region_id if company_settings is not None else None
        if region_id is None:
            raise ValidationError("company settings have no region; pricing rules cannot be applied", field="region_id")
        q = pricing_service.quote(
            db,
            region_id=int(region_id),
            trade_id=int(job.trade_id),
            specialty_id=job.specialty_id if job.specialty_id is not None else svc.specialty_id,
            unit=unit,
            material_tier=item.material_tier or "basic",
            complexity_level=item.complexity_level or "normal",
        )
        return q.unit_price, unit

    if existing is not None and int(existing.service_id) == int(item.service_id):
        return Decimal(existing.unit_price), unit

    return Decimal(svc.unit_price), unit


def _replace_items(
    db: Session,
    *,
    job: Job,
    items: Sequence[JobItemIn],
    perms: Permissions,
    company_settings: Optional[CompanySettings],
) -> None:
    current = {int(it.id): it for it in job.items}
    keep: list[JobItem] = []

    for item in items:
        svc = _service_for(db, company_id=int(job.company_id), service_id=item.service_id)
        if not svc.active and (item.id is None or item.id not in current):
            raise ValidationError(f"service {svc.id} is inactive", field="service_id")

        existing = current.get(int(item.id)) if item.id is not None else None
        price, unit = _price_item(
            db, job=job, item=item, svc=svc, existing=existing, perms=perms, company_settings=company_settings
        )
        # stored precision: qty Numeric(12,3), unit_price at currency places
        qty = round_money(Decimal(item.qty), QTY_PLACES)
        price = round_money(price, settings.currency_decimals)
        total = line_total(qty, price, places=settings.currency_decimals)

        row = existing or JobItem()
        row.service_id = int(svc.id)
        row.qty = qty
        row.unit_price = price
        row.line_total = total
        row.pricing_unit = unit
        keep.append(row)

    job.items = keep


def create_job(db: Session, *, principal: Principal, payload: Any) -> Job:
    _check_trade(db, trade_id=payload.trade_id, specialty_id=payload.specialty_id)

    now = datetime.utcnow()
    job = Job(
        company_id=principal.company_id,
        trade_id=int(payload.trade_id),
        created_by=principal.user_id,
        status=normalize_status(payload.status) if payload.status else "DRAFT",
        address_locked=True,
        created_at=now,
        updated_at=now,
    )
    for f in JOB_FIELDS:
        v = getattr(payload, f)
        if v is not None:
            setattr(job, f, v)
    db.add(job)
    db.flush()

    if payload.items:
        cs = get_company_settings(db, company_id=principal.company_id)
        _replace_items(db, job=job, items=payload.items, perms=principal.permissions, company_settings=cs)
        db.flush()

    log.info("job created", extra={"company_id": principal.company_id, "job_id": job.id, "user_id": principal.user_id})
    return job


def update_job(db: Session, *, principal: Principal, job: Job, payload: Any, perms: Permissions) -> Job:
    fields = payload.model_dump(exclude_unset=True)

    trade_id = fields.get("trade_id", job.trade_id)
    specialty_id = fields.get("specialty_id", job.specialty_id)
    if "trade_id" in fields or "specialty_id" in fields:
        _check_trade(db, trade_id=trade_id, specialty_id=specialty_id)
        job.trade_id = int(trade_id)

    if "status" in fields and fields["status"] is not None:
        job.status = ensure_status_transition(job.status, fields["status"], strict=settings.job_status_strict)

    for f in JOB_FIELDS:
        if f in fields:
            setattr(job, f, fields[f])

    if payload.items is not None:
        cs = get_company_settings(db, company_id=int(job.company_id))
        _replace_items(db, job=job, items=payload.items, perms=perms, company_settings=cs)

    job.updated_at = datetime.utcnow()
    db.flush()
    return job


def compute_totals(job: Job, company_settings: Optional[CompanySettings]) -> tuple[JobTotals, dict[str, Decimal]]:
    """Totals from the stored item snapshots plus the rates actually applied."""
    if company_settings is not None:
        rates = {
            "tax_rate": Decimal(company_settings.tax_rate),
            "overhead_rate": Decimal(company_settings.overhead_rate),
            "profit_rate": Decimal(company_settings.profit_rate),
        }
    else:
        rates = {
            "tax_rate": Decimal(str(settings.default_tax_rate)),
            "overhead_rate": Decimal(str(settings.default_overhead_rate)),
            "profit_rate": Decimal(str(settings.default_profit_rate)),
        }
    totals = compute_job_totals(job.items, places=settings.currency_decimals, **rates)
    return totals, rates
