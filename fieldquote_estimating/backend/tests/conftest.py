# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import pytest

# Point the app at a throwaway sqlite file before fieldquote.config is imported.
_DB_DIR = tempfile.mkdtemp(prefix="fieldquote-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["AUTH_MODE"] = "dev"
os.environ["DEV_AUTO_PROVISION"] = "true"

from fastapi.testclient import TestClient  # noqa: E402

from fieldquote.db import SessionLocal, init_schema  # noqa: E402
from fieldquote.main import create_app  # noqa: E402
from fieldquote.models import Company, CompanySettings, Region, Service, Specialty, Trade  # noqa: E402
from fieldquote.services.auth_service import create_user, ensure_membership  # noqa: E402


@dataclass(frozen=True)
class Tenant:
    company_id: int
    owner: str
    trade_id: int
    specialty_id: int
    region_id: int
    baseboard_service_id: int
    door_service_id: int
    trim_service_id: int


def headers(company_id: int, username: str, role: str = "OWNER") -> dict[str, str]:
    return {"X-Company-Id": str(company_id), "X-Username": username, "X-User-Role": role}


def _get_or_create_trade(db, slug: str) -> Trade:
    row = db.query(Trade).filter(Trade.slug == slug).one_or_none()
    if row:
        return row
    row = Trade(slug=slug, name=slug.capitalize())
    db.add(row)
    db.flush()
    return row


def _get_or_create_specialty(db, trade: Trade, slug: str) -> Specialty:
    row = db.query(Specialty).filter(Specialty.trade_id == trade.id, Specialty.slug == slug).one_or_none()
    if row:
        return row
    row = Specialty(trade_id=trade.id, slug=slug, name=slug.capitalize())
    db.add(row)
    db.flush()
    return row


def make_tenant(*, tax="6.25", overhead="10", profit="20") -> Tenant:
    """
    A company with its own owner, region and three services
    (baseboard 2.50/LF, door 150/EA, trim 450/EA).
    Each tenant gets a fresh region so pricing rules never collide across tests.
    """
    suffix = uuid.uuid4().hex[:8]
    db = SessionLocal()
    try:
        trade = _get_or_create_trade(db, "carpentry")
        baseboard = _get_or_create_specialty(db, trade, "baseboard")
        doors = _get_or_create_specialty(db, trade, "doors")

        region = Region(code=f"R{suffix}", name=f"Region {suffix}")
        db.add(region)
        db.flush()

        owner = create_user(db, username=f"owner_{suffix}", password="test1234", role="OWNER")
        company = Company(
            name=f"Company {suffix}", trade_id=trade.id, owner_user_id=owner.id, created_at=datetime.utcnow()
        )
        db.add(company)
        db.flush()
        ensure_membership(db, company_id=company.id, user_id=owner.id, role="OWNER")

        db.add(
            CompanySettings(
                company_id=company.id,
                tax_rate=Decimal(tax),
                overhead_rate=Decimal(overhead),
                profit_rate=Decimal(profit),
                region_id=region.id,
                updated_at=datetime.utcnow(),
            )
        )

        def svc(spec: Specialty, name: str, unit: str, price: str) -> Service:
            s = Service(
                company_id=company.id,
                specialty_id=spec.id,
                category=name,
                name=name,
                pricing_unit=unit,
                unit_price=Decimal(price),
                active=True,
            )
            db.add(s)
            db.flush()
            return s

        base_svc = svc(baseboard, "Baseboard", "LF", "2.50")
        door_svc = svc(doors, "Door install", "EA", "150.00")
        trim_svc = svc(baseboard, "Trim", "EA", "450.00")

        db.commit()
        return Tenant(
            company_id=int(company.id),
            owner=str(owner.username),
            trade_id=int(trade.id),
            specialty_id=int(baseboard.id),
            region_id=int(region.id),
            baseboard_service_id=int(base_svc.id),
            door_service_id=int(door_svc.id),
            trim_service_id=int(trim_svc.id),
        )
    finally:
        db.close()


@pytest.fixture(scope="session")
def app():
    init_schema()
    return create_app()


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def tenant(app) -> Tenant:
    return make_tenant()
