# backend/fieldquote/cli/seed.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.job_totals import line_total
from ..models import (
    Company,
    CompanyUser,
    Job,
    JobItem,
    PricingRule,
    Region,
    Service,
    Specialty,
    Trade,
    User,
    UserSpecialty,
)
from ..services.auth_service import (
    create_user,
    ensure_company_settings,
    ensure_membership,
    get_user_by_username,
    hash_password,
)

log = logging.getLogger(__name__)

DEMO_COMPANY_NAME = "Mateus Santana Finish Carpentry"
TEST_PASSWORD = "test1234"

CATALOG: dict[str, tuple[str, list[tuple[str, str]]]] = {
    "carpentry": (
        "Carpentry",
        [
            ("finish", "Finish"),
            ("deck", "Deck"),
            ("stairs", "Stairs"),
            ("doors", "Doors"),
            ("windows", "Windows"),
            ("baseboard", "Baseboard"),
            ("framing", "Framing"),
            ("roofing", "Roofing"),
        ],
    ),
    "painting": ("Painting", [("general", "General"), ("interior", "Interior"), ("exterior", "Exterior")]),
    "house_cleaning": ("House Cleaning", [("general", "General"), ("deep", "Deep Cleaning")]),
}

REGIONS = [("MA", "Massachusetts"), ("RI", "Rhode Island")]

# (username, role, trade slug, specialty slugs)
TEST_USERS = [
    ("admintest", "OWNER", "carpentry", ["finish", "deck", "stairs", "doors", "windows", "baseboard"]),
    ("mateustest", "USER", "carpentry", ["finish", "deck", "stairs", "doors", "windows", "baseboard"]),
    ("brothertest", "USER", "carpentry", ["finish", "deck"]),
    ("painttest", "USER", "painting", ["general"]),
    ("cleantest", "USER", "house_cleaning", ["general"]),
]

# (specialty slug, category, name, unit, price); also the sample job lines as (service index, qty)
DEMO_SERVICES = [
    ("baseboard", "Baseboard", "Baseboard install", "LF", Decimal("2.50")),
    ("doors", "Door install", "Interior door install", "EA", Decimal("150.00")),
    ("finish", "Trim", "Window trim package", "EA", Decimal("450.00")),
]
DEMO_JOB_LINES = [(0, Decimal("120")), (1, Decimal("3")), (2, Decimal("1"))]


@dataclass
class SeedReport:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"ok": True, "created": self.created, "updated": self.updated, "warnings": self.warnings}


def _get_or_create_trade(db: Session, slug: str, name: str, report: SeedReport) -> Trade:
    row = db.scalar(select(Trade).where(Trade.slug == slug))
    if row:
        return row
    row = Trade(slug=slug, name=name)
    db.add(row)
    db.flush()
    report.created.append(f"trade:{slug}")
    return row


def _get_or_create_specialty(db: Session, trade: Trade, slug: str, name: str, report: SeedReport) -> Specialty:
    row = db.scalar(select(Specialty).where(Specialty.trade_id == trade.id, Specialty.slug == slug))
    if row:
        return row
    row = Specialty(trade_id=int(trade.id), slug=slug, name=name)
    db.add(row)
    db.flush()
    report.created.append(f"specialty:{trade.slug}/{slug}")
    return row


def _get_or_create_region(db: Session, code: str, name: str, report: SeedReport) -> Region:
    row = db.scalar(select(Region).where(Region.code == code))
    if row:
        return row
    row = Region(code=code, name=name)
    db.add(row)
    db.flush()
    report.created.append(f"region:{code}")
    return row


def _specialty(db: Session, *, trade_slug: Optional[str], slug: str) -> Optional[Specialty]:
    q = select(Specialty).where(Specialty.slug == slug)
    if trade_slug:
        q = q.join(Trade, Trade.id == Specialty.trade_id).where(Trade.slug == trade_slug)
    return db.scalars(q.order_by(Specialty.id)).first()


def _ensure_user_specialty(db: Session, *, company_id: int, user_id: int, specialty_id: int) -> bool:
    if db.get(UserSpecialty, (company_id, user_id, specialty_id)) is not None:
        return False
    db.add(UserSpecialty(company_id=company_id, user_id=user_id, specialty_id=specialty_id))
    db.flush()
    return True


def _demo_company(db: Session) -> Optional[Company]:
    return db.scalar(select(Company).where(Company.name == DEMO_COMPANY_NAME))


def seed_catalog(db: Session, report: Optional[SeedReport] = None) -> SeedReport:
    """Trades, specialties and regions. Idempotent."""
    report = report or SeedReport()
    for trade_slug, (trade_name, specs) in CATALOG.items():
        trade = _get_or_create_trade(db, trade_slug, trade_name, report)
        for slug, name in specs:
            _get_or_create_specialty(db, trade, slug, name, report)
    for code, name in REGIONS:
        _get_or_create_region(db, code, name, report)
    db.commit()
    return report


def seed_demo(db: Session, *, owner_username: str = "admin", owner_password: str = "admin1234") -> SeedReport:
    """
    Demo company with settings (tax 6.25%, region MA), a small service catalog,
    one pricing rule and a sample draft job.
    """
    report = seed_catalog(db)

    carpentry = db.scalar(select(Trade).where(Trade.slug == "carpentry"))
    region = db.scalar(select(Region).where(Region.code == "MA"))

    owner = get_user_by_username(db, owner_username)
    if owner is None:
        owner = create_user(db, username=owner_username, password=owner_password, role="OWNER")
        report.created.append(f"user:{owner.username}")

    company = _demo_company(db)
    if company is None:
        company = Company(
            name=DEMO_COMPANY_NAME, trade_id=int(carpentry.id), owner_user_id=int(owner.id), created_at=datetime.utcnow()
        )
        db.add(company)
        db.flush()
        report.created.append(f"company:{company.id}")
    ensure_membership(db, company_id=int(company.id), user_id=int(owner.id), role="OWNER")

    cs = ensure_company_settings(db, company_id=int(company.id))
    if Decimal(cs.tax_rate) == 0:
        cs.tax_rate = Decimal("6.25")
        cs.region_id = int(region.id)
        cs.updated_at = datetime.utcnow()
        report.updated.append("settings:defaults")

    services: list[Service] = []
    for spec_slug, category, name, unit, price in DEMO_SERVICES:
        spec = _specialty(db, trade_slug="carpentry", slug=spec_slug)
        svc = db.scalar(select(Service).where(Service.company_id == company.id, Service.name == name))
        if svc is None:
            svc = Service(
                company_id=int(company.id),
                specialty_id=int(spec.id),
                category=category,
                name=name,
                pricing_unit=unit,
                unit_price=price,
                active=True,
            )
            db.add(svc)
            db.flush()
            report.created.append(f"service:{name}")
        services.append(svc)

    baseboard = _specialty(db, trade_slug="carpentry", slug="baseboard")
    rule_key = (PricingRule.region_id == region.id, PricingRule.trade_id == carpentry.id, PricingRule.unit == "LF")
    if db.scalar(select(PricingRule).where(*rule_key, PricingRule.specialty_id == baseboard.id)) is None:
        db.add(
            PricingRule(
                region_id=int(region.id),
                trade_id=int(carpentry.id),
                specialty_id=int(baseboard.id),
                unit="LF",
                base_price=Decimal("10.00"),
                anchor_multiplier=Decimal("1.15"),
                material_multiplier={"basic": 1.0, "standard": 1.15, "premium": 1.35},
                complexity_multiplier={"normal": 1.0, "hard": 1.2},
                enabled=True,
            )
        )
        report.created.append("pricing_rule:MA/carpentry/baseboard/LF")

    if db.scalar(select(Job).where(Job.company_id == company.id)) is None:
        now = datetime.utcnow()
        job = Job(
            company_id=int(company.id),
            trade_id=int(carpentry.id),
            created_by=int(owner.id),
            status="DRAFT",
            client_name="Alice Johnson",
            address="Providence, RI",
            notes="Master Bedroom Renovation: baseboards, new closet doors, and window trim.",
            created_at=now,
            updated_at=now,
        )
        job.items = [
            JobItem(
                service_id=int(services[idx].id),
                qty=qty,
                unit_price=Decimal(services[idx].unit_price),
                line_total=line_total(qty, services[idx].unit_price),
                pricing_unit=services[idx].pricing_unit,
            )
            for idx, qty in DEMO_JOB_LINES
        ]
        db.add(job)
        db.flush()
        audit_write(
            db,
            company_id=int(company.id),
            actor_user_id=int(owner.id),
            action="job.create",
            entity_type="Job",
            entity_id=job.id,
            job_id=job.id,
            after={"source": "seed-demo"},
        )
        report.created.append(f"job:{job.id}")

    db.commit()
    return report


def seed_test_users(db: Session, *, password: str = TEST_PASSWORD) -> SeedReport:
    """
    Test accounts in the demo company. Existing accounts get their password
    and role reset; missing specialties are reported, not created.
    """
    report = SeedReport()
    company = _demo_company(db)
    if company is None:
        raise SystemExit(f'Company "{DEMO_COMPANY_NAME}" not found. Run seed-demo first.')

    for username, role, trade_slug, spec_slugs in TEST_USERS:
        user = get_user_by_username(db, username)
        if user is None:
            user = create_user(db, username=username, password=password, role=role)
            report.created.append(f"user:{username}")
        else:
            user.password_hash = hash_password(password)
            user.role = role
            report.updated.append(f"user:{username}")

        mem = ensure_membership(db, company_id=int(company.id), user_id=int(user.id), role=role)
        if mem.role != role:
            mem.role = role
            report.updated.append(f"membership:{username}:{role}")

        for slug in spec_slugs:
            spec = _specialty(db, trade_slug=trade_slug, slug=slug)
            if spec is None:
                log.warning("specialty %s/%s not found for %s", trade_slug, slug, username)
                report.warnings.append(f"specialty {trade_slug}/{slug} not found for {username}")
                continue
            if _ensure_user_specialty(db, company_id=int(company.id), user_id=int(user.id), specialty_id=int(spec.id)):
                report.created.append(f"user_specialty:{username}/{slug}")

    db.commit()
    return report


def fix_admin_specialties(db: Session, *, username: str = "admin", required: tuple[str, ...] = ("framing", "roofing")) -> SeedReport:
    """Make sure the admin account covers the given carpentry specialties."""
    report = SeedReport()
    user: Optional[User] = get_user_by_username(db, username)
    if user is None:
        raise SystemExit(f"user {username!r} not found")

    mem = db.scalars(select(CompanyUser).where(CompanyUser.user_id == user.id).order_by(CompanyUser.id)).first()
    if mem is None:
        raise SystemExit(f"user {username!r} has no company membership")

    carpentry = db.scalar(select(Trade).where(Trade.slug == "carpentry"))
    if carpentry is None:
        raise SystemExit("carpentry trade not found; run seed-catalog first")

    for slug in required:
        spec = _get_or_create_specialty(db, carpentry, slug, slug.capitalize(), report)
        if _ensure_user_specialty(db, company_id=int(mem.company_id), user_id=int(user.id), specialty_id=int(spec.id)):
            report.created.append(f"user_specialty:{username}/{slug}")

    db.commit()
    return report


