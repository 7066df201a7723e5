# backend/fieldquote/schemas.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, List

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .domain.permissions import Permissions, permissions_from_json
from .domain.pricing import DEFAULT_ANCHOR_MULTIPLIER


# -------------------- Permissions --------------------

class PermissionsSchema(BaseModel):
    can_manage_users: bool = False
    can_view_all_specialties: bool = False
    can_view_prices: bool = False
    can_edit_prices: bool = False
    can_audit: bool = False

    @classmethod
    def from_domain(cls, p: Permissions) -> "PermissionsSchema":
        return cls(**{k: getattr(p, k) for k in cls.model_fields})

    def to_domain(self) -> Permissions:
        return Permissions(**self.model_dump())


# -------------------- Auth --------------------

class RegisterIn(BaseModel):
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=4)
    company_name: Optional[str] = None
    trade_slug: Optional[str] = None


class LoginIn(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    company_ids: list[int] = Field(default_factory=list)


class PrincipalOut(BaseModel):
    company_id: int
    user_id: int
    username: str
    role: str
    is_support_admin: bool = False
    permissions: PermissionsSchema


# -------------------- Catalog --------------------

class TradeOut(BaseModel):
    id: int
    slug: str
    name: str
    model_config = ConfigDict(from_attributes=True)


class SpecialtyOut(BaseModel):
    id: int
    trade_id: int
    slug: str
    name: str
    model_config = ConfigDict(from_attributes=True)


class RegionOut(BaseModel):
    id: int
    code: str
    name: str
    model_config = ConfigDict(from_attributes=True)


class ServiceCreate(BaseModel):
    specialty_id: int
    category: str
    name: str
    pricing_unit: str = "EA"
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    description: Optional[str] = None
    active: bool = True


class ServiceOut(BaseModel):
    id: int
    company_id: int
    specialty_id: int
    category: str
    name: str
    pricing_unit: str
    # None when the caller cannot view prices
    unit_price: Optional[Decimal] = None
    description: Optional[str] = None
    active: bool
    model_config = ConfigDict(from_attributes=True)


# -------------------- Jobs --------------------

class JobItemIn(BaseModel):
    id: Optional[int] = None
    service_id: int
    qty: Decimal = Field(ge=0)
    # Explicit price wins; else the pricing rule (if tiers given); else the service price.
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    pricing_unit: Optional[str] = None
    material_tier: Optional[str] = None
    complexity_level: Optional[str] = None


class JobItemOut(BaseModel):
    id: int
    job_id: int
    service_id: int
    qty: Decimal
    unit_price: Optional[Decimal] = None
    line_total: Optional[Decimal] = None
    pricing_unit: str
    model_config = ConfigDict(from_attributes=True)


class JobBase(BaseModel):
    specialty_id: Optional[int] = None
    status: Optional[str] = None
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    address: Optional[str] = None
    address_locked: Optional[bool] = None
    address_released_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    door_code: Optional[str] = None
    notes: Optional[str] = None


class JobCreate(JobBase):
    trade_id: int
    items: Optional[List[JobItemIn]] = None


class JobUpdate(JobBase):
    trade_id: Optional[int] = None
    items: Optional[List[JobItemIn]] = None


class JobOut(BaseModel):
    id: int
    company_id: int
    trade_id: int
    specialty_id: Optional[int] = None
    created_by: int
    status: str
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    address: Optional[str] = None
    address_locked: bool
    address_released_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    door_code: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class JobTotalsOut(BaseModel):
    subtotal: Decimal
    overhead_amount: Decimal
    profit_amount: Decimal
    taxable_base: Decimal
    tax_amount: Decimal
    total: Decimal
    item_count: int
    tax_rate: Decimal
    overhead_rate: Decimal
    profit_rate: Decimal
    locale: Optional[str] = None
    formatted: Optional[dict[str, str]] = None


class JobDetailOut(JobOut):
    items: List[JobItemOut] = Field(default_factory=list)
    totals: Optional[JobTotalsOut] = None
    # localized status text, only when a locale is requested
    status_label: Optional[str] = None


class JobStatsOut(BaseModel):
    total: int
    drafts: int
    sent: int
    approved: int
    in_progress: int
    done: int


class JobListOut(BaseModel):
    items: List[JobOut]
    stats: JobStatsOut


class AssignmentUpsert(BaseModel):
    permissions: PermissionsSchema = Field(default_factory=PermissionsSchema)


class AssignmentOut(BaseModel):
    job_id: int
    user_id: int
    permissions: PermissionsSchema
    effective_permissions: PermissionsSchema
    assigned_at: datetime


# -------------------- Settings --------------------

class CompanySettingsIn(BaseModel):
    default_language: Optional[str] = None
    theme: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    overhead_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    profit_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    region_id: Optional[int] = None


class CompanySettingsOut(BaseModel):
    company_id: int
    default_language: str
    theme: str
    tax_rate: Decimal
    overhead_rate: Decimal
    profit_rate: Decimal
    region_id: Optional[int] = None
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Pricing rules --------------------

class PricingRuleCreate(BaseModel):
    region_id: int
    trade_id: int
    specialty_id: Optional[int] = None
    unit: str
    base_price: Decimal = Field(ge=0)
    anchor_multiplier: Decimal = Field(default=DEFAULT_ANCHOR_MULTIPLIER, gt=0)
    material_multiplier: dict[str, Any] = Field(
        default_factory=lambda: {"basic": 1.0, "standard": 1.15, "premium": 1.35}
    )
    complexity_multiplier: dict[str, Any] = Field(default_factory=lambda: {"normal": 1.0, "hard": 1.2})
    enabled: bool = True


class PricingRuleUpdate(BaseModel):
    region_id: Optional[int] = None
    trade_id: Optional[int] = None
    specialty_id: Optional[int] = None
    unit: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    anchor_multiplier: Optional[Decimal] = Field(default=None, gt=0)
    material_multiplier: Optional[dict[str, Any]] = None
    complexity_multiplier: Optional[dict[str, Any]] = None
    enabled: Optional[bool] = None


class PricingRuleOut(BaseModel):
    id: int
    region_id: int
    trade_id: int
    specialty_id: Optional[int] = None
    unit: str
    base_price: Decimal
    anchor_multiplier: Decimal
    material_multiplier: dict[str, Any]
    complexity_multiplier: dict[str, Any]
    enabled: bool
    model_config = ConfigDict(from_attributes=True)


class PriceQuoteIn(BaseModel):
    # region defaults to the company's configured region
    region_id: Optional[int] = None
    trade_id: int
    specialty_id: Optional[int] = None
    unit: str
    material_tier: str = "basic"
    complexity_level: str = "normal"
    locale: Optional[str] = None


class PriceQuoteOut(BaseModel):
    rule_id: Optional[int] = None
    used_fallback: bool
    unit: str
    material_tier: str
    complexity_level: str
    base_price: Decimal
    anchor_multiplier: Decimal
    material_multiplier: Decimal
    complexity_multiplier: Decimal
    unit_price: Decimal
    formatted_unit_price: Optional[str] = None


# -------------------- Photos --------------------

class EstimatePhotoCreate(BaseModel):
    job_id: Optional[int] = None
    url: str = Field(min_length=1)
    notes: Optional[str] = None


class EstimatePhotoOut(BaseModel):
    id: int
    job_id: Optional[int] = None
    company_id: int
    url: str
    notes: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Admin / employees / invites --------------------

class SpecialtiesPut(BaseModel):
    specialty_ids: list[int] = Field(default_factory=list)


class ActiveIn(BaseModel):
    is_active: bool


class EmployeeOut(BaseModel):
    user_id: int
    username: str
    role: str
    is_active: bool
    permissions: PermissionsSchema
    specialty_ids: list[int] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _coerce_permissions(cls, data: Any) -> Any:
        # permissions arrive as the stored JSON text from company_users
        if isinstance(data, dict) and isinstance(data.get("permissions"), str):
            data = dict(data)
            data["permissions"] = PermissionsSchema.from_domain(permissions_from_json(data["permissions"]))
        return data


class InviteCreate(BaseModel):
    role: str = "USER"
    expires_days: Optional[int] = Field(default=None, ge=1, le=90)


class InviteAccept(BaseModel):
    token: str
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=4)


class InviteOut(BaseModel):
    id: int
    token: str
    company_id: int
    role: str
    expires_at: datetime
    used_at: Optional[datetime] = None
    used_by: Optional[int] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Audit --------------------

class AuditEventOut(BaseModel):
    id: int
    company_id: int
    actor_user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: str
    job_id: Optional[int] = None
    before_json: Optional[str] = None
    after_json: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
