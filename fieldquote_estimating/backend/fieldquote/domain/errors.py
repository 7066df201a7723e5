# backend/fieldquote/domain/errors.py
from __future__ import annotations


class EstimatingError(ValueError):
    """Base for deterministic estimating failures. Never retried."""

    status_code = 400


class ValidationError(EstimatingError):
    """Malformed input (negative quantity, unknown unit, unknown status...)."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class PricingRuleNotFound(EstimatingError, LookupError):
    """No enabled rule matches (region, trade, specialty, unit), fallback included."""

    status_code = 404

    def __init__(self, *, region_id: int, trade_id: int, specialty_id: int | None, unit: str):
        super().__init__(
            f"no pricing rule for region={region_id} trade={trade_id} "
            f"specialty={specialty_id if specialty_id is not None else 'null'} unit={unit}"
        )
        self.region_id = region_id
        self.trade_id = trade_id
        self.specialty_id = specialty_id
        self.unit = unit


class ConfigurationError(EstimatingError):
    """Admin-maintained data is incomplete or malformed (e.g. a missing multiplier tier)."""

    status_code = 422

    def __init__(self, message: str, *, rule_id: int | None = None, key: str | None = None):
        super().__init__(message)
        self.rule_id = rule_id
        self.key = key


class PermissionDenied(EstimatingError):
    """The effective permissions for this job do not allow the operation."""

    status_code = 403


class ConflictError(EstimatingError):
    """Write would violate a uniqueness rule (e.g. a second rule for the same key)."""

    status_code = 409
