# backend/tests/test_permissions_capping.py
from __future__ import annotations

from itertools import product

import pytest

from fieldquote.domain.errors import ConfigurationError
from fieldquote.domain.permissions import (
    DEFAULT_EMPLOYEE_PERMISSIONS,
    OWNER_PERMISSIONS,
    PERMISSION_FLAGS,
    Permissions,
    cap_permissions,
    permissions_for_role,
    permissions_from_json,
    permissions_to_json,
)


def _all_grants():
    for bits in product((False, True), repeat=len(PERMISSION_FLAGS)):
        yield Permissions(**dict(zip(PERMISSION_FLAGS, bits)))


def test_cap_is_flagwise_and():
    grants = list(_all_grants())
    # every job grant against a spread of company grants
    for job in grants:
        for company in grants[::7]:
            eff = cap_permissions(job, company)
            for flag in PERMISSION_FLAGS:
                assert getattr(eff, flag) == (getattr(job, flag) and getattr(company, flag))


def test_owner_job_grant_capped_by_employee_company_grant():
    assert cap_permissions(OWNER_PERMISSIONS, DEFAULT_EMPLOYEE_PERMISSIONS) == DEFAULT_EMPLOYEE_PERMISSIONS


def test_job_grant_cannot_escalate():
    eff = cap_permissions({"canEditPrices": True, "canViewPrices": True}, Permissions(can_view_prices=True))
    assert eff.can_view_prices is True
    assert eff.can_edit_prices is False


def test_missing_flags_are_false():
    eff = cap_permissions({}, None)
    assert eff == Permissions()
    assert eff.granted() == []


def test_only_literal_true_counts():
    p = Permissions.from_mapping({"canViewPrices": "true", "canAudit": 1, "can_manage_users": True})
    assert p.can_view_prices is False
    assert p.can_audit is False
    assert p.can_manage_users is True


def test_json_storage_boundary():
    raw = permissions_to_json(OWNER_PERMISSIONS)
    assert permissions_from_json(raw) == OWNER_PERMISSIONS
    assert permissions_from_json(None) == Permissions()
    assert permissions_from_json("  ") == Permissions()


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"canAudit"'])
def test_corrupt_permissions_blob_raises(raw):
    with pytest.raises(ConfigurationError):
        permissions_from_json(raw)


def test_role_templates():
    assert permissions_for_role("owner") == OWNER_PERMISSIONS
    assert permissions_for_role("USER") == DEFAULT_EMPLOYEE_PERMISSIONS
    # unknown roles provision as plain employees
    assert permissions_for_role("janitor") == DEFAULT_EMPLOYEE_PERMISSIONS
