# backend/tests/test_settings_api.py
from __future__ import annotations

from decimal import Decimal

from conftest import headers


def test_owner_updates_settings_and_change_is_audited(client, tenant):
    h = headers(tenant.company_id, tenant.owner)

    r = client.get("/api/settings", headers=h)
    assert r.status_code == 200
    assert Decimal(r.json()["tax_rate"]) == Decimal("6.25")

    r = client.put("/api/settings", json={"tax_rate": "7.5", "default_language": "PT"}, headers=h)
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["tax_rate"]) == Decimal("7.5")
    assert r.json()["default_language"] == "pt"

    events = client.get("/api/audit", params={"entity_type": "CompanySettings"}, headers=h).json()
    assert events and events[0]["action"] == "settings.update"
    assert '"tax_rate": "7.5' in events[0]["after_json"]


def test_employee_cannot_write_settings_or_read_audit(client, tenant):
    emp_h = headers(tenant.company_id, f"clerk_{tenant.company_id}", role="USER")
    assert client.get("/api/settings", headers=emp_h).status_code == 200
    assert client.put("/api/settings", json={"tax_rate": "1"}, headers=emp_h).status_code == 403
    assert client.get("/api/audit", headers=emp_h).status_code == 403


def test_settings_validation(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    assert client.put("/api/settings", json={"default_language": "fr"}, headers=h).status_code == 400
    assert client.put("/api/settings", json={"region_id": 999999}, headers=h).status_code == 400
    # rates are percentages
    assert client.put("/api/settings", json={"tax_rate": "150"}, headers=h).status_code == 422


def test_new_rates_apply_to_totals(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    job = client.post(
        "/api/jobs",
        json={"trade_id": tenant.trade_id, "items": [{"service_id": tenant.trim_service_id, "qty": "1"}]},
        headers=h,
    ).json()

    client.put("/api/settings", json={"tax_rate": "0", "overhead_rate": "0", "profit_rate": "0"}, headers=h)
    totals = client.get(f"/api/jobs/{job['id']}/totals", headers=h).json()
    assert Decimal(totals["total"]) == Decimal("450.00")
