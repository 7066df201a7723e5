# backend/tests/test_pricing_rules_api.py
from __future__ import annotations

from decimal import Decimal

from conftest import headers


def _rule_payload(t, **overrides):
    payload = {
        "region_id": t.region_id,
        "trade_id": t.trade_id,
        "specialty_id": t.specialty_id,
        "unit": "lf",
        "base_price": "10.00",
        "anchor_multiplier": "1.15",
        "material_multiplier": {"basic": 1.0, "standard": 1.15, "premium": 1.35},
        "complexity_multiplier": {"normal": 1.0, "hard": 1.2},
    }
    payload.update(overrides)
    return payload


def test_create_and_quote(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    r = client.post("/api/pricing-rules", json=_rule_payload(tenant), headers=h)
    assert r.status_code == 201, r.text
    rule = r.json()
    assert rule["unit"] == "LF"

    # region comes from company settings
    r = client.post(
        "/api/pricing-rules/quote",
        json={
            "trade_id": tenant.trade_id,
            "specialty_id": tenant.specialty_id,
            "unit": "LF",
            "material_tier": "standard",
            "complexity_level": "hard",
            "locale": "en",
        },
        headers=h,
    )
    assert r.status_code == 200, r.text
    q = r.json()
    assert Decimal(q["unit_price"]) == Decimal("15.87")
    assert q["rule_id"] == rule["id"]
    assert q["used_fallback"] is False
    assert q["formatted_unit_price"] == "$15.87"


def test_duplicate_rule_is_conflict(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    assert client.post("/api/pricing-rules", json=_rule_payload(tenant), headers=h).status_code == 201
    assert client.post("/api/pricing-rules", json=_rule_payload(tenant), headers=h).status_code == 409


def test_missing_tier_rejected_on_write(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    bad = _rule_payload(tenant, material_multiplier={"basic": 1.0, "premium": 1.35})
    r = client.post("/api/pricing-rules", json=bad, headers=h)
    assert r.status_code == 422
    assert "standard" in r.json()["detail"]


def test_fallback_and_not_found(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    trade_wide = _rule_payload(tenant, specialty_id=None, unit="SF", base_price="4.00")
    assert client.post("/api/pricing-rules", json=trade_wide, headers=h).status_code == 201

    body = {"trade_id": tenant.trade_id, "specialty_id": tenant.specialty_id, "unit": "SF"}
    r = client.post("/api/pricing-rules/quote", json=body, headers=h)
    assert r.status_code == 200
    assert r.json()["used_fallback"] is True
    assert Decimal(r.json()["unit_price"]) == Decimal("4.60")

    r = client.post("/api/pricing-rules/quote", json={**body, "unit": "HR"}, headers=h)
    assert r.status_code == 404


def test_update_rule_revalidates_tables(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    rule = client.post("/api/pricing-rules", json=_rule_payload(tenant), headers=h).json()

    r = client.put(f"/api/pricing-rules/{rule['id']}", json={"base_price": "12.00"}, headers=h)
    assert r.status_code == 200
    assert Decimal(r.json()["base_price"]) == Decimal("12.00")

    r = client.put(
        f"/api/pricing-rules/{rule['id']}", json={"complexity_multiplier": {"normal": 1.0}}, headers=h
    )
    assert r.status_code == 422


def test_employee_cannot_edit_rules(client, tenant):
    emp_h = headers(tenant.company_id, f"pricer_{tenant.company_id}", role="USER")
    assert client.post("/api/pricing-rules", json=_rule_payload(tenant), headers=emp_h).status_code == 403


def test_job_item_priced_from_rule(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    assert client.post("/api/pricing-rules", json=_rule_payload(tenant), headers=h).status_code == 201

    r = client.post(
        "/api/jobs",
        json={
            "trade_id": tenant.trade_id,
            "items": [
                {
                    "service_id": tenant.baseboard_service_id,
                    "qty": "10",
                    "material_tier": "standard",
                    "complexity_level": "hard",
                }
            ],
        },
        headers=h,
    )
    assert r.status_code == 201, r.text
    item = r.json()["items"][0]
    assert Decimal(item["unit_price"]) == Decimal("15.87")
    assert Decimal(item["line_total"]) == Decimal("158.70")


def test_job_with_unpriceable_item_is_not_saved(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    before = len(client.get("/api/jobs", headers=h).json()["items"])

    r = client.post(
        "/api/jobs",
        json={
            "trade_id": tenant.trade_id,
            "items": [{"service_id": tenant.door_service_id, "qty": "1", "material_tier": "basic"}],
        },
        headers=h,
    )
    assert r.status_code == 404
    assert len(client.get("/api/jobs", headers=h).json()["items"]) == before


def test_update_rejects_null_key_fields(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    rule = client.post("/api/pricing-rules", json=_rule_payload(tenant), headers=h).json()

    for key in ("trade_id", "region_id", "unit", "base_price"):
        r = client.put(f"/api/pricing-rules/{rule['id']}", json={key: None}, headers=h)
        assert r.status_code == 400, r.text
        assert r.json()["field"] == key

    # specialty may be cleared to make the rule a trade-wide fallback
    r = client.put(f"/api/pricing-rules/{rule['id']}", json={"specialty_id": None}, headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["specialty_id"] is None
