# backend/tests/test_jobs_api.py
from __future__ import annotations

from decimal import Decimal

from conftest import headers, make_tenant
from fieldquote.models import AuditEvent, Service


def _create_sample_job(client, t, **extra):
    payload = {
        "trade_id": t.trade_id,
        "client_name": "Alice Johnson",
        "address": "Providence, RI",
        "items": [
            {"service_id": t.baseboard_service_id, "qty": "120"},
            {"service_id": t.door_service_id, "qty": "3"},
            {"service_id": t.trim_service_id, "qty": "1"},
        ],
    }
    payload.update(extra)
    r = client.post("/api/jobs", json=payload, headers=headers(t.company_id, t.owner))
    assert r.status_code == 201, r.text
    return r.json()


def test_create_job_snapshots_prices_and_computes_totals(client, tenant):
    job = _create_sample_job(client, tenant)

    assert job["status"] == "DRAFT"
    assert [Decimal(i["unit_price"]) for i in job["items"]] == [Decimal("2.50"), Decimal("150"), Decimal("450")]
    totals = job["totals"]
    assert Decimal(totals["subtotal"]) == Decimal("1200.00")
    assert Decimal(totals["taxable_base"]) == Decimal("1584.00")
    assert Decimal(totals["total"]) == Decimal("1683.00")


def test_snapshot_survives_service_price_change(client, tenant, db):
    job = _create_sample_job(client, tenant)

    svc = db.get(Service, tenant.baseboard_service_id)
    svc.unit_price = Decimal("9.99")
    db.commit()

    r = client.get(f"/api/jobs/{job['id']}", headers=headers(tenant.company_id, tenant.owner))
    assert r.status_code == 200
    assert Decimal(r.json()["items"][0]["unit_price"]) == Decimal("2.50")
    assert Decimal(r.json()["totals"]["total"]) == Decimal("1683.00")

    # re-saving existing items keeps their snapshot
    items = [{"id": i["id"], "service_id": i["service_id"], "qty": i["qty"]} for i in job["items"]]
    r = client.put(f"/api/jobs/{job['id']}", json={"items": items}, headers=headers(tenant.company_id, tenant.owner))
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["items"][0]["unit_price"]) == Decimal("2.50")


def test_totals_endpoint_formats_locale(client, tenant):
    job = _create_sample_job(client, tenant)
    r = client.get(f"/api/jobs/{job['id']}/totals", params={"locale": "pt-BR"}, headers=headers(tenant.company_id, tenant.owner))
    assert r.status_code == 200
    body = r.json()
    assert body["locale"] == "pt"
    assert body["formatted"]["total"] == "R$ 1.683,00"


def test_cross_company_access_is_404(client, tenant):
    job = _create_sample_job(client, tenant)
    other = make_tenant()

    r = client.get(f"/api/jobs/{job['id']}", headers=headers(other.company_id, other.owner))
    assert r.status_code == 404
    r = client.put(f"/api/jobs/{job['id']}", json={"notes": "x"}, headers=headers(other.company_id, other.owner))
    assert r.status_code == 404

    listed = client.get("/api/jobs", headers=headers(other.company_id, other.owner)).json()
    assert job["id"] not in [j["id"] for j in listed["items"]]


def test_backward_status_change_rejected(client, tenant, db):
    job = _create_sample_job(client, tenant)
    h = headers(tenant.company_id, tenant.owner)

    r = client.put(f"/api/jobs/{job['id']}", json={"status": "SENT"}, headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "SENT"

    r = client.put(f"/api/jobs/{job['id']}", json={"status": "DRAFT"}, headers=h)
    assert r.status_code == 400
    assert r.json()["field"] == "status"

    actions = [a.action for a in db.query(AuditEvent).filter(AuditEvent.job_id == job["id"]).all()]
    assert "job.status_change" in actions

    stats = client.get("/api/jobs", headers=h).json()["stats"]
    assert stats["sent"] >= 1


def test_prices_hidden_without_effective_view_grant(client, tenant):
    job = _create_sample_job(client, tenant)
    emp = f"emp_{tenant.company_id}"
    emp_h = headers(tenant.company_id, emp, role="USER")

    me = client.get("/api/auth/me", headers=emp_h).json()
    assert me["permissions"]["can_view_prices"] is True

    # company grant allows prices; no assignment yet
    r = client.get(f"/api/jobs/{job['id']}", headers=emp_h)
    assert r.json()["totals"] is not None

    r = client.put(
        f"/api/jobs/{job['id']}/assignments/{me['user_id']}",
        json={"permissions": {"can_view_prices": False}},
        headers=headers(tenant.company_id, tenant.owner),
    )
    assert r.status_code == 200, r.text
    assert r.json()["effective_permissions"]["can_view_prices"] is False

    r = client.get(f"/api/jobs/{job['id']}", headers=emp_h)
    body = r.json()
    assert body["totals"] is None
    assert all(i["unit_price"] is None and i["line_total"] is None for i in body["items"])

    assert client.get(f"/api/jobs/{job['id']}/totals", headers=emp_h).status_code == 403


def test_job_grant_cannot_exceed_company_grant(client, tenant):
    job = _create_sample_job(client, tenant)
    emp_h = headers(tenant.company_id, f"emp2_{tenant.company_id}", role="USER")
    me = client.get("/api/auth/me", headers=emp_h).json()

    r = client.put(
        f"/api/jobs/{job['id']}/assignments/{me['user_id']}",
        json={"permissions": {"can_view_prices": True, "can_edit_prices": True}},
        headers=headers(tenant.company_id, tenant.owner),
    )
    assert r.status_code == 200
    eff = r.json()["effective_permissions"]
    assert eff["can_view_prices"] is True
    assert eff["can_edit_prices"] is False

    # manual price needs can_edit_prices
    r = client.put(
        f"/api/jobs/{job['id']}",
        json={"items": [{"service_id": tenant.door_service_id, "qty": "1", "unit_price": "1.00"}]},
        headers=emp_h,
    )
    assert r.status_code == 403


def test_delete_job(client, tenant):
    job = _create_sample_job(client, tenant)
    h = headers(tenant.company_id, tenant.owner)
    assert client.delete(f"/api/jobs/{job['id']}", headers=h).status_code == 204
    assert client.get(f"/api/jobs/{job['id']}", headers=h).status_code == 404


def test_missing_company_header_is_401(client):
    assert client.get("/api/jobs", headers={"X-Username": "nobody"}).status_code == 401


def test_photos_attach_to_job(client, tenant):
    job = _create_sample_job(client, tenant)
    h = headers(tenant.company_id, tenant.owner)

    r = client.post("/api/estimate-photos", json={"job_id": job["id"], "url": "https://img.example/1.jpg"}, headers=h)
    assert r.status_code == 201
    photos = client.get(f"/api/jobs/{job['id']}/photos", headers=h).json()
    assert [p["url"] for p in photos] == ["https://img.example/1.jpg"]

    other = make_tenant()
    r = client.post(
        "/api/estimate-photos",
        json={"job_id": job["id"], "url": "https://img.example/2.jpg"},
        headers=headers(other.company_id, other.owner),
    )
    assert r.status_code == 404


def test_item_precision_is_fixed_before_line_total(client, tenant):
    payload = {
        "trade_id": tenant.trade_id,
        "items": [
            {"service_id": tenant.baseboard_service_id, "qty": "3", "unit_price": "0.125"},
            {"service_id": tenant.door_service_id, "qty": "1.23456"},
        ],
    }
    r = client.post("/api/jobs", json=payload, headers=headers(tenant.company_id, tenant.owner))
    assert r.status_code == 201, r.text
    job = r.json()

    first, second = job["items"]
    assert Decimal(first["unit_price"]) == Decimal("0.13")
    assert Decimal(first["line_total"]) == Decimal("0.39")
    assert Decimal(second["qty"]) == Decimal("1.235")
    assert Decimal(second["line_total"]) == Decimal("185.25")

    for it in job["items"]:
        assert Decimal(it["line_total"]) == Decimal(it["qty"]) * Decimal(it["unit_price"])
    assert Decimal(job["totals"]["subtotal"]) == sum(Decimal(it["line_total"]) for it in job["items"])


def test_job_detail_localizes_status_on_request(client, tenant):
    job = _create_sample_job(client, tenant)
    h = headers(tenant.company_id, tenant.owner)

    assert client.get(f"/api/jobs/{job['id']}", headers=h).json()["status_label"] is None
    r = client.get(f"/api/jobs/{job['id']}", params={"locale": "pt-BR"}, headers=h)
    assert r.status_code == 200
    assert r.json()["status_label"] == "Rascunho"
