# backend/tests/test_invites.py
from __future__ import annotations

import uuid

from conftest import headers


def test_invite_accept_login_and_reuse_blocked(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    r = client.post("/api/invite/create", json={"role": "user"}, headers=h)
    assert r.status_code == 201, r.text
    token = r.json()["token"]

    username = f"invitee_{uuid.uuid4().hex[:6]}"
    r = client.post("/api/invite/accept", json={"token": token, "username": username, "password": "secret99"})
    assert r.status_code == 200, r.text
    assert r.json()["company_ids"] == [tenant.company_id]

    r = client.post("/api/invite/accept", json={"token": token, "username": username + "x", "password": "secret99"})
    assert r.status_code == 400
    assert "used" in r.json()["detail"]

    r = client.post("/api/auth/login", json={"username": username, "password": "secret99"})
    assert r.status_code == 200
    bearer = {"Authorization": f"Bearer {r.json()['access_token']}", "X-Company-Id": str(tenant.company_id)}
    me = client.get("/api/auth/me", headers=bearer).json()
    assert me["username"] == username
    assert me["role"] == "USER"
    assert me["permissions"]["can_view_prices"] is True
    assert me["permissions"]["can_manage_users"] is False

    invites = client.get("/api/invites", headers=h).json()
    assert any(i["token"] == token and i["used_by"] == me["user_id"] for i in invites)


def test_owner_invites_are_rejected(client, tenant):
    h = headers(tenant.company_id, tenant.owner)
    assert client.post("/api/invite/create", json={"role": "OWNER"}, headers=h).status_code == 400


def test_unknown_token(client):
    r = client.post("/api/invite/accept", json={"token": "nope", "username": "ghost", "password": "secret99"})
    assert r.status_code == 400


def test_bad_password_login(client, tenant):
    assert client.post("/api/auth/login", json={"username": tenant.owner, "password": "wrong"}).status_code == 401
