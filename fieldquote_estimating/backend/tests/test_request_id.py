# backend/tests/test_request_id.py
from __future__ import annotations


def test_request_id_is_echoed_or_minted(client):
    r = client.get("/api/health", headers={"X-Request-ID": "quote-42"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "quote-42"

    minted = client.get("/api/health").headers["X-Request-ID"]
    assert len(minted) == 32


def test_unsafe_request_id_is_replaced(client):
    r = client.get("/api/health", headers={"X-Request-ID": "bad id with spaces"})
    assert r.headers["X-Request-ID"] != "bad id with spaces"
