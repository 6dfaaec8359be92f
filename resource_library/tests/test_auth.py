from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from resource_library.app import app
from resource_library.auth.users import authenticate, register_user

client = TestClient(app)


def _login_user(c):
    c.post("/auth/login", json={"username": "alice", "password": "alice123"})


def _login_admin(c):
    c.post("/auth/login", json={"username": "admin", "password": "admin123"})


# ── Login / Logout ───────────────────────────────────────────────────────


def test_login_success_student():
    resp = client.post("/auth/login", json={"username": "alice", "password": "alice123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["user"] == {"id": "alice", "username": "alice", "role": "student"}


def test_login_success_admin():
    resp = client.post("/auth/login", json={"username": "admin", "password": "admin123"})
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "admin"


def test_login_wrong_password():
    resp = client.post("/auth/login", json={"username": "alice", "password": "wrong"})
    assert resp.status_code == 401


def test_login_unknown_user():
    resp = client.post("/auth/login", json={"username": "nobody", "password": "x"})
    assert resp.status_code == 401


def test_auth_me_when_logged_in():
    _login_user(client)
    resp = client.get("/auth/me")
    assert resp.status_code == 200
    assert resp.json()["id"] == "alice"


def test_auth_me_not_logged_in():
    c = TestClient(app)  # fresh client, no session
    assert c.get("/auth/me").status_code == 401


def test_logout():
    _login_user(client)
    resp = client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["status"] == "logged_out"
    # Session should be cleared
    assert client.get("/auth/me").status_code == 401


def test_registered_user_can_authenticate():
    register_user("dana", "dana123", "parent")
    assert authenticate("dana", "dana123") == {"id": "dana", "username": "dana", "role": "parent"}
    assert authenticate("dana", "nope") is None


def test_register_rejects_unknown_role():
    with pytest.raises(ValueError):
        register_user("eve", "eve123", "superuser")


# ── Route protection ─────────────────────────────────────────────────────


@pytest.mark.parametrize("path", ["/analytics", "/cache/stats"])
def test_admin_endpoints_reject_students(path):
    c = TestClient(app)
    _login_user(c)
    assert c.get(path).status_code == 403


@pytest.mark.parametrize("path", ["/analytics", "/cache/stats"])
def test_admin_endpoints_allow_admin(path):
    c = TestClient(app)
    _login_admin(c)
    assert c.get(path).status_code == 200


@pytest.mark.parametrize(
    "path",
    ["/recommended", "/personalized", "/collaborative", "/reviews/res-001", "/resources/res-001"],
)
def test_user_endpoints_require_login(path):
    assert TestClient(app).get(path).status_code == 401


# ── Public endpoints stay public ─────────────────────────────────────────


def test_health_is_public():
    c = TestClient(app)
    resp = c.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_metadata_is_public():
    body = TestClient(app).get("/metadata").json()
    assert "Math" in body["subjects"]
    assert body["grades"] == [1, 2, 3, 4, 5, 6]
    assert "video" in body["types"]
