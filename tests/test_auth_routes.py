from __future__ import annotations

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, DEFAULT_PASSWORD

from config.settings import settings
from database.connection import SessionLocal
from modules.security.model import Admin


def _register_payload(**overrides) -> dict:
    payload = {
        "name": "Su Su Hlaing",
        "email": "Su.Su@Example.com ",
        "password": "secret123",
        "phoneNumbers": ["09123456789"],
        "education": "B.A. English",
        "address": "No. 5, Bahan, Yangon",
        "supervisor": "Dimple",
    }
    payload.update(overrides)
    return payload


def test_register_creates_employee_ledger_and_tokens(app_client):
    _app, client = app_client

    res = client.post("/api/auth/user/register", json=_register_payload())
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    user = body["data"]["user"]
    assert user["email"] == "su.su@example.com"
    assert user["phoneNumbers"] == ["09123456789"]
    assert "password" not in user and "passwordHash" not in user
    assert settings.REFRESH_COOKIE_NAME in res.cookies

    headers = {"Authorization": f"Bearer {body['data']['accessToken']}"}
    bal = client.get("/api/auth/leave/balance", headers=headers).json()["data"]
    assert bal["annualLeave"] == {"total": 10, "used": 0, "remaining": 10}
    assert bal["sickLeave"]["total"] == 14
    assert bal["casualLeave"]["total"] == 5


def test_register_accepts_single_phone_number(app_client):
    _app, client = app_client
    payload = _register_payload()
    del payload["phoneNumbers"]
    payload["phoneNumber"] = "09555000111"
    res = client.post("/api/auth/user/register", json=payload)
    assert res.status_code == 201, res.text
    assert res.json()["data"]["user"]["phoneNumbers"] == ["09555000111"]


def test_register_duplicates_rejected(app_client, seed_employee):
    _app, client = app_client
    seed_employee(email="taken@example.com", phones=["09111111111"])

    res = client.post("/api/auth/user/register", json=_register_payload(email="taken@example.com"))
    assert res.status_code == 400
    assert res.json()["message"] == "User already exists with this email"

    res = client.post(
        "/api/auth/user/register",
        json=_register_payload(phoneNumbers=["09222222222", "09111111111"]),
    )
    assert res.status_code == 400
    assert res.json()["message"] == "User already exists with this phone number"


def test_register_validation_errors(app_client):
    _app, client = app_client
    bad = [
        _register_payload(name="Al"),
        _register_payload(email="not-an-email"),
        _register_payload(password="12345"),
        _register_payload(phoneNumbers=[]),
        _register_payload(education="   "),
        _register_payload(supervisor="Somebody Else"),
    ]
    for payload in bad:
        res = client.post("/api/auth/user/register", json=payload)
        assert res.status_code == 400, payload
        body = res.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["errors"]


def test_login_failures(app_client, seed_employee):
    _app, client = app_client
    seed_employee(email="mya@example.com")

    res = client.post("/api/auth/user/login", json={"email": "mya@example.com", "password": "wrong-pass"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Invalid email or password"}

    res = client.post("/api/auth/user/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert res.status_code == 401

    res = client.post("/api/auth/user/login", json={"email": "", "password": ""})
    assert res.status_code == 400


def test_refresh_rotation_over_http(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="kyaw@example.com")
    _headers, data = login("kyaw@example.com")
    old = data["refreshToken"]

    res = client.post("/api/auth/user/refresh", json={"refreshToken": old})
    assert res.status_code == 200
    new = res.json()["data"]
    assert new["refreshToken"] != old
    assert new["accessToken"]

    res = client.post("/api/auth/user/refresh", json={"refreshToken": old})
    assert res.status_code == 403
    assert res.json()["message"] == "Invalid refresh token"


def test_refresh_from_cookie(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="cookie@example.com")
    login("cookie@example.com")

    # login stored the httpOnly cookie on the client
    res = client.post("/api/auth/user/refresh")
    assert res.status_code == 200, res.text
    assert res.json()["data"]["refreshToken"]

    client.cookies.clear()
    res = client.post("/api/auth/user/refresh")
    assert res.status_code == 401
    assert res.json()["message"] == "Refresh token required"


def test_admin_refresh_token_rejected_on_user_refresh(app_client, login):
    _app, client = app_client
    _headers, data = login(ADMIN_EMAIL, ADMIN_PASSWORD, role="admin")
    res = client.post("/api/auth/user/refresh", json={"refreshToken": data["refreshToken"]})
    assert res.status_code == 403

    # still usable where it belongs
    res = client.post("/api/auth/admin/refresh", json={"refreshToken": data["refreshToken"]})
    assert res.status_code == 200


def test_logout_single_device_then_all(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="multi@example.com")
    headers_a, a = login("multi@example.com")
    _headers_b, b = login("multi@example.com")
    _headers_c, c = login("multi@example.com")

    res = client.post("/api/auth/user/logout", json={"refreshToken": a["refreshToken"]}, headers=headers_a)
    assert res.status_code == 200
    assert res.json()["message"] == "Logout successful"

    assert client.post("/api/auth/user/refresh", json={"refreshToken": a["refreshToken"]}).status_code == 403
    res = client.post("/api/auth/user/refresh", json={"refreshToken": b["refreshToken"]})
    assert res.status_code == 200
    b_new = res.json()["data"]["refreshToken"]

    # no token in the body -> every session ends
    res = client.post("/api/auth/user/logout", headers=headers_a)
    assert res.status_code == 200
    for token in (b_new, c["refreshToken"]):
        assert client.post("/api/auth/user/refresh", json={"refreshToken": token}).status_code == 403


def test_access_token_required_and_validated(app_client):
    _app, client = app_client
    res = client.get("/api/auth/user/profile")
    assert res.status_code == 401
    assert res.json()["message"] == "Access token required"

    res = client.get("/api/auth/user/profile", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 403
    assert res.json()["message"] == "Invalid or expired token"


def test_admin_login_profile_and_last_login(app_client, login):
    _app, client = app_client
    headers, data = login(ADMIN_EMAIL, ADMIN_PASSWORD, role="admin")
    assert data["admin"]["email"] == ADMIN_EMAIL

    res = client.get("/api/auth/admin/profile", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["admin"]["lastLogin"] is not None

    with SessionLocal() as db:
        admin = db.query(Admin).filter(Admin.email == ADMIN_EMAIL).one()
        assert admin.last_login is not None

    res = client.post("/api/auth/admin/login", json={"email": ADMIN_EMAIL, "password": "nope-nope"})
    assert res.status_code == 401


def test_admin_logout(app_client, login):
    _app, client = app_client
    headers, data = login(ADMIN_EMAIL, ADMIN_PASSWORD, role="admin")
    res = client.post("/api/auth/admin/logout", json={"refreshToken": data["refreshToken"]}, headers=headers)
    assert res.status_code == 200
    res = client.post("/api/auth/admin/refresh", json={"refreshToken": data["refreshToken"]})
    assert res.status_code == 403


def test_role_isolation(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="iso@example.com")
    user_headers, _ = login("iso@example.com", DEFAULT_PASSWORD)
    admin_headers, _ = login(ADMIN_EMAIL, ADMIN_PASSWORD, role="admin")

    res = client.get("/api/auth/admin/profile", headers=user_headers)
    assert res.status_code == 403
    assert res.json()["message"].startswith("Admin access required")

    res = client.get("/api/auth/leave/balance", headers=admin_headers)
    assert res.status_code == 403
    assert res.json()["message"].startswith("Employee access required")

    assert client.get("/api/auth/user/admin/all", headers=user_headers).status_code == 403
    assert client.get("/api/auth/user/profile", headers=admin_headers).status_code == 403


def test_health_and_request_id(app_client):
    _app, client = app_client
    res = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert res.status_code == 200
    assert res.json()["status"] == "OK"
    assert res.headers["X-Request-ID"] == "abc123"

    res = client.get("/health")
    assert res.headers["X-Request-ID"]


def test_unknown_route_uses_error_envelope(app_client):
    _app, client = app_client
    res = client.get("/api/auth/nothing-here")
    assert res.status_code == 404
    assert res.json()["success"] is False
