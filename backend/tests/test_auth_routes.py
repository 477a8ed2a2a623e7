import time

import pytest
from pydantic import ValidationError as PydanticValidationError

from logitrack.config import settings
from logitrack.core.security import TokenKind, create_refresh_token, verify_token
from logitrack.models.user import User, UserRole
from logitrack.schemas.user import ForgotPasswordRequest, RegisterRequest, UserLogin


def _login(client, email, password="secret123"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_issues_token_pair_and_stores_refresh_token(client, db):
    response = client.post(
        "/api/auth/register",
        json={"name": "Dana", "email": "Dana@Example.com", "password": "secret123", "role": "driver"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["user"]["email"] == "dana@example.com"
    assert data["user"]["role"] == "driver"
    assert "passwordHash" not in data["user"]
    assert verify_token(data["accessToken"], TokenKind.ACCESS)["sub"] == str(data["user"]["id"])

    user = db.query(User).filter(User.email == "dana@example.com").one()
    assert user.refresh_token == data["refreshToken"]
    assert user.password_hash != "secret123"


def test_register_duplicate_email_is_rejected_without_new_record(client, db, make_user):
    make_user(name="Erin", email="erin@example.com")
    response = client.post(
        "/api/auth/register",
        json={"name": "Erin Two", "email": "ERIN@example.com", "password": "secret123"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert db.query(User).filter(User.email == "erin@example.com").count() == 1


def test_register_cannot_self_assign_admin(client, db):
    response = client.post(
        "/api/auth/register",
        json={"name": "Mallory", "email": "mallory@example.com", "password": "secret123", "role": "admin"},
    )
    assert response.status_code == 403
    assert db.query(User).count() == 0


def test_register_validation_failure_reports_fields(client):
    response = client.post("/api/auth/register", json={"name": "X", "email": "not-an-email", "password": "123"})
    assert response.status_code == 400
    fields = {item["field"] for item in response.json()["details"]}
    assert {"email", "password"} <= fields


@pytest.mark.parametrize("email", [".a@example.com", "a@ex_ample.com", "a..b@example.com", "a@example"])
def test_register_rejects_malformed_addresses(client, db, email):
    response = client.post("/api/auth/register", json={"name": "Xavi", "email": email, "password": "secret123"})
    assert response.status_code == 400
    assert [item["field"] for item in response.json()["details"]] == ["email"]
    assert db.query(User).count() == 0


def test_email_schemas_normalize_case_and_whitespace():
    assert RegisterRequest(name="Yara", email="  Yara@Example.COM ", password="secret123").email == "yara@example.com"
    assert ForgotPasswordRequest(email="YARA@example.com").email == "yara@example.com"
    with pytest.raises(PydanticValidationError):
        UserLogin(email="yara@", password="x")


def test_login_persists_returned_refresh_token_verbatim(client, db, make_user):
    user = make_user(name="Frank")
    response = _login(client, "FRANK@example.com")
    assert response.status_code == 200
    data = response.json()["data"]

    db.refresh(user)
    assert user.refresh_token == data["refreshToken"]
    assert user.last_login is not None


def test_login_with_wrong_password_or_unknown_email_is_401(client, make_user):
    make_user(name="Gina")
    wrong = _login(client, "gina@example.com", "wrong-password")
    unknown = _login(client, "nobody@example.com")
    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["message"] == unknown.json()["message"] == "Invalid credentials"


def test_login_on_deactivated_account_is_403(client, make_user):
    make_user(name="Hank", is_active=False)
    response = _login(client, "hank@example.com")
    assert response.status_code == 403


def test_login_is_throttled(client, make_user, monkeypatch):
    make_user(name="Ivy")
    monkeypatch.setattr(settings, "LOGIN_RATE_LIMIT_PER_MINUTE", 2)
    assert _login(client, "ivy@example.com", "bad").status_code == 401
    assert _login(client, "ivy@example.com", "bad").status_code == 401
    assert _login(client, "ivy@example.com").status_code == 429


def test_refresh_token_exchange(client, make_user):
    make_user(name="Jack")
    tokens = _login(client, "jack@example.com").json()["data"]

    response = client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 200
    access = response.json()["data"]["accessToken"]
    assert verify_token(access, TokenKind.ACCESS)["sub"] == verify_token(tokens["refreshToken"], TokenKind.REFRESH)["sub"]


def test_refresh_rejects_access_token_and_garbage(client, make_user):
    make_user(name="Kate")
    tokens = _login(client, "kate@example.com").json()["data"]
    assert client.post("/api/auth/refresh-token", json={"refreshToken": tokens["accessToken"]}).status_code == 401
    assert client.post("/api/auth/refresh-token", json={"refreshToken": "garbage"}).status_code == 401


def test_refresh_rejects_validly_signed_token_that_is_not_current(client, make_user):
    user = make_user(name="Liam")
    _login(client, "liam@example.com")
    stale = create_refresh_token(user.id)
    response = client.post("/api/auth/refresh-token", json={"refreshToken": stale})
    assert response.status_code == 401


def test_second_login_supersedes_first_refresh_token(client, db, make_user):
    user = make_user(name="Mona")
    first = _login(client, "mona@example.com").json()["data"]["refreshToken"]
    time.sleep(0.01)
    second = _login(client, "mona@example.com").json()["data"]["refreshToken"]
    assert first != second

    db.refresh(user)
    assert user.refresh_token == second
    assert client.post("/api/auth/refresh-token", json={"refreshToken": first}).status_code == 401
    assert client.post("/api/auth/refresh-token", json={"refreshToken": second}).status_code == 200


def test_logout_clears_refresh_token_and_is_idempotent(client, db, make_user):
    user = make_user(name="Nina")
    tokens = _login(client, "nina@example.com").json()["data"]
    headers = {"Authorization": f"Bearer {tokens['accessToken']}"}

    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    assert client.post("/api/auth/logout", headers=headers).status_code == 200

    db.refresh(user)
    assert user.refresh_token is None
    assert client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]}).status_code == 401


def test_me_returns_current_identity(client, make_user, auth_header):
    user = make_user(name="Owen", role=UserRole.MANAGER)
    response = client.get("/api/auth/me", headers=auth_header(user))
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "owen@example.com"
    assert response.json()["data"]["role"] == "manager"


def test_me_with_deactivated_user_is_401(client, db, make_user, auth_header):
    user = make_user(name="Pia")
    headers = auth_header(user)
    user.is_active = False
    db.commit()
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_password_reset_invalidates_refresh_token(client, db, make_user):
    user = make_user(name="Quinn")
    tokens = _login(client, "quinn@example.com").json()["data"]

    forgot = client.post("/api/auth/forgot-password", json={"email": "quinn@example.com"})
    assert forgot.status_code == 200
    reset_token = forgot.json()["data"]["resetToken"]

    reset = client.post("/api/auth/reset-password", json={"token": reset_token, "newPassword": "brandnew1"})
    assert reset.status_code == 200

    db.refresh(user)
    assert user.refresh_token is None
    assert user.password_reset_token_hash is None
    assert client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]}).status_code == 401
    assert _login(client, "quinn@example.com", "brandnew1").status_code == 200

    reused = client.post("/api/auth/reset-password", json={"token": reset_token, "newPassword": "another1"})
    assert reused.status_code == 400
