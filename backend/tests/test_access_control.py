from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from logitrack.api.deps import ADMIN_ONLY, MANAGEMENT, require_roles
from logitrack.core.security import create_access_token, create_refresh_token
from logitrack.models.user import UserRole


CUSTOMER = {"name": "Acme Freight", "phone": "+1 555 0100", "email": "Ops@Acme.com", "customerType": "business"}


def test_protected_route_without_header_is_401(client):
    response = client.get("/api/customers")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["path"] == "/api/customers"


def test_collection_routes_answer_without_redirect(make_user, auth_header):
    from logitrack.main import app

    client = TestClient(app, follow_redirects=False)
    for path in ("/api/customers", "/api/notifications", "/api/users"):
        assert client.get(path).status_code == 401

    staff = make_user(name="Rory")
    assert client.get("/api/customers", headers=auth_header(staff)).status_code == 200
    assert client.get("/api/notifications", headers=auth_header(staff)).status_code == 200


def test_protected_route_with_malformed_or_expired_token_is_401(client, make_user):
    user = make_user(name="Rita")
    expired = create_access_token(user.id, user.role, expires_delta=timedelta(seconds=-1))
    assert client.get("/api/customers", headers={"Authorization": "Bearer nonsense"}).status_code == 401
    assert client.get("/api/customers", headers={"Authorization": f"Bearer {expired}"}).status_code == 401


def test_refresh_token_is_not_accepted_as_bearer(client, make_user):
    user = make_user(name="Sam")
    headers = {"Authorization": f"Bearer {create_refresh_token(user.id)}"}
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_token_for_deleted_user_is_401(client, db, make_user, auth_header):
    user = make_user(name="Tess")
    headers = auth_header(user)
    db.delete(user)
    db.commit()
    response = client.get("/api/customers", headers=headers)
    assert response.status_code == 401
    assert response.json()["message"] == "User no longer exists"


def test_customer_create_requires_management_role(client, make_user, auth_header):
    driver = make_user(name="Uma", role=UserRole.DRIVER)
    manager = make_user(name="Vic", role=UserRole.MANAGER)

    forbidden = client.post("/api/customers", json=CUSTOMER, headers=auth_header(driver))
    assert forbidden.status_code == 403

    created = client.post("/api/customers", json=CUSTOMER, headers=auth_header(manager))
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["customerCode"] == "CUST000001"
    assert data["email"] == "ops@acme.com"
    assert data["createdById"] == manager.id


def test_customer_delete_is_admin_only(client, make_user, auth_header):
    manager = make_user(name="Walt", role=UserRole.MANAGER)
    admin = make_user(name="Xena", role=UserRole.ADMIN)
    customer_id = client.post("/api/customers", json=CUSTOMER, headers=auth_header(manager)).json()["data"]["id"]

    assert client.delete(f"/api/customers/{customer_id}", headers=auth_header(manager)).status_code == 403
    assert client.delete(f"/api/customers/{customer_id}", headers=auth_header(admin)).status_code == 200
    assert client.get(f"/api/customers/{customer_id}", headers=auth_header(admin)).status_code == 404


def test_customer_list_search_and_pagination(client, make_user, auth_header):
    manager = make_user(name="Yara", role=UserRole.MANAGER)
    staff = make_user(name="Zed", role=UserRole.STAFF)
    for name in ("Acme Freight", "Beta Logistics", "Acme Retail"):
        client.post("/api/customers", json={**CUSTOMER, "name": name}, headers=auth_header(manager))

    response = client.get("/api/customers", params={"search": "acme", "limit": 1}, headers=auth_header(staff))
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 1
    assert body["pagination"] == {"total": 2, "page": 1, "limit": 1, "pages": 2}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_health_reports_readiness(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["environment"] == "test"
    assert body["readiness"]["database"]["ok"] is True
    assert "X-Request-ID" in response.headers


def test_require_roles_rejects_unknown_roles_at_declaration():
    with pytest.raises(TypeError):
        require_roles("admin")
    with pytest.raises(ValueError):
        require_roles()


def test_role_sets_are_closed_enum_members():
    checker = require_roles(UserRole.ADMIN, UserRole.MANAGER)
    assert checker.allowed_roles == MANAGEMENT
    assert ADMIN_ONLY <= MANAGEMENT


def test_server_runs_in_one_process(monkeypatch):
    from logitrack.config import settings
    from logitrack.main import server_options

    monkeypatch.setattr(settings, "DEBUG", False)
    options = server_options()
    assert options["workers"] == 1
    assert options["reload"] is False
    assert not hasattr(settings, "WORKERS")
