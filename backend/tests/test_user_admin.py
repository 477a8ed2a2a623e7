import asyncio
import json
from types import SimpleNamespace

import pytest

from logitrack.api.routes import users as user_routes
from logitrack.core.exceptions import BusinessLogicError
from logitrack.models.audit import AuditEvent
from logitrack.models.user import UserRole
from logitrack.schemas.user import UserCreate, UserStatusUpdate
from logitrack.services.audit_service import audit_service
from logitrack.services.token_service import token_service


def _request():
    return SimpleNamespace(client=SimpleNamespace(host="127.0.0.1"))


class SessionLog:
    """Stands in for the realtime hub; remembers whose sessions were ended"""

    def __init__(self):
        self.ended = []

    async def end_sessions(self, user_id, reason):
        self.ended.append((user_id, reason))
        return 0


def test_deactivation_clears_refresh_token_and_is_audited(db, make_user):
    admin = make_user(name="Admin", role=UserRole.ADMIN)
    driver = make_user(name="Driver", role=UserRole.DRIVER)
    _, refresh = token_service.issue_token_pair(db, driver)
    assert driver.refresh_token == refresh

    hub = SessionLog()
    response = asyncio.run(
        user_routes.update_user_status(
            driver.id,
            UserStatusUpdate(is_active=False),
            request=_request(),
            current_user=admin,
            db=db,
            hub=hub,
        )
    )

    assert response.success is True
    assert response.data.is_active is False
    db.refresh(driver)
    assert driver.refresh_token is None
    assert hub.ended == [(driver.id, "Account deactivated")]

    events = audit_service.events_for_target(db, "user", str(driver.id))
    assert [e.action for e in events] == ["user.deactivate"]
    assert events[0].user_id == admin.id
    assert events[0].ip_address == "127.0.0.1"


def test_admin_cannot_deactivate_self(db, make_user):
    admin = make_user(name="Admin", role=UserRole.ADMIN)
    hub = SessionLog()
    with pytest.raises(BusinessLogicError):
        asyncio.run(
            user_routes.update_user_status(
                admin.id,
                UserStatusUpdate(is_active=False),
                request=_request(),
                current_user=admin,
                db=db,
                hub=hub,
            )
        )
    assert db.query(AuditEvent).count() == 0
    assert hub.ended == []


def test_admin_provisioning_can_assign_elevated_roles(db, make_user):
    admin = make_user(name="Admin", role=UserRole.ADMIN)
    response = user_routes.create_user(
        UserCreate(name="Maya", email="maya@example.com", password="secret123", role=UserRole.MANAGER),
        request=_request(),
        current_user=admin,
        db=db,
    )
    assert response.data.role == UserRole.MANAGER

    event = db.query(AuditEvent).filter(AuditEvent.action == "user.create").one()
    assert json.loads(event.metadata_json) == {"email": "maya@example.com", "role": "manager"}


def test_user_listing_is_closed_to_staff(client, make_user, auth_header):
    staff = make_user(name="Staff", role=UserRole.STAFF)
    manager = make_user(name="Manager", role=UserRole.MANAGER)
    make_user(name="Driver", role=UserRole.DRIVER)

    assert client.get("/api/users", headers=auth_header(staff)).status_code == 403

    response = client.get("/api/users", params={"role": "driver"}, headers=auth_header(manager))
    assert response.status_code == 200
    assert [u["name"] for u in response.json()["data"]] == ["Driver"]
