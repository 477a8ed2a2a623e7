import os
import tempfile

# Settings are read at import time; point them at throwaway resources first.
_tmp = tempfile.mkdtemp(prefix="logitrack-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_INIT_MODE", "create_all")
os.environ.setdefault("LOG_FILE", os.path.join(_tmp, "app.log"))
os.environ.setdefault("UPLOADS_DIR", os.path.join(_tmp, "uploads"))
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from logitrack.core.database import Base, SessionLocal, engine  # noqa: E402
from logitrack.core.security import create_access_token  # noqa: E402
from logitrack.models.user import User, UserRole  # noqa: E402
from logitrack.services.rate_limiter import rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from logitrack.main import app

    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(name="Alice", email=None, role=UserRole.STAFF, password="secret123", is_active=True):
        user = User(
            name=name,
            email=email or f"{name.lower()}@example.com",
            role=role,
            is_active=is_active,
        )
        user.password = password
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _header
