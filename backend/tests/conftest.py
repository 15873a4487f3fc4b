import os
import uuid

# Must be set before campushub settings are first read.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("RESERVATION_SWEEP_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campushub.api.deps import get_db
from campushub.core.security import create_access_token
from campushub.db.base import Base
from campushub.main import app
from campushub.models.user import User, UserRole
import campushub.models  # noqa: F401


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    """Creates a user row and returns ``(user, auth_headers)``."""

    def _make_user(role: UserRole, name: str | None = None, *, is_active: bool = True):
        label = name or f"{role.value}-{uuid.uuid4().hex[:8]}"
        user = User(name=label, email=f"{label}@campus.example.edu", role=role, is_active=is_active)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        token = create_access_token(user.id, role=role.value)
        return user, {"Authorization": f"Bearer {token}"}

    return _make_user
