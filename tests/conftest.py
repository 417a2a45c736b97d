"""
Shared fixtures: in-memory SQLite database and a TestClient bound to it.
"""
import os

# Must be set before dispatchdesk.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from dispatchdesk.database import SessionLocal, engine, get_db
from dispatchdesk.main import app
from dispatchdesk.models import Base


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


ADMIN_HEADERS = {"X-User-Role": "admin"}
SUPER_ADMIN_HEADERS = {"X-User-Role": "super-admin"}


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def super_admin_headers():
    return dict(SUPER_ADMIN_HEADERS)
