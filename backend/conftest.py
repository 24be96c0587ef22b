from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
# Cheap password hashing for the test suite.
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "1024"

from farmflow.database import Base  # noqa: E402
from farmflow import models  # noqa: F401, E402
from farmflow.apps.accounts import models as account_models  # noqa: E402
from farmflow.apps.accounts import services as account_services  # noqa: E402


@pytest.fixture()
def db_session():
    # One connection shared with the TestClient worker thread.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def make_tenant(db_session):
    def _make(name: str = "Green Valley Estate", is_active: bool = True) -> account_models.Tenant:
        tenant = account_models.Tenant(name=name, is_active=is_active)
        db_session.add(tenant)
        db_session.commit()
        return tenant

    return _make


@pytest.fixture()
def tenant(make_tenant):
    return make_tenant()


@pytest.fixture()
def make_user(db_session):
    def _make(tenant, username: str, role: str = "user", password: str = "Passw0rd!") -> account_models.User:
        user = account_services.create_user(
            db_session,
            tenant_id=tenant.id,
            username=username,
            password=password,
            role=role,
        )
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def admin_user(make_user, tenant):
    return make_user(tenant, "estate.admin", role="admin")


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient

    from farmflow.database import get_db, get_read_db
    from farmflow.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_read_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _headers(user: account_models.User) -> dict:
        token, _ = account_services.issue_access_token_for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers
