from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from newsdesk.access.seed import access_seed_helper
from newsdesk.core.auth import AuthUser, get_optional_user
from newsdesk.core.config import get_settings
from newsdesk.core.database import Base, get_db
from newsdesk.main import app
from newsdesk.models.audit import AuditLog


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env(db_session: Session) -> Generator[None, None, None]:
    get_settings.cache_clear()
    access_seed_helper.ensure_baseline(db_session, admin_user_id="admin-user")
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_optional_user() -> AuthUser:
        return AuthUser(sub="admin-user")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optional_user] = override_get_optional_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_generated_correlation_id_returned_in_header(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    assert response.headers.get("x-request-id") == header_value


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get("/me/permissions", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 200
    assert response.headers.get("x-correlation-id") == "abc-123"


def test_audit_uses_request_correlation_id(client: TestClient, db_session: Session) -> None:
    response = client.post(
        "/admin/permissions",
        json={"name": "Pin Story", "resource": "news", "action": "pin"},
        headers={"X-Correlation-Id": "corr-audit-1", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert response.status_code == 201

    entry = db_session.scalar(select(AuditLog).where(AuditLog.action == "permission.create"))
    assert entry is not None
    assert entry.correlation_id == "corr-audit-1"
    assert entry.ip_address == "203.0.113.7"
    assert entry.entity_id == response.json()["id"]


def test_request_id_header_used_when_correlation_id_missing(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-Id": "upstream-42"})
    assert response.headers.get("x-correlation-id") == "upstream-42"
    assert response.headers.get("x-request-id") == "upstream-42"


def test_oversized_correlation_id_is_clipped_to_audit_column(client: TestClient, db_session: Session) -> None:
    response = client.post(
        "/admin/permissions",
        json={"name": "Feature Story", "resource": "news", "action": "feature"},
        headers={"X-Correlation-Id": "c" * 300},
    )
    assert response.status_code == 201
    assert response.headers.get("x-correlation-id") == "c" * 128

    entry = db_session.scalar(select(AuditLog).where(AuditLog.action == "permission.create"))
    assert entry is not None
    assert entry.correlation_id == "c" * 128
