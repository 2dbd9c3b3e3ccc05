from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from newsdesk.access.seed import access_seed_helper
from newsdesk.context import correlation_scope, get_correlation_id
from newsdesk.core.auth import AuthUser, get_optional_user
from newsdesk.core.config import get_settings
from newsdesk.core.database import Base, get_db
from newsdesk.logging import CorrelationIdFilter, JsonLogFormatter
from newsdesk.main import app


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
    access_seed_helper.ensure_baseline(db_session)
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_optional_user() -> AuthUser:
        return AuthUser(sub="reader-1")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optional_user] = override_get_optional_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    role_id = "8a6e0804-2bd0-4672-b79f-d97e2ad5d8f1"
    response = client.get(f"/admin/roles/{role_id}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 403

    records = [record for record in caplog.records if record.name == "newsdesk.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/admin/roles/{id}"
        and getattr(record, "status_code", None) == 403
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_denied_access_is_logged_with_user_and_permission(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.get("/admin/permissions", headers={"X-Correlation-Id": "deny-1"})
    assert response.status_code == 403

    denied = [record for record in caplog.records if record.name == "newsdesk.access" and record.getMessage() == "authz.denied"]
    assert denied
    assert getattr(denied[-1], "user_id", None) == "reader-1"
    assert getattr(denied[-1], "permission", None) == "permission.read"
    assert getattr(denied[-1], "correlation_id", None) == "deny-1"


def test_json_formatter_keeps_known_fields_only() -> None:
    with correlation_scope("fmt-1"):
        record = logging.getLogger("newsdesk.access").makeRecord(
            "newsdesk.access",
            logging.WARNING,
            __file__,
            1,
            "authz.denied",
            (),
            None,
            extra={"user_id": "u-1", "permission": "news.create", "password": "hunter2"},
        )
        CorrelationIdFilter().filter(record)
        payload = json.loads(JsonLogFormatter(service="Newsdesk API").format(record))

    assert payload["msg"] == "authz.denied"
    assert payload["level"] == "WARNING"
    assert payload["correlation_id"] == "fmt-1"
    assert payload["service"] == "Newsdesk API"
    assert payload["fields"] == {"user_id": "u-1", "permission": "news.create"}


def test_json_formatter_truncates_error_text() -> None:
    record = logging.makeLogRecord({"name": "newsdesk.access", "msg": "authz.store_error", "error": "x" * 2000})

    payload = json.loads(JsonLogFormatter(service="Newsdesk API").format(record))

    assert len(payload["fields"]["error"]) == 500


def test_correlation_scope_restores_previous_id() -> None:
    with correlation_scope("outer"):
        with correlation_scope("  inner  ") as inner:
            assert inner == "inner"
            assert get_correlation_id() == "inner"
        assert get_correlation_id() == "outer"
    assert get_correlation_id() is None
