from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from newsdesk.access.dependencies import require_menu, require_permission
from newsdesk.access.models import Role, UserRole
from newsdesk.access.seed import access_seed_helper
from newsdesk.core.auth import AuthUser, get_optional_user
from newsdesk.core.database import Base, get_db


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
        access_seed_helper.ensure_baseline(session, admin_user_id="admin-user")
        for user_id, slug in (("editor-user", "editor"), ("citizen-user", "citizen")):
            role = session.scalar(select(Role).where(Role.slug == slug))
            session.add(UserRole(user_id=user_id, role_id=role.id))
        session.commit()
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[tuple[TestClient, Callable[[str], None]], None, None]:
    state = {"actor": "editor-user"}
    newsroom = FastAPI()

    @newsroom.post("/newsroom/articles", dependencies=[Depends(require_menu("news"))])
    def create_article(user: AuthUser = Depends(require_permission("news.create"))) -> dict[str, str]:
        return {"author": user.sub}

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def set_actor(actor: str) -> None:
        state["actor"] = actor

    newsroom.dependency_overrides[get_db] = override_get_db
    newsroom.dependency_overrides[get_optional_user] = lambda: AuthUser(sub=state["actor"]) if state["actor"] else None

    with TestClient(newsroom) as test_client:
        yield test_client, set_actor


def test_menu_and_permission_guards_admit_editor(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client

    response = test_client.post("/newsroom/articles")
    assert response.status_code == 200
    assert response.json() == {"author": "editor-user"}


def test_menu_guard_rejects_role_without_menu(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client
    set_actor("citizen-user")

    response = test_client.post("/newsroom/articles")
    assert response.status_code == 403
    assert response.json()["detail"] == "Missing menu access: news"


def test_guards_reject_anonymous_caller(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client
    set_actor("")

    response = test_client.post("/newsroom/articles")
    assert response.status_code == 401


def test_guards_share_one_cache_per_request(
    client: tuple[TestClient, Callable[[str], None]],
    db_session: Session,
) -> None:
    test_client, set_actor = client
    set_actor("admin-user")
    statements: list[str] = []

    def record(conn, cursor, statement, parameters, context, executemany) -> None:  # type: ignore[no-untyped-def]
        statements.append(statement)

    engine = db_session.get_bind()
    event.listen(engine, "before_cursor_execute", record)
    try:
        assert test_client.post("/newsroom/articles").status_code == 200
        first_request_role_queries = sum("access_user_role" in statement for statement in statements)

        assert test_client.post("/newsroom/articles").status_code == 200
        total_role_queries = sum("access_user_role" in statement for statement in statements)
    finally:
        event.remove(engine, "before_cursor_execute", record)

    assert first_request_role_queries == 1
    assert total_role_queries == 2
