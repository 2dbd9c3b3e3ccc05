from __future__ import annotations

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from newsdesk.access.cache import AccessCache
from newsdesk.access.menus import USER_MENUS_CACHE_KIND, get_public_menu_tree, get_user_menus
from newsdesk.access.models import Menu, Role, RoleKind, RoleMenu, UserRole
from newsdesk.access.schemas import MenuNodeRead
from newsdesk.core.database import Base


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


def _menu(session: Session, slug: str, order: int, parent: Menu | None = None, **kwargs) -> Menu:  # type: ignore[no-untyped-def]
    menu = Menu(
        name=slug.replace("-", " ").title(),
        slug=slug,
        path=f"/dashboard/{slug}",
        order=order,
        parent_id=parent.id if parent is not None else None,
        **kwargs,
    )
    session.add(menu)
    session.flush()
    return menu


def _role_with_menus(session: Session, slug: str, menus: list[Menu], *, kind: RoleKind = RoleKind.NORMAL) -> Role:
    role = Role(name=slug.title(), slug=slug, kind=kind)
    session.add(role)
    session.flush()
    for menu in menus:
        session.add(RoleMenu(role_id=role.id, menu_id=menu.id))
    session.flush()
    return role


def _assign(session: Session, user_id: str, *roles: Role) -> None:
    for role in roles:
        session.add(UserRole(user_id=user_id, role_id=role.id))
    session.commit()


def _slugs(nodes: list[MenuNodeRead]) -> list[str]:
    return [node.slug for node in nodes]


@pytest.fixture()
def menus(db_session: Session) -> dict[str, Menu]:
    dashboard = _menu(db_session, "dashboard", 1)
    news = _menu(db_session, "news", 2)
    drafts = _menu(db_session, "news-drafts", 2, parent=news)
    archive = _menu(db_session, "news-archive", 1, parent=news)
    retired = _menu(db_session, "news-retired", 3, parent=news, is_active=False)
    users = _menu(db_session, "users", 3)
    legacy = _menu(db_session, "legacy", 4, is_active=False)
    politics = _menu(db_session, "politics", 1, is_public=True)
    elections = _menu(db_session, "elections", 1, parent=politics, is_public=True)
    sports = _menu(db_session, "sports", 2, is_public=True)
    db_session.commit()
    return {
        "dashboard": dashboard,
        "news": news,
        "news-drafts": drafts,
        "news-archive": archive,
        "news-retired": retired,
        "users": users,
        "legacy": legacy,
        "politics": politics,
        "elections": elections,
        "sports": sports,
    }


def test_single_granted_menu_yields_one_node_forest(db_session: Session) -> None:
    news_mgmt = _menu(db_session, "news-mgmt", 1)
    _menu(db_session, "users", 2)
    editor = _role_with_menus(db_session, "editor", [news_mgmt])
    _assign(db_session, "user-x", editor)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["news-mgmt"]
    assert forest[0].children == []


def test_granted_menus_are_ordered_and_carry_active_children(db_session: Session, menus: dict[str, Menu]) -> None:
    role = _role_with_menus(db_session, "editor", [menus["news"], menus["dashboard"]])
    _assign(db_session, "user-x", role)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["dashboard", "news"]
    assert _slugs(forest[1].children) == ["news-archive", "news-drafts"]


def test_children_are_not_filtered_by_role(db_session: Session, menus: dict[str, Menu]) -> None:
    role = _role_with_menus(db_session, "author", [menus["news"]])
    _assign(db_session, "user-x", role)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest[0].children) == ["news-archive", "news-drafts"]


def test_requested_child_is_only_nested_under_requested_parent(db_session: Session, menus: dict[str, Menu]) -> None:
    role = _role_with_menus(db_session, "editor", [menus["news"], menus["news-drafts"]])
    _assign(db_session, "user-x", role)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["news"]
    assert _slugs(forest[0].children) == ["news-archive", "news-drafts"]


@pytest.mark.parametrize("nested_order", [0, 9])
def test_requested_grandchild_stays_in_requested_ancestor_subtree(db_session: Session, nested_order: int) -> None:
    desk = _menu(db_session, "desk", 5)
    section = _menu(db_session, "desk-section", 1, parent=desk)
    story = _menu(db_session, "desk-story", nested_order, parent=section)
    role = _role_with_menus(db_session, "editor", [desk, story])
    _assign(db_session, "user-x", role)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["desk"]
    assert _slugs(forest[0].children) == ["desk-section"]
    assert _slugs(forest[0].children[0].children) == ["desk-story"]
    assert forest[0].children[0].children[0].children == []


def test_requested_grandchild_under_inactive_link_is_top_level(db_session: Session) -> None:
    desk = _menu(db_session, "desk", 5)
    section = _menu(db_session, "desk-section", 1, parent=desk, is_active=False)
    story = _menu(db_session, "desk-story", 0, parent=section)
    role = _role_with_menus(db_session, "editor", [desk, story])
    _assign(db_session, "user-x", role)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["desk-story", "desk"]
    assert forest[1].children == []


def test_requested_child_without_requested_parent_is_top_level(db_session: Session, menus: dict[str, Menu]) -> None:
    role = _role_with_menus(db_session, "contributor", [menus["news-drafts"]])
    _assign(db_session, "user-x", role)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["news-drafts"]


def test_menu_granted_by_two_roles_appears_once(db_session: Session, menus: dict[str, Menu]) -> None:
    author = _role_with_menus(db_session, "author", [menus["dashboard"], menus["news"]])
    editor = _role_with_menus(db_session, "editor", [menus["news"], menus["users"]])
    _assign(db_session, "user-x", author, editor)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["dashboard", "news", "users"]


def test_inactive_and_public_grants_are_excluded(db_session: Session, menus: dict[str, Menu]) -> None:
    role = _role_with_menus(db_session, "citizen", [menus["legacy"], menus["politics"], menus["dashboard"]])
    _assign(db_session, "user-x", role)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["dashboard"]


def test_inactive_role_contributes_no_menus(db_session: Session, menus: dict[str, Menu]) -> None:
    role = _role_with_menus(db_session, "citizen", [menus["dashboard"]])
    role.is_active = False
    _assign(db_session, "user-x", role)

    assert get_user_menus(db_session, AccessCache(), "user-x") == []


def test_user_without_roles_has_no_menus(db_session: Session, menus: dict[str, Menu]) -> None:
    assert get_user_menus(db_session, AccessCache(), "nobody") == []


def test_superadmin_sees_every_active_dashboard_menu(db_session: Session, menus: dict[str, Menu]) -> None:
    editor = _role_with_menus(db_session, "editor", [menus["news"]])
    superadmin = _role_with_menus(db_session, "superadmin", [], kind=RoleKind.SUPERADMIN)
    _assign(db_session, "user-x", editor, superadmin)

    forest = get_user_menus(db_session, AccessCache(), "user-x")

    assert _slugs(forest) == ["dashboard", "news", "users"]
    assert _slugs(forest[1].children) == ["news-archive", "news-drafts"]

    def walk(nodes: list[MenuNodeRead]) -> list[str]:
        slugs: list[str] = []
        for node in nodes:
            slugs.append(node.slug)
            slugs.extend(walk(node.children))
        return slugs

    visible = walk(forest)
    assert len(visible) == len(set(visible))
    assert set(visible) == {"dashboard", "news", "news-archive", "news-drafts", "users"}


def test_user_menus_are_memoized_per_cache(db_session: Session, menus: dict[str, Menu]) -> None:
    role = _role_with_menus(db_session, "editor", [menus["news"]])
    _assign(db_session, "user-x", role)
    cache = AccessCache()

    first = get_user_menus(db_session, cache, "user-x")
    second = get_user_menus(db_session, cache, "user-x")

    assert first is second
    assert (USER_MENUS_CACHE_KIND, ("user-x",)) in cache


def test_public_menu_tree_only_contains_public_menus(db_session: Session, menus: dict[str, Menu]) -> None:
    tree = get_public_menu_tree(db_session)

    assert _slugs(tree) == ["politics", "sports"]
    assert _slugs(tree[0].children) == ["elections"]
    assert tree[1].children == []
