from __future__ import annotations

import uuid
from collections import defaultdict

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from newsdesk.access.cache import AccessCache
from newsdesk.access.models import Menu
from newsdesk.access.resolver import is_superadmin, resolve_roles
from newsdesk.access.schemas import MenuNodeRead, MenuRead
from newsdesk.metrics import observe_access_store_queries
from newsdesk.otel import access_span


USER_MENUS_CACHE_KIND = "access.user_menus"


def get_user_menus(session: Session, cache: AccessCache, user_id: str) -> list[MenuNodeRead]:
    """Dashboard navigation forest visible to the user.

    A superadmin sees every active, non-public menu. Anyone else sees the
    union of menus linked to their active roles. Every node carries its
    active, non-public children ordered by ``order``; children are filtered
    on their own flags, not on the parent's. A requested menu that sits
    anywhere below another requested menu is only listed inside that
    subtree, whatever its order.
    """

    return cache.get_or_load(USER_MENUS_CACHE_KIND, (user_id,), lambda: _load_user_menus(session, cache, user_id))


def get_public_menu_tree(session: Session) -> list[MenuNodeRead]:
    """Reader-facing category tree of active public menus."""

    menus = session.scalars(
        select(Menu).where(Menu.is_active.is_(True), Menu.is_public.is_(True)).order_by(Menu.order.asc(), Menu.name.asc())
    ).all()
    observe_access_store_queries(1)

    known_ids = {menu.id for menu in menus}
    children_by_parent: dict[uuid.UUID, list[Menu]] = defaultdict(list)
    roots: list[Menu] = []
    for menu in menus:
        if menu.parent_id is not None and menu.parent_id in known_ids:
            children_by_parent[menu.parent_id].append(menu)
        else:
            roots.append(menu)

    return _assemble_forest(roots, children_by_parent)


def _dashboard_menus() -> Select[tuple[Menu]]:
    return (
        select(Menu)
        .where(Menu.is_active.is_(True), Menu.is_public.is_(False))
        .order_by(Menu.order.asc(), Menu.name.asc())
    )


def _load_user_menus(session: Session, cache: AccessCache, user_id: str) -> list[MenuNodeRead]:
    with access_span("access.user_menus", user_id) as span:
        forest = _collect_user_menus(session, cache, user_id)
        span.set_attribute("root_count", len(forest))
    return forest


def _collect_user_menus(session: Session, cache: AccessCache, user_id: str) -> list[MenuNodeRead]:
    roles = resolve_roles(session, cache, user_id)

    if is_superadmin(roles):
        menus = session.scalars(_dashboard_menus()).all()
        observe_access_store_queries(1)
        return _build_dashboard_forest(session, list(menus))

    menu_slugs: set[str] = set()
    for role in roles:
        if not role.is_active:
            continue
        for grant in role.menus:
            if grant.is_active and not grant.is_public:
                menu_slugs.add(grant.slug)

    if not menu_slugs:
        return []

    menus = session.scalars(_dashboard_menus().where(Menu.slug.in_(menu_slugs))).all()
    observe_access_store_queries(1)
    return _build_dashboard_forest(session, list(menus))


def _build_dashboard_forest(session: Session, menus: list[Menu]) -> list[MenuNodeRead]:
    if not menus:
        return []

    children = session.scalars(_dashboard_menus().where(Menu.parent_id.is_not(None))).all()
    observe_access_store_queries(1)

    children_by_parent: dict[uuid.UUID, list[Menu]] = defaultdict(list)
    for child in children:
        if child.parent_id is not None:
            children_by_parent[child.parent_id].append(child)

    nested_ids = _descendant_ids([menu.id for menu in menus], children_by_parent)
    roots = [menu for menu in menus if menu.id not in nested_ids]
    return _assemble_forest(roots, children_by_parent)


def _descendant_ids(root_ids: list[uuid.UUID], children_by_parent: dict[uuid.UUID, list[Menu]]) -> set[uuid.UUID]:
    """Ids reachable below any of ``root_ids`` through active dashboard children."""

    found: set[uuid.UUID] = set()
    pending = [child for root_id in root_ids for child in children_by_parent.get(root_id, [])]
    while pending:
        menu = pending.pop()
        if menu.id in found:
            continue
        found.add(menu.id)
        pending.extend(children_by_parent.get(menu.id, []))
    return found


def _assemble_forest(roots: list[Menu], children_by_parent: dict[uuid.UUID, list[Menu]]) -> list[MenuNodeRead]:
    seen: set[uuid.UUID] = set()

    def build(menu: Menu) -> MenuNodeRead:
        seen.add(menu.id)
        nested = [build(child) for child in children_by_parent.get(menu.id, []) if child.id not in seen]
        return MenuNodeRead(**MenuRead.model_validate(menu).model_dump(), children=nested)

    return [build(root) for root in roots if root.id not in seen]
