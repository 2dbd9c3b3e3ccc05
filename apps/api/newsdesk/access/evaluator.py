from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from newsdesk.access.cache import AccessCache
from newsdesk.access.models import Permission
from newsdesk.access.resolver import is_superadmin, resolve_roles
from newsdesk.core.auth import AuthUser
from newsdesk.metrics import observe_access_decision, observe_access_store_queries


USER_PERMISSIONS_CACHE_KIND = "access.user_permissions"


def has_permission(session: Session, cache: AccessCache, user_id: str, permission_slug: str) -> bool:
    """Return whether any active role of the user grants ``permission_slug``.

    An active superadmin role grants every permission before any slug is
    compared. Unknown slugs are simply denied.
    """

    roles = resolve_roles(session, cache, user_id)
    if is_superadmin(roles):
        observe_access_decision("permission", True)
        return True

    for role in roles:
        if not role.is_active:
            continue
        if any(grant.slug == permission_slug and grant.is_active for grant in role.permissions):
            observe_access_decision("permission", True)
            return True

    observe_access_decision("permission", False)
    return False


def check_permission(session: Session, cache: AccessCache, user: AuthUser | None, permission_slug: str) -> bool:
    """Permission check for the caller's identity; anonymous callers are denied without a query."""

    if user is None:
        observe_access_decision("permission", False)
        return False
    return has_permission(session, cache, user.sub, permission_slug)


def has_menu_access(session: Session, cache: AccessCache, user_id: str, menu_slug: str) -> bool:
    roles = resolve_roles(session, cache, user_id)
    if is_superadmin(roles):
        observe_access_decision("menu", True)
        return True

    for role in roles:
        if not role.is_active:
            continue
        if any(grant.slug == menu_slug and grant.is_active for grant in role.menus):
            observe_access_decision("menu", True)
            return True

    observe_access_decision("menu", False)
    return False


def get_user_permissions(session: Session, cache: AccessCache, user_id: str) -> list[str]:
    """Deduplicated permission slugs for the user; every active slug for a superadmin."""

    return cache.get_or_load(
        USER_PERMISSIONS_CACHE_KIND,
        (user_id,),
        lambda: _collect_permissions(session, cache, user_id),
    )


def _collect_permissions(session: Session, cache: AccessCache, user_id: str) -> list[str]:
    roles = resolve_roles(session, cache, user_id)
    if is_superadmin(roles):
        slugs = session.scalars(
            select(Permission.slug).where(Permission.is_active.is_(True)).order_by(Permission.slug.asc())
        ).all()
        observe_access_store_queries(1)
        return [str(slug) for slug in slugs]

    permissions: dict[str, None] = {}
    for role in roles:
        if not role.is_active:
            continue
        for grant in role.permissions:
            if grant.is_active:
                permissions.setdefault(grant.slug, None)
    return list(permissions)
