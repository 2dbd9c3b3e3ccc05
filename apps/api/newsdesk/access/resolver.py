from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from newsdesk.access.cache import AccessCache
from newsdesk.access.models import Menu, Permission, Role, RoleKind, RoleMenu, RolePermission, UserRole
from newsdesk.metrics import observe_access_store_queries
from newsdesk.otel import access_span


logger = logging.getLogger("newsdesk.access")

ROLES_CACHE_KIND = "access.roles"


@dataclass(slots=True, frozen=True)
class PermissionGrant:
    slug: str
    is_active: bool


@dataclass(slots=True, frozen=True)
class MenuGrant:
    slug: str
    is_active: bool
    is_public: bool


@dataclass(slots=True)
class ResolvedRole:
    """A role linked to a user, with the active grants it carries."""

    slug: str
    kind: str
    is_active: bool
    permissions: list[PermissionGrant] = field(default_factory=list)
    menus: list[MenuGrant] = field(default_factory=list)

    @property
    def is_superadmin(self) -> bool:
        return self.is_active and self.kind == RoleKind.SUPERADMIN


def resolve_roles(session: Session, cache: AccessCache, user_id: str) -> list[ResolvedRole]:
    """Load the roles linked to ``user_id``, memoized for the current request.

    Inactive roles are returned as-is; callers skip them. Only active
    permissions and menus are attached. The list has no defined order.
    """

    return cache.get_or_load(ROLES_CACHE_KIND, (user_id,), lambda: _load_roles(session, user_id))


def is_superadmin(roles: list[ResolvedRole]) -> bool:
    return any(role.is_superadmin for role in roles)


def _load_roles(session: Session, user_id: str) -> list[ResolvedRole]:
    if not user_id:
        return []

    with access_span("access.resolve_roles", user_id) as span:
        role_rows = session.execute(
            select(Role.id, Role.slug, Role.kind, Role.is_active)
            .select_from(UserRole)
            .join(Role, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
        ).all()
        observe_access_store_queries(1)
        span.set_attribute("role_count", len(role_rows))
        if not role_rows:
            return []

        roles: dict[uuid.UUID, ResolvedRole] = {
            row.id: ResolvedRole(slug=str(row.slug), kind=str(row.kind), is_active=bool(row.is_active))
            for row in role_rows
        }
        role_ids = list(roles)

        permission_rows = session.execute(
            select(RolePermission.role_id, Permission.slug, Permission.is_active)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id.in_(role_ids), Permission.is_active.is_(True))
        ).all()
        menu_rows = session.execute(
            select(RoleMenu.role_id, Menu.slug, Menu.is_active, Menu.is_public)
            .join(Menu, RoleMenu.menu_id == Menu.id)
            .where(RoleMenu.role_id.in_(role_ids), Menu.is_active.is_(True))
        ).all()
        observe_access_store_queries(2)

    for row in permission_rows:
        roles[row.role_id].permissions.append(PermissionGrant(slug=str(row.slug), is_active=bool(row.is_active)))
    for row in menu_rows:
        roles[row.role_id].menus.append(
            MenuGrant(slug=str(row.slug), is_active=bool(row.is_active), is_public=bool(row.is_public))
        )

    logger.debug("access.roles_resolved", extra={"user_id": user_id})
    return list(roles.values())
