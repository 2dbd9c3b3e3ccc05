from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from newsdesk.access.models import (
    SUPERADMIN_ROLE_SLUG,
    Menu,
    Permission,
    Role,
    RoleKind,
    RoleMenu,
    RolePermission,
    UserRole,
)


logger = logging.getLogger("newsdesk.access.seed")

# (resource, action, name)
DEFAULT_PERMISSIONS: tuple[tuple[str, str, str], ...] = (
    ("user", "create", "Create User"),
    ("user", "read", "Read User"),
    ("user", "update", "Update User"),
    ("user", "delete", "Delete User"),
    ("role", "create", "Create Role"),
    ("role", "read", "Read Role"),
    ("role", "update", "Update Role"),
    ("role", "delete", "Delete Role"),
    ("permission", "create", "Create Permission"),
    ("permission", "read", "Read Permission"),
    ("permission", "update", "Update Permission"),
    ("permission", "delete", "Delete Permission"),
    ("audit", "read", "Read Audit Log"),
    ("blog", "create", "Create Blog"),
    ("blog", "read", "Read Own Blog"),
    ("blog", "read.all", "Read All Blogs"),
    ("blog", "update", "Update Blog"),
    ("blog", "delete", "Delete Blog"),
    ("news", "create", "Create News"),
    ("news", "read", "Read Own News"),
    ("news", "read.all", "Read All News"),
    ("news", "update", "Update News"),
    ("news", "delete", "Delete News"),
    ("news", "submit", "Submit News"),
    ("news", "review", "Review News"),
    ("news", "approve", "Approve News"),
    ("news", "reject", "Reject News"),
    ("news", "publish", "Publish News"),
    ("media", "upload", "Upload Media"),
    ("media", "read", "Read Own Media"),
    ("media", "read.all", "Read All Media"),
    ("media", "delete", "Delete Media"),
    ("advertisement", "create", "Create Advertisement"),
    ("advertisement", "read", "Read Own Advertisement"),
    ("advertisement", "read.all", "Read All Advertisement"),
    ("advertisement", "update", "Update Advertisement"),
    ("advertisement", "delete", "Delete Advertisement"),
    ("analytics", "read", "Read Analytics"),
    ("system", "metrics.read", "Read Metrics"),
    ("menu", "create", "Create Menu"),
    ("menu", "read", "Read Menu"),
    ("menu", "update", "Update Menu"),
    ("menu", "delete", "Delete Menu"),
)

# (slug, name, path, icon, order)
DEFAULT_DASHBOARD_MENUS: tuple[tuple[str, str, str, str, int], ...] = (
    ("dashboard", "Dashboard", "/dashboard", "dashboard", 1),
    ("blogs", "My Blogs", "/dashboard/blogs", "blogs", 2),
    ("profile", "Profile", "/dashboard/profile", "profile", 3),
    ("news", "News", "/dashboard/news", "news", 4),
    ("media", "Media", "/dashboard/media", "media", 5),
    ("advertisements", "Advertisements", "/dashboard/advertisements", "ads", 6),
    ("analytics", "Analytics", "/dashboard/analytics", "analytics", 7),
    ("users", "Users", "/dashboard/users", "users", 8),
    ("roles", "Roles", "/dashboard/roles", "roles", 9),
    ("permissions", "Permissions", "/dashboard/permissions", "permissions", 10),
    ("logs", "Audit Logs", "/dashboard/logs", "logs", 11),
    ("menus", "Menus", "/dashboard/menus", "menu", 12),
)

_NEWS_AUTHOR_PERMISSIONS = ("news.create", "news.read", "news.update", "news.delete", "news.submit")
_NEWSROOM_MENUS = ("dashboard", "news", "media", "profile")


def _editor_permissions(slug: str) -> bool:
    return slug.startswith(("news.", "media.", "menu.")) or slug == "analytics.read"


# slug -> (name, description, kind, permission filter, menu slugs)
DEFAULT_ROLES = {
    SUPERADMIN_ROLE_SLUG: (
        "Super Admin",
        "Super administrator with full system access",
        RoleKind.SUPERADMIN,
        lambda slug: True,
        tuple(slug for slug, *_ in DEFAULT_DASHBOARD_MENUS),
    ),
    "citizen": (
        "Citizen",
        "Default role for registered users",
        RoleKind.NORMAL,
        lambda slug: slug in {"blog.create", "blog.read", "blog.update", "blog.delete"},
        ("dashboard", "blogs", "profile"),
    ),
    "author": (
        "Author",
        "Can create and manage own news posts",
        RoleKind.NORMAL,
        lambda slug: slug in {*_NEWS_AUTHOR_PERMISSIONS, "news.publish"},
        _NEWSROOM_MENUS,
    ),
    "contributor": (
        "Contributor",
        "Can create and manage own news; publish requires reviewer approval",
        RoleKind.NORMAL,
        lambda slug: slug in _NEWS_AUTHOR_PERMISSIONS,
        _NEWSROOM_MENUS,
    ),
    "editor": (
        "Editor",
        "Can create, edit, and manage all news posts",
        RoleKind.NORMAL,
        _editor_permissions,
        (*_NEWSROOM_MENUS, "analytics", "menus"),
    ),
}


class AccessSeedHelper:
    """Idempotently installs the default permissions, dashboard menus and roles."""

    def ensure_baseline(self, session: Session, *, admin_user_id: str | None = None) -> None:
        permissions = self._ensure_permissions(session)
        menus = self._ensure_menus(session)

        for role_slug, (name, description, kind, permission_filter, menu_slugs) in DEFAULT_ROLES.items():
            role = session.scalar(select(Role).where(Role.slug == role_slug))
            if role is None:
                role = Role(name=name, slug=role_slug, description=description, kind=kind, is_active=True)
                session.add(role)
                session.flush()
                logger.info("access.seed.role_created", extra={"role": role_slug})

            self._link_permissions(session, role, [permission for slug, permission in permissions.items() if permission_filter(slug)])
            self._link_menus(session, role, [menus[slug] for slug in menu_slugs if slug in menus])

        if admin_user_id:
            superadmin = session.scalar(select(Role).where(Role.slug == SUPERADMIN_ROLE_SLUG))
            if superadmin is not None and session.get(UserRole, (admin_user_id, superadmin.id)) is None:
                session.add(UserRole(user_id=admin_user_id, role_id=superadmin.id))

        session.commit()

    @staticmethod
    def _ensure_permissions(session: Session) -> dict[str, Permission]:
        existing = {permission.slug: permission for permission in session.scalars(select(Permission)).all()}
        for resource, action, name in DEFAULT_PERMISSIONS:
            slug = f"{resource}.{action}"
            if slug in existing:
                continue
            permission = Permission(name=name, slug=slug, resource=resource, action=action)
            session.add(permission)
            existing[slug] = permission
        session.flush()
        return existing

    @staticmethod
    def _ensure_menus(session: Session) -> dict[str, Menu]:
        existing = {menu.slug: menu for menu in session.scalars(select(Menu)).all()}
        for slug, name, path, icon, order in DEFAULT_DASHBOARD_MENUS:
            if slug in existing:
                continue
            menu = Menu(name=name, slug=slug, path=path, icon=icon, order=order, is_public=False)
            session.add(menu)
            existing[slug] = menu
        session.flush()
        return existing

    @staticmethod
    def _link_permissions(session: Session, role: Role, permissions: list[Permission]) -> None:
        linked = set(session.scalars(select(RolePermission.permission_id).where(RolePermission.role_id == role.id)).all())
        for permission in permissions:
            if permission.id not in linked:
                session.add(RolePermission(role_id=role.id, permission_id=permission.id))

    @staticmethod
    def _link_menus(session: Session, role: Role, menus: list[Menu]) -> None:
        linked = set(session.scalars(select(RoleMenu.menu_id).where(RoleMenu.role_id == role.id)).all())
        for menu in menus:
            if menu.id not in linked:
                session.add(RoleMenu(role_id=role.id, menu_id=menu.id))


access_seed_helper = AccessSeedHelper()
