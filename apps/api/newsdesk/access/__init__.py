from newsdesk.access.cache import AccessCache
from newsdesk.access.evaluator import check_permission, get_user_permissions, has_menu_access, has_permission
from newsdesk.access.menus import get_public_menu_tree, get_user_menus
from newsdesk.access.models import Menu, Permission, Role, RoleKind, RoleMenu, RolePermission, UserRole
from newsdesk.access.resolver import ResolvedRole, resolve_roles

__all__ = [
    "AccessCache",
    "Menu",
    "Permission",
    "ResolvedRole",
    "Role",
    "RoleKind",
    "RoleMenu",
    "RolePermission",
    "UserRole",
    "check_permission",
    "get_public_menu_tree",
    "get_user_menus",
    "get_user_permissions",
    "has_menu_access",
    "has_permission",
    "resolve_roles",
]
