from newsdesk.access.models import Menu, Permission, Role, RoleMenu, RolePermission, UserRole
from newsdesk.models.audit import AuditLog

__all__ = [
    "AuditLog",
    "Menu",
    "Permission",
    "Role",
    "RoleMenu",
    "RolePermission",
    "UserRole",
]
