from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from newsdesk.access.cache import AccessCache, get_access_cache
from newsdesk.access.dependencies import require_permission
from newsdesk.access.evaluator import check_permission, get_user_permissions, has_menu_access
from newsdesk.access.menus import get_public_menu_tree, get_user_menus
from newsdesk.access.schemas import (
    AssignUserRoleRequest,
    AttachRoleMenuRequest,
    AttachRolePermissionRequest,
    AuditLogRead,
    MenuAccessRead,
    MenuCreate,
    MenuNodeRead,
    MenuRead,
    MenuUpdate,
    PermissionCheckRead,
    PermissionCreate,
    PermissionRead,
    PermissionUpdate,
    RoleCreate,
    RoleMenuRead,
    RolePermissionRead,
    RoleRead,
    RoleUpdate,
    UserRoleRead,
)
from newsdesk.access.service import access_admin_service
from newsdesk.core.auth import AuthUser, get_optional_user
from newsdesk.core.config import get_settings
from newsdesk.core.database import get_db
from newsdesk.services.audit import actor_from_request, list_audit_logs


admin_router = APIRouter(prefix="/admin", tags=["admin.access"])
me_router = APIRouter(prefix="/me", tags=["access"])
public_router = APIRouter(prefix="/menus", tags=["menus"])


@admin_router.post("/roles", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
def create_role(
    dto: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("role.create")),
) -> RoleRead:
    return access_admin_service.create_role(db, dto, actor_from_request(request, user))


@admin_router.get("/roles", response_model=list[RoleRead])
def list_roles(
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("role.read")),
) -> list[RoleRead]:
    return access_admin_service.list_roles(db)


@admin_router.get("/roles/{role_id}", response_model=RoleRead)
def get_role(
    role_id: uuid.UUID,
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("role.read")),
) -> RoleRead:
    return access_admin_service.get_role(db, role_id)


@admin_router.patch("/roles/{role_id}", response_model=RoleRead)
def update_role(
    role_id: uuid.UUID,
    dto: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("role.update")),
) -> RoleRead:
    return access_admin_service.update_role(db, role_id, dto, actor_from_request(request, user))


@admin_router.delete("/roles/{role_id}", status_code=status.HTTP_200_OK)
def delete_role(
    role_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("role.delete")),
) -> None:
    access_admin_service.delete_role(db, role_id, actor_from_request(request, user))


@admin_router.post("/permissions", response_model=PermissionRead, status_code=status.HTTP_201_CREATED)
def create_permission(
    dto: PermissionCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("permission.create")),
) -> PermissionRead:
    return access_admin_service.create_permission(db, dto, actor_from_request(request, user))


@admin_router.get("/permissions", response_model=list[PermissionRead])
def list_permissions(
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("permission.read")),
) -> list[PermissionRead]:
    return access_admin_service.list_permissions(db)


@admin_router.patch("/permissions/{permission_id}", response_model=PermissionRead)
def update_permission(
    permission_id: uuid.UUID,
    dto: PermissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("permission.update")),
) -> PermissionRead:
    return access_admin_service.update_permission(db, permission_id, dto, actor_from_request(request, user))


@admin_router.delete("/permissions/{permission_id}", status_code=status.HTTP_200_OK)
def delete_permission(
    permission_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("permission.delete")),
) -> None:
    access_admin_service.delete_permission(db, permission_id, actor_from_request(request, user))


@admin_router.post("/menus", response_model=MenuRead, status_code=status.HTTP_201_CREATED)
def create_menu(
    dto: MenuCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("menu.create")),
) -> MenuRead:
    return access_admin_service.create_menu(db, dto, actor_from_request(request, user))


@admin_router.get("/menus", response_model=list[MenuRead])
def list_menus(
    is_public: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("menu.read")),
) -> list[MenuRead]:
    return access_admin_service.list_menus(db, is_public=is_public)


@admin_router.patch("/menus/{menu_id}", response_model=MenuRead)
def update_menu(
    menu_id: uuid.UUID,
    dto: MenuUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("menu.update")),
) -> MenuRead:
    return access_admin_service.update_menu(db, menu_id, dto, actor_from_request(request, user))


@admin_router.delete("/menus/{menu_id}", status_code=status.HTTP_200_OK)
def delete_menu(
    menu_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("menu.delete")),
) -> None:
    access_admin_service.delete_menu(db, menu_id, actor_from_request(request, user))


@admin_router.post("/roles/{role_id}/permissions", response_model=RolePermissionRead, status_code=status.HTTP_201_CREATED)
def attach_role_permission(
    role_id: uuid.UUID,
    dto: AttachRolePermissionRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("role.update")),
) -> RolePermissionRead:
    return access_admin_service.attach_permission_to_role(db, role_id, dto.permission_id, actor_from_request(request, user))


@admin_router.get("/roles/{role_id}/permissions", response_model=list[RolePermissionRead])
def list_role_permissions(
    role_id: uuid.UUID,
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("role.read")),
) -> list[RolePermissionRead]:
    return access_admin_service.list_role_permissions(db, role_id)


@admin_router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_200_OK)
def detach_role_permission(
    role_id: uuid.UUID,
    permission_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("role.update")),
) -> None:
    access_admin_service.detach_permission_from_role(db, role_id, permission_id, actor_from_request(request, user))


@admin_router.post("/roles/{role_id}/menus", response_model=RoleMenuRead, status_code=status.HTTP_201_CREATED)
def attach_role_menu(
    role_id: uuid.UUID,
    dto: AttachRoleMenuRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("role.update")),
) -> RoleMenuRead:
    return access_admin_service.attach_menu_to_role(db, role_id, dto.menu_id, actor_from_request(request, user))


@admin_router.get("/roles/{role_id}/menus", response_model=list[RoleMenuRead])
def list_role_menus(
    role_id: uuid.UUID,
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("role.read")),
) -> list[RoleMenuRead]:
    return access_admin_service.list_role_menus(db, role_id)


@admin_router.delete("/roles/{role_id}/menus/{menu_id}", status_code=status.HTTP_200_OK)
def detach_role_menu(
    role_id: uuid.UUID,
    menu_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("role.update")),
) -> None:
    access_admin_service.detach_menu_from_role(db, role_id, menu_id, actor_from_request(request, user))


@admin_router.post("/users/{user_id}/roles", response_model=UserRoleRead, status_code=status.HTTP_201_CREATED)
def assign_user_role(
    user_id: str,
    dto: AssignUserRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("user.update")),
) -> UserRoleRead:
    return access_admin_service.assign_role_to_user(db, user_id, dto.role_id, actor_from_request(request, user))


@admin_router.get("/users/{user_id}/roles", response_model=list[UserRoleRead])
def list_user_roles(
    user_id: str,
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("user.read")),
) -> list[UserRoleRead]:
    return access_admin_service.list_user_roles(db, user_id=user_id)


@admin_router.delete("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_200_OK)
def unassign_user_role(
    user_id: str,
    role_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_permission("user.update")),
) -> None:
    access_admin_service.unassign_role_from_user(db, user_id, role_id, actor_from_request(request, user))


@admin_router.get("/user-role-assignments", response_model=list[UserRoleRead])
def list_all_user_roles(
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("user.read")),
) -> list[UserRoleRead]:
    return access_admin_service.list_user_roles(db)


@admin_router.get("/audit-logs", response_model=list[AuditLogRead])
def list_audit_log_entries(
    entity_type: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=1000),
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_permission("audit.read")),
) -> list[AuditLogRead]:
    page_size = limit or get_settings().audit_log_page_size
    rows = list_audit_logs(db, limit=page_size, entity_type=entity_type, actor_id=actor_id)
    return [AuditLogRead.model_validate(row) for row in rows]


@me_router.get("/permissions", response_model=list[str])
def my_permissions(
    user: AuthUser | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
    cache: AccessCache = Depends(get_access_cache),
) -> list[str]:
    if user is None:
        return []
    return get_user_permissions(db, cache, user.sub)


@me_router.get("/permissions/{permission_slug}", response_model=PermissionCheckRead)
def my_permission_check(
    permission_slug: str,
    user: AuthUser | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
    cache: AccessCache = Depends(get_access_cache),
) -> PermissionCheckRead:
    return PermissionCheckRead(permission=permission_slug, allowed=check_permission(db, cache, user, permission_slug))


@me_router.get("/menus", response_model=list[MenuNodeRead])
def my_menus(
    user: AuthUser | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
    cache: AccessCache = Depends(get_access_cache),
) -> list[MenuNodeRead]:
    if user is None:
        return []
    return get_user_menus(db, cache, user.sub)


@me_router.get("/menus/{menu_slug}", response_model=MenuAccessRead)
def my_menu_check(
    menu_slug: str,
    user: AuthUser | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
    cache: AccessCache = Depends(get_access_cache),
) -> MenuAccessRead:
    allowed = user is not None and has_menu_access(db, cache, user.sub, menu_slug)
    return MenuAccessRead(menu=menu_slug, allowed=allowed)


@public_router.get("/public", response_model=list[MenuNodeRead])
def public_menus(db: Session = Depends(get_db)) -> list[MenuNodeRead]:
    return get_public_menu_tree(db)
