from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from newsdesk.access.models import Menu, Permission, Role, RoleKind, RoleMenu, RolePermission, UserRole
from newsdesk.access.schemas import (
    MenuCreate,
    MenuRead,
    MenuUpdate,
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
from newsdesk.services.audit import AuditActor, add_audit_log


class AccessAdminService:
    def create_role(self, session: Session, dto: RoleCreate, actor: AuditActor) -> RoleRead:
        role = Role(
            name=dto.name.strip(),
            slug=dto.slug.strip().lower(),
            description=dto.description,
            kind=dto.kind,
            is_active=dto.is_active,
        )
        session.add(role)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="role already exists")
        add_audit_log(session, actor, "role.create", "access.role", str(role.id), {"slug": role.slug, "kind": role.kind})
        session.commit()
        session.refresh(role)
        return RoleRead.model_validate(role)

    def list_roles(self, session: Session) -> list[RoleRead]:
        rows = session.scalars(select(Role).order_by(Role.name.asc())).all()
        return [RoleRead.model_validate(row) for row in rows]

    def get_role(self, session: Session, role_id: uuid.UUID) -> RoleRead:
        return RoleRead.model_validate(self._get_role(session, role_id))

    def update_role(self, session: Session, role_id: uuid.UUID, dto: RoleUpdate, actor: AuditActor) -> RoleRead:
        role = self._get_role(session, role_id)
        before = {"name": role.name, "is_active": role.is_active}

        if dto.name is not None:
            role.name = dto.name.strip()
        if "description" in dto.model_fields_set:
            role.description = dto.description
        if dto.is_active is not None:
            role.is_active = dto.is_active

        add_audit_log(
            session,
            actor,
            "role.update",
            "access.role",
            str(role.id),
            {"before": before, "after": {"name": role.name, "is_active": role.is_active}},
        )
        session.commit()
        session.refresh(role)
        return RoleRead.model_validate(role)

    def delete_role(self, session: Session, role_id: uuid.UUID, actor: AuditActor) -> None:
        role = self._get_role(session, role_id)
        if role.kind == RoleKind.SUPERADMIN:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="superadmin role cannot be deleted")

        add_audit_log(session, actor, "role.delete", "access.role", str(role.id), {"slug": role.slug})
        session.delete(role)
        session.commit()

    def create_permission(self, session: Session, dto: PermissionCreate, actor: AuditActor) -> PermissionRead:
        resource = dto.resource.strip().lower()
        action = dto.action.strip().lower()
        permission = Permission(
            name=dto.name.strip(),
            slug=(dto.slug or f"{resource}.{action}").strip().lower(),
            resource=resource,
            action=action,
            description=dto.description,
            is_active=dto.is_active,
        )
        session.add(permission)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="permission already exists")
        add_audit_log(session, actor, "permission.create", "access.permission", str(permission.id), {"slug": permission.slug})
        session.commit()
        session.refresh(permission)
        return PermissionRead.model_validate(permission)

    def list_permissions(self, session: Session) -> list[PermissionRead]:
        rows = session.scalars(
            select(Permission).order_by(Permission.resource.asc(), Permission.action.asc())
        ).all()
        return [PermissionRead.model_validate(row) for row in rows]

    def update_permission(
        self, session: Session, permission_id: uuid.UUID, dto: PermissionUpdate, actor: AuditActor
    ) -> PermissionRead:
        permission = self._get_permission(session, permission_id)
        before = {"name": permission.name, "is_active": permission.is_active}

        if dto.name is not None:
            permission.name = dto.name.strip()
        if "description" in dto.model_fields_set:
            permission.description = dto.description
        if dto.is_active is not None:
            permission.is_active = dto.is_active

        add_audit_log(
            session,
            actor,
            "permission.update",
            "access.permission",
            str(permission.id),
            {"before": before, "after": {"name": permission.name, "is_active": permission.is_active}},
        )
        session.commit()
        session.refresh(permission)
        return PermissionRead.model_validate(permission)

    def delete_permission(self, session: Session, permission_id: uuid.UUID, actor: AuditActor) -> None:
        permission = self._get_permission(session, permission_id)
        add_audit_log(session, actor, "permission.delete", "access.permission", str(permission.id), {"slug": permission.slug})
        session.delete(permission)
        session.commit()

    def create_menu(self, session: Session, dto: MenuCreate, actor: AuditActor) -> MenuRead:
        if dto.parent_id is not None:
            self._get_menu(session, dto.parent_id)

        menu = Menu(
            name=dto.name.strip(),
            slug=dto.slug.strip().lower(),
            path=dto.path.strip(),
            icon=dto.icon,
            parent_id=dto.parent_id,
            order=dto.order,
            is_active=dto.is_active,
            is_public=dto.is_public,
        )
        session.add(menu)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="menu already exists")
        add_audit_log(session, actor, "menu.create", "access.menu", str(menu.id), {"slug": menu.slug, "is_public": menu.is_public})
        session.commit()
        session.refresh(menu)
        return MenuRead.model_validate(menu)

    def list_menus(self, session: Session, *, is_public: bool | None = None) -> list[MenuRead]:
        stmt = select(Menu).order_by(Menu.order.asc(), Menu.name.asc())
        if is_public is not None:
            stmt = stmt.where(Menu.is_public.is_(is_public))
        rows = session.scalars(stmt).all()
        return [MenuRead.model_validate(row) for row in rows]

    def update_menu(self, session: Session, menu_id: uuid.UUID, dto: MenuUpdate, actor: AuditActor) -> MenuRead:
        menu = self._get_menu(session, menu_id)

        if "parent_id" in dto.model_fields_set:
            if dto.parent_id is not None:
                self._ensure_not_own_ancestor(session, menu.id, dto.parent_id)
            menu.parent_id = dto.parent_id
        if dto.name is not None:
            menu.name = dto.name.strip()
        if dto.path is not None:
            menu.path = dto.path.strip()
        if "icon" in dto.model_fields_set:
            menu.icon = dto.icon
        if dto.order is not None:
            menu.order = dto.order
        if dto.is_active is not None:
            menu.is_active = dto.is_active
        if dto.is_public is not None:
            menu.is_public = dto.is_public

        add_audit_log(
            session,
            actor,
            "menu.update",
            "access.menu",
            str(menu.id),
            {"changes": dto.model_dump(mode="json", exclude_unset=True)},
        )
        session.commit()
        session.refresh(menu)
        return MenuRead.model_validate(menu)

    def delete_menu(self, session: Session, menu_id: uuid.UUID, actor: AuditActor) -> None:
        menu = self._get_menu(session, menu_id)
        for child in menu.children:
            child.parent_id = None
        add_audit_log(session, actor, "menu.delete", "access.menu", str(menu.id), {"slug": menu.slug})
        session.delete(menu)
        session.commit()

    def attach_permission_to_role(
        self, session: Session, role_id: uuid.UUID, permission_id: uuid.UUID, actor: AuditActor
    ) -> RolePermissionRead:
        role = self._get_role(session, role_id)
        permission = self._get_permission(session, permission_id)

        mapping = session.scalar(
            select(RolePermission).where(
                and_(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
            )
        )
        if mapping is None:
            mapping = RolePermission(role_id=role_id, permission_id=permission_id)
            session.add(mapping)
            add_audit_log(
                session,
                actor,
                "role.permission.attach",
                "access.role",
                str(role.id),
                {"permission": permission.slug},
            )
            session.commit()
            session.refresh(mapping)

        return RolePermissionRead(
            role_id=role.id,
            role_slug=role.slug,
            permission_id=permission.id,
            permission_slug=permission.slug,
            permission_is_active=permission.is_active,
            created_at=mapping.created_at,
        )

    def list_role_permissions(self, session: Session, role_id: uuid.UUID) -> list[RolePermissionRead]:
        self._get_role(session, role_id)
        rows = session.execute(
            select(RolePermission, Role, Permission)
            .join(Role, RolePermission.role_id == Role.id)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.slug.asc())
        ).all()
        return [
            RolePermissionRead(
                role_id=role.id,
                role_slug=role.slug,
                permission_id=permission.id,
                permission_slug=permission.slug,
                permission_is_active=permission.is_active,
                created_at=mapping.created_at,
            )
            for mapping, role, permission in rows
        ]

    def detach_permission_from_role(
        self, session: Session, role_id: uuid.UUID, permission_id: uuid.UUID, actor: AuditActor
    ) -> None:
        mapping = session.scalar(
            select(RolePermission).where(
                and_(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
            )
        )
        if mapping is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="role-permission mapping not found")

        add_audit_log(
            session,
            actor,
            "role.permission.detach",
            "access.role",
            str(role_id),
            {"permission_id": str(permission_id)},
        )
        session.delete(mapping)
        session.commit()

    def attach_menu_to_role(self, session: Session, role_id: uuid.UUID, menu_id: uuid.UUID, actor: AuditActor) -> RoleMenuRead:
        role = self._get_role(session, role_id)
        menu = self._get_menu(session, menu_id)

        mapping = session.scalar(
            select(RoleMenu).where(and_(RoleMenu.role_id == role_id, RoleMenu.menu_id == menu_id))
        )
        if mapping is None:
            mapping = RoleMenu(role_id=role_id, menu_id=menu_id)
            session.add(mapping)
            add_audit_log(session, actor, "role.menu.attach", "access.role", str(role.id), {"menu": menu.slug})
            session.commit()
            session.refresh(mapping)

        return RoleMenuRead(
            role_id=role.id,
            role_slug=role.slug,
            menu_id=menu.id,
            menu_slug=menu.slug,
            menu_is_active=menu.is_active,
            created_at=mapping.created_at,
        )

    def list_role_menus(self, session: Session, role_id: uuid.UUID) -> list[RoleMenuRead]:
        self._get_role(session, role_id)
        rows = session.execute(
            select(RoleMenu, Role, Menu)
            .join(Role, RoleMenu.role_id == Role.id)
            .join(Menu, RoleMenu.menu_id == Menu.id)
            .where(RoleMenu.role_id == role_id)
            .order_by(Menu.order.asc(), Menu.slug.asc())
        ).all()
        return [
            RoleMenuRead(
                role_id=role.id,
                role_slug=role.slug,
                menu_id=menu.id,
                menu_slug=menu.slug,
                menu_is_active=menu.is_active,
                created_at=mapping.created_at,
            )
            for mapping, role, menu in rows
        ]

    def detach_menu_from_role(self, session: Session, role_id: uuid.UUID, menu_id: uuid.UUID, actor: AuditActor) -> None:
        mapping = session.scalar(
            select(RoleMenu).where(and_(RoleMenu.role_id == role_id, RoleMenu.menu_id == menu_id))
        )
        if mapping is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="role-menu mapping not found")

        add_audit_log(session, actor, "role.menu.detach", "access.role", str(role_id), {"menu_id": str(menu_id)})
        session.delete(mapping)
        session.commit()

    def assign_role_to_user(self, session: Session, user_id: str, role_id: uuid.UUID, actor: AuditActor) -> UserRoleRead:
        role = self._get_role(session, role_id)

        mapping = session.scalar(
            select(UserRole).where(
                and_(UserRole.user_id == user_id, UserRole.role_id == role_id)
            )
        )
        if mapping is None:
            mapping = UserRole(user_id=user_id, role_id=role_id)
            session.add(mapping)
            add_audit_log(session, actor, "user.role.assign", "access.user", user_id, {"role": role.slug})
            session.commit()
            session.refresh(mapping)

        return UserRoleRead(
            user_id=mapping.user_id,
            role_id=mapping.role_id,
            role_slug=role.slug,
            role_name=role.name,
            created_at=mapping.created_at,
        )

    def list_user_roles(self, session: Session, user_id: str | None = None) -> list[UserRoleRead]:
        stmt = select(UserRole, Role).join(Role, UserRole.role_id == Role.id).order_by(UserRole.user_id.asc(), Role.name.asc())
        if user_id is not None:
            stmt = stmt.where(UserRole.user_id == user_id)
        rows = session.execute(stmt).all()
        return [
            UserRoleRead(
                user_id=mapping.user_id,
                role_id=mapping.role_id,
                role_slug=role.slug,
                role_name=role.name,
                created_at=mapping.created_at,
            )
            for mapping, role in rows
        ]

    def unassign_role_from_user(self, session: Session, user_id: str, role_id: uuid.UUID, actor: AuditActor) -> None:
        mapping = session.scalar(
            select(UserRole).where(
                and_(UserRole.user_id == user_id, UserRole.role_id == role_id)
            )
        )
        if mapping is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user-role mapping not found")

        add_audit_log(session, actor, "user.role.unassign", "access.user", user_id, {"role_id": str(role_id)})
        session.delete(mapping)
        session.commit()

    @staticmethod
    def _get_role(session: Session, role_id: uuid.UUID) -> Role:
        role = session.scalar(select(Role).where(Role.id == role_id))
        if role is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="role not found")
        return role

    @staticmethod
    def _get_permission(session: Session, permission_id: uuid.UUID) -> Permission:
        permission = session.scalar(select(Permission).where(Permission.id == permission_id))
        if permission is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="permission not found")
        return permission

    @staticmethod
    def _get_menu(session: Session, menu_id: uuid.UUID) -> Menu:
        menu = session.scalar(select(Menu).where(Menu.id == menu_id))
        if menu is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="menu not found")
        return menu

    def _ensure_not_own_ancestor(self, session: Session, menu_id: uuid.UUID, parent_id: uuid.UUID) -> None:
        visited: set[uuid.UUID] = set()
        current: uuid.UUID | None = parent_id
        while current is not None and current not in visited:
            if current == menu_id:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="menu cannot be its own ancestor")
            visited.add(current)
            current = self._get_menu(session, current).parent_id


access_admin_service = AccessAdminService()
