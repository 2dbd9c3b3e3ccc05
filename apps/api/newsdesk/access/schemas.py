from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from newsdesk.access.models import RoleKind


SLUG_PATTERN = r"^[a-z0-9]+(?:[._-][a-z0-9]+)*$"


class RoleCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1, pattern=SLUG_PATTERN)
    description: str | None = None
    kind: RoleKind = RoleKind.NORMAL
    is_active: bool = True


class RoleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_active: bool | None = None


class RoleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str | None
    kind: RoleKind
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PermissionCreate(BaseModel):
    name: str = Field(min_length=1)
    resource: str = Field(min_length=1, pattern=SLUG_PATTERN)
    action: str = Field(min_length=1, pattern=SLUG_PATTERN)
    slug: str | None = Field(default=None, pattern=SLUG_PATTERN)
    description: str | None = None
    is_active: bool = True


class PermissionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_active: bool | None = None


class PermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    resource: str
    action: str
    description: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class MenuCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1, pattern=SLUG_PATTERN)
    path: str = Field(min_length=1)
    icon: str | None = None
    parent_id: UUID | None = None
    order: int = 0
    is_active: bool = True
    is_public: bool = False


class MenuUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    path: str | None = Field(default=None, min_length=1)
    icon: str | None = None
    parent_id: UUID | None = None
    order: int | None = None
    is_active: bool | None = None
    is_public: bool | None = None


class MenuRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    path: str
    icon: str | None
    parent_id: UUID | None
    order: int
    is_active: bool
    is_public: bool
    created_at: datetime
    updated_at: datetime


class MenuNodeRead(MenuRead):
    children: list[MenuNodeRead] = Field(default_factory=list)


class AttachRolePermissionRequest(BaseModel):
    permission_id: UUID


class AttachRoleMenuRequest(BaseModel):
    menu_id: UUID


class AssignUserRoleRequest(BaseModel):
    role_id: UUID


class UserRoleRead(BaseModel):
    user_id: str
    role_id: UUID
    role_slug: str
    role_name: str
    created_at: datetime


class RolePermissionRead(BaseModel):
    role_id: UUID
    role_slug: str
    permission_id: UUID
    permission_slug: str
    permission_is_active: bool
    created_at: datetime


class RoleMenuRead(BaseModel):
    role_id: UUID
    role_slug: str
    menu_id: UUID
    menu_slug: str
    menu_is_active: bool
    created_at: datetime


class PermissionCheckRead(BaseModel):
    permission: str
    allowed: bool


class MenuAccessRead(BaseModel):
    menu: str
    allowed: bool


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: str
    action: str
    entity_type: str
    entity_id: str
    metadata: dict = Field(validation_alias="event_metadata")
    ip_address: str | None
    user_agent: str | None
    correlation_id: str | None
    created_at: datetime
