from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UserContextOut(BaseModel):
    user_id: str
    email: str
    is_super_admin: bool
    permissions: list[str]
    organization_ids: list[str]
    admin_organization_ids: list[str]
    accessible_organization_ids: list[str]
    current_organization_id: str | None
    provider_uid: int | None


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str | None


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role_id: str
    name: str
    description: str | None
    organization_id: str | None
    is_system_role: bool
    is_active: bool
    permissions: list[PermissionOut] = Field(default_factory=list)


class OrganizationNodeOut(BaseModel):
    organization_id: str
    name: str | None
    depth: int
    children: list[OrganizationNodeOut] = Field(default_factory=list)


class OrganizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_id: str
    name: str
    parent_organization_id: str | None
    is_active: bool


class ParentUpdate(BaseModel):
    parent_organization_id: str | None = None
