from __future__ import annotations

from sqlalchemy.orm import Session, selectinload

from orgscope.models.security import Role
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.errors import ResourceOutOfScope
from orgscope.services.base import ResourceRef, scoped_select, verify_resource_access

RESOURCE = "roles"


class RoleService:
    """
    Read access to role definitions.

    Organization-scoped readers see roles that belong to their organizations and the
    organizations below them. Global roles (no organization) need scope ``all``.
    """

    def __init__(self, db: Session, checker: PermissionChecker) -> None:
        self._db = db
        self._checker = checker

    def list(self) -> list[Role]:
        stmt = (
            scoped_select(self._checker, Role, RESOURCE, "read")
            .where(Role.is_active.is_(True), Role.deleted_at.is_(None))
            .options(selectinload(Role.permissions))
            .order_by(Role.name, Role.role_id)
        )
        return list(self._db.scalars(stmt).all())

    def get(self, role_id: str) -> Role:
        self._checker.get_access_scope(RESOURCE, "read")
        role = self._db.get(Role, role_id)
        if role is None or role.deleted_at is not None:
            raise ResourceOutOfScope(f"{RESOURCE}:read", resource_id=role_id, reason="not_found")
        verify_resource_access(self._checker, RESOURCE, "read", ResourceRef(role.role_id, role.organization_id))
        return role
