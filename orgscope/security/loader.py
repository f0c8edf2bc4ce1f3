"""
I/O half of the user context builder.

Fetches the rows ``build_user_context`` needs with SQLAlchemy and converts ORM objects
into the engine's plain records. The engine itself never sees a Session.
"""

from __future__ import annotations

from datetime import datetime
import logging
import time

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from orgscope.models.security import Organization, Role, User, UserOrganization, UserRole
from orgscope.rbac.builder import (
    OrganizationMembership,
    PermissionRecord,
    RoleAssignment,
    RoleRecord,
    build_user_context,
)
from orgscope.rbac.catalog import PermissionCatalog
from orgscope.rbac.context import UserContext
from orgscope.rbac.errors import ContextLoadTimeout
from orgscope.rbac.hierarchy import OrganizationHierarchy, OrganizationRecord

logger = logging.getLogger(__name__)


def load_organization_records(db: Session) -> list[OrganizationRecord]:
    """All organizations as hierarchy records; soft-deleted rows count as inactive."""
    rows = db.scalars(select(Organization).order_by(Organization.organization_id)).all()
    return [
        OrganizationRecord(
            organization_id=org.organization_id,
            parent_organization_id=org.parent_organization_id,
            is_active=org.is_active and org.deleted_at is None,
            name=org.name,
        )
        for org in rows
    ]


def _check_deadline(deadline: float | None, user_id: str, stage: str) -> None:
    if deadline is not None and time.monotonic() > deadline:
        logger.warning("User context load timed out user_id=%s stage=%s", user_id, stage)
        raise ContextLoadTimeout(f"user context load exceeded deadline at {stage}")


def _role_record(role: Role, catalog: PermissionCatalog) -> RoleRecord:
    permissions: list[PermissionRecord] = []
    for permission in role.permissions:
        if catalog.get(permission.name) is None:
            logger.warning("Permission not in catalog skipped role=%s permission=%s", role.name, permission.name)
            continue
        permissions.append(PermissionRecord(name=permission.name, is_active=permission.is_active))
    return RoleRecord(
        role_id=role.role_id,
        name=role.name,
        permissions=tuple(permissions),
        is_system_role=role.is_system_role,
        organization_id=role.organization_id,
        is_active=role.is_active,
        deleted_at=role.deleted_at,
    )


def load_user_context(
    db: Session,
    user_id: str,
    hierarchy: OrganizationHierarchy,
    catalog: PermissionCatalog,
    *,
    current_organization_id: str | None = None,
    deadline: float | None = None,
    now: datetime | None = None,
) -> UserContext:
    """
    Fetch role assignments and memberships for ``user_id`` and build its context.

    ``deadline`` is a ``time.monotonic()`` value; it is checked between queries and
    ContextLoadTimeout is raised once it has passed. Unknown or inactive users get an
    empty context rather than an error.
    """

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        logger.info("Context requested for unknown or inactive user user_id=%s", user_id)
        return UserContext.empty(user_id)
    _check_deadline(deadline, user_id, "user")

    role_rows = db.scalars(
        select(UserRole)
        .where(UserRole.user_id == user_id, UserRole.is_active.is_(True))
        .options(selectinload(UserRole.role).selectinload(Role.permissions))
        .order_by(UserRole.user_role_id)
    ).all()
    _check_deadline(deadline, user_id, "roles")

    membership_rows = db.scalars(
        select(UserOrganization)
        .where(UserOrganization.user_id == user_id)
        .order_by(UserOrganization.user_organization_id)
    ).all()
    _check_deadline(deadline, user_id, "memberships")

    assignments = [
        RoleAssignment(
            user_id=row.user_id,
            role=_role_record(row.role, catalog),
            organization_id=row.organization_id,
            expires_at=row.expires_at,
            is_active=row.is_active,
        )
        for row in role_rows
    ]
    memberships = [OrganizationMembership(row.organization_id, row.is_active) for row in membership_rows]

    return build_user_context(
        user_id,
        assignments=assignments,
        memberships=memberships,
        hierarchy=hierarchy,
        now=now,
        current_organization_id=current_organization_id,
        provider_uid=user.provider_uid,
        super_admin_role=catalog.super_admin_role,
        organization_admin_roles=catalog.organization_admin_roles,
    )
