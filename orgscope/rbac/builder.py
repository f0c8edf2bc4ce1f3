"""
User context builder.

Turns already-fetched role assignment and membership rows into an immutable
``UserContext``. No I/O happens here; ``orgscope.security.loader`` does the fetching.

Key ideas:
- Expired, revoked or soft-deleted grants are dropped before anything is flattened.
- Permissions are deduplicated by name; malformed or inactive ones are skipped.
- Nothing is raised: an unknown or inactive user gets an empty context and is
  denied downstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Iterable

from .audit import log_security_event
from .catalog import Permission
from .context import UserContext
from .errors import InvalidPermissionName
from .hierarchy import OrganizationHierarchy

logger = logging.getLogger(__name__)


# ---- Input rows ----------------------------------------------------------------------


@dataclass(frozen=True)
class PermissionRecord:
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class RoleRecord:
    role_id: str
    name: str
    permissions: tuple[PermissionRecord, ...] = ()
    is_system_role: bool = False
    organization_id: str | None = None
    is_active: bool = True
    deleted_at: datetime | None = None


@dataclass(frozen=True)
class RoleAssignment:
    """A user bound to a role, optionally scoped to one organization and optionally expiring."""

    user_id: str
    role: RoleRecord
    organization_id: str | None = None
    expires_at: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True)
class OrganizationMembership:
    organization_id: str
    is_active: bool = True


# ---- Helpers -------------------------------------------------------------------------


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from the database are stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _assignment_in_force(assignment: RoleAssignment, user_id: str, now: datetime) -> bool:
    role = assignment.role
    if assignment.user_id != user_id:
        logger.warning("Role assignment for another user ignored user_id=%s row_user_id=%s", user_id, assignment.user_id)
        return False
    if not assignment.is_active or not role.is_active or role.deleted_at is not None:
        return False
    if assignment.expires_at is not None and _as_utc(assignment.expires_at) <= now:
        logger.debug("Expired role assignment skipped user_id=%s role=%s", user_id, role.name)
        return False
    return True


def _flatten_permissions(roles: Iterable[RoleRecord]) -> frozenset[Permission]:
    by_name: dict[str, Permission] = {}
    for role in roles:
        for record in role.permissions:
            if not record.is_active or record.name in by_name:
                continue
            try:
                by_name[record.name] = Permission.parse(record.name)
            except InvalidPermissionName as exc:
                logger.warning("Skipping malformed permission role=%s error=%s", role.name, exc)
    return frozenset(by_name.values())


# ---- Builder -------------------------------------------------------------------------


def build_user_context(
    user_id: str,
    *,
    assignments: Iterable[RoleAssignment],
    memberships: Iterable[OrganizationMembership],
    hierarchy: OrganizationHierarchy,
    now: datetime | None = None,
    current_organization_id: str | None = None,
    user_active: bool = True,
    provider_uid: int | None = None,
    super_admin_role: str = "super_admin",
    organization_admin_roles: Iterable[str] = ("organization_admin",),
) -> UserContext:
    """
    Assemble the immutable context for one authenticated principal.

    ``current_organization_id`` is the organization the client asked to work in; it
    is honored only when the user can actually see it.
    """

    if not user_active:
        logger.info("Inactive user gets empty context user_id=%s", user_id)
        return UserContext.empty(user_id)

    now_utc = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    admin_role_names = frozenset(organization_admin_roles)

    kept = [a for a in assignments if _assignment_in_force(a, user_id, now_utc)]
    permissions = _flatten_permissions(a.role for a in kept)

    ordered_memberships = [m.organization_id for m in memberships if m.is_active]
    organization_ids = frozenset(ordered_memberships)

    is_super_admin = any(a.role.is_system_role and a.role.name == super_admin_role for a in kept)

    admin_organization_ids = frozenset(
        org_id
        for org_id in (a.organization_id or a.role.organization_id for a in kept if a.role.name in admin_role_names)
        if org_id is not None and org_id in organization_ids
    )

    accessible = hierarchy.accessible_organizations(ordered_memberships)

    current: str | None = None
    if current_organization_id is not None:
        if current_organization_id in accessible or is_super_admin:
            current = current_organization_id
        else:
            log_security_event(
                "current_organization_rejected",
                "medium",
                user_id=user_id,
                organization_id=current_organization_id,
            )
    if current is None:
        current = next((org_id for org_id in ordered_memberships if org_id in accessible), None)

    context = UserContext(
        user_id=user_id,
        is_super_admin=is_super_admin,
        permissions=permissions,
        organization_ids=organization_ids,
        admin_organization_ids=admin_organization_ids,
        accessible_organization_ids=accessible,
        current_organization_id=current,
        provider_uid=provider_uid,
    )
    logger.debug(
        "User context built user_id=%s roles=%d permissions=%d organizations=%d accessible=%d super_admin=%s",
        user_id,
        len(kept),
        len(permissions),
        len(organization_ids),
        len(accessible),
        is_super_admin,
    )
    return context
