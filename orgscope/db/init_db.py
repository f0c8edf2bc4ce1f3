from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgscope.db.base import Base
from orgscope.db.session import SessionLocal, engine
from orgscope.models.analytics import PracticeMeasure
from orgscope.models.security import (
    Organization,
    OrganizationPractice,
    Permission,
    Role,
    User,
    UserOrganization,
    UserRole,
)
from orgscope.models.work import WorkItem
from orgscope.rbac.catalog import PermissionCatalog

logger = logging.getLogger(__name__)


def init_db(catalog: PermissionCatalog) -> None:
    """
    Create tables, sync the catalog, and seed demo data.

    The demo data is small and deterministic so scoping behavior can be tried
    without additional setup.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        sync_catalog(db, catalog)
        if not _has_seed_data(db):
            seed_demo_data(db)
        db.commit()


def catalog_role_id(role_name: str) -> str:
    return f"role-{role_name}"


def sync_catalog(db: Session, catalog: PermissionCatalog) -> dict[str, Role]:
    """
    Make the permission and global role tables match the catalog.

    Existing rows are updated in place; permissions dropped from the catalog are left
    in the table but deactivated.
    """

    existing = {p.name: p for p in db.scalars(select(Permission)).all()}
    for name, definition in catalog.permissions.items():
        row = existing.get(name)
        if row is None:
            row = Permission(
                name=name,
                resource=definition.permission.resource,
                action=definition.permission.action,
                scope=definition.permission.scope.value,
            )
            db.add(row)
            existing[name] = row
        row.description = definition.description
        row.is_active = definition.is_active
    for name, row in existing.items():
        if name not in catalog.permissions and row.is_active:
            logger.info("Deactivating permission removed from catalog name=%s", name)
            row.is_active = False
    db.flush()

    roles: dict[str, Role] = {}
    for role_name, role_def in catalog.roles.items():
        role = db.get(Role, catalog_role_id(role_name))
        if role is None:
            role = Role(role_id=catalog_role_id(role_name), name=role_name)
            db.add(role)
        role.description = role_def.description
        role.is_system_role = role_def.system
        role.permissions = [existing[name] for name in sorted(role_def.permissions)]
        roles[role_name] = role
    db.flush()
    logger.debug("Catalog synced permissions=%d roles=%d", len(catalog.permissions), len(roles))
    return roles


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Organization.organization_id).limit(1)).first() is not None


def seed_demo_data(db: Session) -> None:
    # Organizations: org-1 > org-2 > org-4, org-3 unrelated.
    db.add_all(
        [
            Organization(organization_id="org-1", name="North Region"),
            Organization(organization_id="org-2", name="North Clinic A", parent_organization_id="org-1"),
            Organization(organization_id="org-4", name="North Clinic A Annex", parent_organization_id="org-2"),
            Organization(organization_id="org-3", name="South Region"),
        ]
    )
    db.flush()

    # Practice mapping (org-4 has none yet).
    db.add_all(
        [
            OrganizationPractice(organization_id="org-1", practice_uid=101),
            OrganizationPractice(organization_id="org-2", practice_uid=201),
            OrganizationPractice(organization_id="org-2", practice_uid=202),
            OrganizationPractice(organization_id="org-3", practice_uid=301),
        ]
    )

    # Organization-owned roles
    db.add_all(
        [
            Role(role_id="role-org2-coordinator", name="coordinator", organization_id="org-2"),
            Role(role_id="role-org3-coordinator", name="coordinator", organization_id="org-3"),
        ]
    )

    # Users
    users = [
        User(user_id="u-root", email="root@example.com"),
        User(user_id="u-alice", email="alice@example.com"),
        User(user_id="u-bob", email="bob@example.com"),
        User(user_id="u-carol", email="carol@example.com"),
        User(user_id="u-dana", email="dana@example.com", provider_uid=501),
        User(user_id="u-erin", email="erin@example.com"),
        User(user_id="u-gone", email="gone@example.com", is_active=False),
    ]
    db.add_all(users)
    db.flush()

    grants = [
        ("u-root", "super_admin", None),
        ("u-alice", "organization_admin", "org-1"),
        ("u-bob", "staff", "org-1"),
        ("u-carol", "staff", "org-1"),
        ("u-dana", "provider", "org-2"),
        ("u-erin", "analyst", "org-3"),
    ]
    for user_id, role_name, organization_id in grants:
        db.add(UserRole(user_id=user_id, role_id=catalog_role_id(role_name), organization_id=organization_id))
        if organization_id is not None:
            db.add(UserOrganization(user_id=user_id, organization_id=organization_id))

    # Work items
    db.add_all(
        [
            WorkItem(work_item_id="wi-1", organization_id="org-1", created_by="u-bob", subject="Order supplies"),
            WorkItem(work_item_id="wi-2", organization_id="org-1", created_by="u-carol", subject="Schedule audit"),
            WorkItem(work_item_id="wi-3", organization_id="org-2", created_by="u-alice", subject="Review intake"),
            WorkItem(work_item_id="wi-4", organization_id="org-3", created_by="u-erin", subject="Quarterly report"),
        ]
    )

    # Analytics
    db.add_all(
        [
            PracticeMeasure(practice_uid=101, provider_uid=None, measure="visits", period="2026-09", value=420),
            PracticeMeasure(practice_uid=201, provider_uid=501, measure="visits", period="2026-09", value=130),
            PracticeMeasure(practice_uid=202, provider_uid=502, measure="visits", period="2026-09", value=95),
            PracticeMeasure(practice_uid=301, provider_uid=601, measure="visits", period="2026-09", value=250),
        ]
    )
    db.flush()
    logger.info("Demo data seeded organizations=4 users=%d", len(users))
