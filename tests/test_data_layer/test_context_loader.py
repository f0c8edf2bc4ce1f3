"""
Tests for loading a UserContext from the database.

Uses the seeded_db fixture (catalog + demo data on in-memory SQLite).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
import time

import pytest

from orgscope.models.security import Organization, Permission, Role, UserRole
from orgscope.rbac.errors import ContextLoadTimeout
from orgscope.rbac.hierarchy import OrganizationHierarchy
from orgscope.security.loader import load_organization_records, load_user_context


def _hierarchy(db):
    return OrganizationHierarchy(load_organization_records(db))


def test_organization_admin_context(seeded_db, catalog):
    ctx = load_user_context(seeded_db, "u-alice", _hierarchy(seeded_db), catalog)

    assert not ctx.is_super_admin
    assert ctx.organization_ids == {"org-1"}
    assert ctx.admin_organization_ids == {"org-1"}
    assert ctx.accessible_organization_ids == {"org-1", "org-2", "org-4"}
    assert ctx.current_organization_id == "org-1"
    assert "roles:read:organization" in ctx.permission_names


def test_super_admin_context(seeded_db, catalog):
    ctx = load_user_context(seeded_db, "u-root", _hierarchy(seeded_db), catalog)
    assert ctx.is_super_admin
    assert ctx.current_organization_id is None


def test_provider_uid_carried(seeded_db, catalog):
    ctx = load_user_context(seeded_db, "u-dana", _hierarchy(seeded_db), catalog)
    assert ctx.provider_uid == 501
    assert ctx.permission_names == {"work-items:read:own", "analytics:read:own"}


def test_unknown_and_inactive_users_get_empty_context(seeded_db, catalog):
    hierarchy = _hierarchy(seeded_db)
    for user_id in ("u-nobody", "u-gone"):
        ctx = load_user_context(seeded_db, user_id, hierarchy, catalog)
        assert ctx.permissions == frozenset()
        assert ctx.accessible_organization_ids == frozenset()


def test_expired_assignment_ignored(seeded_db, catalog):
    past = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)
    seeded_db.add(UserRole(user_id="u-bob", role_id="role-auditor", expires_at=past))
    seeded_db.commit()

    ctx = load_user_context(seeded_db, "u-bob", _hierarchy(seeded_db), catalog)
    assert "work-items:read:all" not in ctx.permission_names
    assert "work-items:read:own" in ctx.permission_names


def test_permission_outside_catalog_skipped(seeded_db, catalog):
    legacy = Permission(name="legacy:read:all", resource="legacy", action="read", scope="all")
    role = Role(role_id="role-legacy", name="legacy", permissions=[legacy])
    seeded_db.add_all([legacy, role])
    seeded_db.flush()
    seeded_db.add(UserRole(user_id="u-bob", role_id="role-legacy"))
    seeded_db.commit()

    ctx = load_user_context(seeded_db, "u-bob", _hierarchy(seeded_db), catalog)
    assert "legacy:read:all" not in ctx.permission_names


def test_requested_current_organization(seeded_db, catalog):
    hierarchy = _hierarchy(seeded_db)
    assert load_user_context(
        seeded_db, "u-alice", hierarchy, catalog, current_organization_id="org-2"
    ).current_organization_id == "org-2"
    assert load_user_context(
        seeded_db, "u-alice", hierarchy, catalog, current_organization_id="org-3"
    ).current_organization_id == "org-1"


def test_deadline_exceeded_raises(seeded_db, catalog):
    with pytest.raises(ContextLoadTimeout):
        load_user_context(seeded_db, "u-alice", _hierarchy(seeded_db), catalog, deadline=time.monotonic() - 1)


def test_soft_deleted_organization_is_inactive(seeded_db):
    org = seeded_db.get(Organization, "org-4")
    org.deleted_at = datetime.now(timezone.utc)
    seeded_db.commit()

    records = {r.organization_id: r for r in load_organization_records(seeded_db)}
    assert records["org-4"].is_active is False
    assert records["org-2"].parent_organization_id == "org-1"
    assert _hierarchy(seeded_db).descendants_of("org-1") == {"org-1", "org-2"}
