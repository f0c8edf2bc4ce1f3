"""
Tests for the scoped services against seeded data.

Demo data: org-1 > org-2 > org-4 and unrelated org-3. Bob and Carol are staff in
org-1, Alice administers org-1, Dana is a provider in org-2, Erin an analyst in
org-3, and u-root is the super admin.
"""
from __future__ import annotations

import pytest

from orgscope.rbac.catalog import AccessScope
from orgscope.rbac.errors import AccessDenied, HierarchyIntegrityError, ResourceOutOfScope
from orgscope.services.analytics import AnalyticsService
from orgscope.services.base import ResourceRef, verify_resource_access
from orgscope.services.organizations import OrganizationService
from orgscope.services.roles import RoleService
from orgscope.services.work_items import WorkItemService


# ---- verify_resource_access ---------------------------------------------------------


def test_verify_resource_access_widest_first(make_checker):
    checker = make_checker("u-1", ["roles:read:own", "roles:read:organization"], orgs=["org-1"])
    assert verify_resource_access(checker, "roles", "read", ResourceRef("r1", "org-1")) is AccessScope.ORGANIZATION
    assert verify_resource_access(checker, "roles", "read", ResourceRef("r2", "org-9", "u-1")) is AccessScope.OWN
    with pytest.raises(ResourceOutOfScope):
        verify_resource_access(checker, "roles", "read", ResourceRef("r3", "org-9", "u-2"))


def test_verify_resource_access_without_permission(make_checker):
    with pytest.raises(AccessDenied):
        verify_resource_access(make_checker(), "roles", "read", ResourceRef("r1", "org-1"))


def test_verify_resource_access_missing_organization_is_out_of_scope(make_checker):
    checker = make_checker("u-1", ["roles:read:organization"], orgs=["org-1"])
    with pytest.raises(ResourceOutOfScope):
        verify_resource_access(checker, "roles", "read", ResourceRef("r1", None))


# ---- Work items ---------------------------------------------------------------------


@pytest.mark.parametrize(
    "user_id, expected",
    [
        ("u-bob", ["wi-1"]),
        ("u-alice", ["wi-1", "wi-2", "wi-3"]),
        ("u-erin", ["wi-4"]),
        ("u-root", ["wi-1", "wi-2", "wi-3", "wi-4"]),
        ("u-dana", []),
    ],
)
def test_work_item_list_is_scoped(seeded_db, checker_for, user_id, expected):
    items = WorkItemService(seeded_db, checker_for(user_id)).list()
    assert sorted(i.work_item_id for i in items) == expected


def test_own_scope_excludes_co_tenant_items(seeded_db, checker_for):
    service = WorkItemService(seeded_db, checker_for("u-bob"))
    assert service.get("wi-1").created_by == "u-bob"
    with pytest.raises(ResourceOutOfScope):
        service.get("wi-2")


def test_organization_scope_rejects_other_tenant_item(seeded_db, checker_for):
    with pytest.raises(ResourceOutOfScope):
        WorkItemService(seeded_db, checker_for("u-alice")).get("wi-4")


def test_missing_item_looks_out_of_scope(seeded_db, checker_for):
    with pytest.raises(ResourceOutOfScope):
        WorkItemService(seeded_db, checker_for("u-bob")).get("wi-missing")


def test_no_permission_is_denied_before_lookup(seeded_db, make_checker):
    with pytest.raises(AccessDenied):
        WorkItemService(seeded_db, make_checker("u-x")).get("wi-missing")


def test_update_status(seeded_db, checker_for):
    assert WorkItemService(seeded_db, checker_for("u-bob")).update_status("wi-1", "done").status == "done"
    assert WorkItemService(seeded_db, checker_for("u-alice")).update_status("wi-3", "in_progress").status == "in_progress"
    with pytest.raises(AccessDenied):
        WorkItemService(seeded_db, checker_for("u-dana")).update_status("wi-1", "done")


def test_create_in_current_organization(seeded_db, checker_for):
    item = WorkItemService(seeded_db, checker_for("u-bob")).create("Call supplier")
    assert item.organization_id == "org-1"
    assert item.created_by == "u-bob"


def test_create_own_scope_limited_to_memberships(seeded_db, checker_for):
    with pytest.raises(ResourceOutOfScope):
        WorkItemService(seeded_db, checker_for("u-bob")).create("Elsewhere", organization_id="org-2")


def test_create_organization_scope_reaches_descendants(seeded_db, checker_for):
    item = WorkItemService(seeded_db, checker_for("u-alice")).create("Annex task", organization_id="org-4")
    assert item.organization_id == "org-4"


def test_create_without_organization_is_denied(seeded_db, make_checker):
    with pytest.raises(AccessDenied):
        WorkItemService(seeded_db, make_checker("u-x", ["work-items:create:own"])).create("Nowhere")


# ---- Roles --------------------------------------------------------------------------


def test_role_in_descendant_organization_is_visible(seeded_db, checker_for):
    service = RoleService(seeded_db, checker_for("u-alice"))
    assert service.get("role-org2-coordinator").organization_id == "org-2"
    assert [r.role_id for r in service.list()] == ["role-org2-coordinator"]


def test_role_in_unrelated_organization_is_not_found(seeded_db, checker_for):
    service = RoleService(seeded_db, checker_for("u-alice"))
    with pytest.raises(ResourceOutOfScope):
        service.get("role-org3-coordinator")
    with pytest.raises(ResourceOutOfScope):
        service.get("role-staff")


def test_super_admin_sees_all_roles(seeded_db, checker_for, catalog):
    roles = RoleService(seeded_db, checker_for("u-root")).list()
    assert len(roles) == len(catalog.roles) + 2


def test_roles_without_permission_denied(seeded_db, checker_for):
    with pytest.raises(AccessDenied):
        RoleService(seeded_db, checker_for("u-bob")).list()


# ---- Organizations ------------------------------------------------------------------


def test_tree_for_super_admin_and_org_admin(seeded_db, checker_for, db_hierarchy_cache):
    full = OrganizationService(seeded_db, checker_for("u-root"), db_hierarchy_cache).tree()
    assert [n.organization.organization_id for n in full] == ["org-1", "org-3"]

    scoped = OrganizationService(seeded_db, checker_for("u-alice"), db_hierarchy_cache).tree()
    assert [n.organization.organization_id for n in scoped] == ["org-1"]
    assert scoped[0].children[0].children[0].organization.organization_id == "org-4"


def test_tree_requires_organization_scope(seeded_db, checker_for, db_hierarchy_cache):
    with pytest.raises(AccessDenied):
        OrganizationService(seeded_db, checker_for("u-bob"), db_hierarchy_cache).tree()


def test_set_parent_invalidates_cache(seeded_db, checker_for, db_hierarchy_cache):
    before = db_hierarchy_cache.get()
    service = OrganizationService(seeded_db, checker_for("u-root"), db_hierarchy_cache)

    service.set_parent("org-3", "org-4")

    after = db_hierarchy_cache.get()
    assert after is not before
    assert "org-3" in after.descendants_of("org-1")
    assert "org-3" not in before.descendants_of("org-1")


def test_set_parent_rejects_cycle(seeded_db, checker_for, db_hierarchy_cache):
    service = OrganizationService(seeded_db, checker_for("u-root"), db_hierarchy_cache)
    with pytest.raises(HierarchyIntegrityError):
        service.set_parent("org-1", "org-4")


def test_set_parent_requires_global_update(seeded_db, checker_for, db_hierarchy_cache):
    with pytest.raises(AccessDenied):
        OrganizationService(seeded_db, checker_for("u-alice"), db_hierarchy_cache).set_parent("org-4", "org-1")


# ---- Analytics ----------------------------------------------------------------------


def test_organization_without_practices_returns_zero_rows(seeded_db, checker_for, db_hierarchy_cache):
    service = AnalyticsService(seeded_db, checker_for("u-alice"), db_hierarchy_cache.get())
    result = service.query_measures(organization_id="org-4")
    assert result.practice_filter.is_empty
    assert result.rows == []


def test_super_admin_with_unmapped_organization_still_zero_rows(seeded_db, checker_for, db_hierarchy_cache):
    service = AnalyticsService(seeded_db, checker_for("u-root"), db_hierarchy_cache.get())
    assert service.query_measures(organization_id="org-4").rows == []
    assert len(service.query_measures().rows) == 4


def test_organization_scope_analytics(seeded_db, checker_for, db_hierarchy_cache):
    service = AnalyticsService(seeded_db, checker_for("u-alice"), db_hierarchy_cache.get())
    assert sorted(r.practice_uid for r in service.query_measures().rows) == [101, 201, 202]
    with pytest.raises(ResourceOutOfScope):
        service.query_measures(organization_id="org-3")


def test_provider_sees_own_rows(seeded_db, checker_for, db_hierarchy_cache):
    service = AnalyticsService(seeded_db, checker_for("u-dana"), db_hierarchy_cache.get())
    rows = service.query_measures(measure="visits").rows
    assert [(r.practice_uid, r.provider_uid) for r in rows] == [(201, 501)]


def test_work_item_list_leaves_session_unscoped(seeded_db, checker_for):
    WorkItemService(seeded_db, checker_for("u-bob")).list()
    assert sorted(i.work_item_id for i in WorkItemService(seeded_db, checker_for("u-root")).list()) == [
        "wi-1",
        "wi-2",
        "wi-3",
        "wi-4",
    ]
