"""Tests for resolving analytics requests to practice filters."""

import logging

import pytest

from orgscope.rbac.analytics import AnalyticsOrganizationResolver, PracticeFilter, StaticPracticeMapping
from orgscope.rbac.errors import AccessDenied, ResourceOutOfScope


@pytest.fixture
def resolver(sample_hierarchy):
    mapping = StaticPracticeMapping({"org-1": [101], "org-2": [201, 202], "org-3": [301]})
    return AnalyticsOrganizationResolver(sample_hierarchy, mapping)


def test_all_scope_without_request_is_unrestricted(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:all"])
    assert resolver.resolve(checker) == PracticeFilter.unrestricted()


def test_super_admin_is_unrestricted(resolver, make_checker):
    assert resolver.resolve(make_checker("root", super_admin=True)).kind == "unrestricted"


def test_all_scope_with_organization_uses_descendants(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:all"])
    result = resolver.resolve(checker, organization_id="org-1")
    assert result == PracticeFilter.practices({101, 201, 202})


def test_all_scope_with_explicit_practices(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:all"])
    assert resolver.resolve(checker, practice_uids=[999]).practice_uids == {999}


def test_organization_scope_defaults_to_accessible_practices(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:organization"], orgs=["org-2"], accessible=["org-2", "org-4"])
    assert resolver.resolve(checker) == PracticeFilter.practices({201, 202})


def test_organization_scope_rejects_foreign_organization(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:organization"], orgs=["org-2"], accessible=["org-2", "org-4"])
    with pytest.raises(ResourceOutOfScope):
        resolver.resolve(checker, organization_id="org-3")


def test_organization_scope_intersects_explicit_practices(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:organization"], orgs=["org-2"], accessible=["org-2", "org-4"])
    assert resolver.resolve(checker, practice_uids=[201, 301]).practice_uids == {201}
    assert resolver.resolve(checker, practice_uids=[301]).is_empty


def test_organization_with_no_practices_is_empty_not_unrestricted(resolver, make_checker, caplog):
    checker = make_checker(
        permissions=["analytics:read:organization"],
        orgs=["org-1"],
        accessible=["org-1", "org-2", "org-4"],
    )
    with caplog.at_level(logging.WARNING, logger="orgscope.audit"):
        result = resolver.resolve(checker, organization_id="org-4")
    assert result.kind == "empty"
    assert result.to_dict() == {"kind": "empty", "reason": "no_practices_for_organization"}
    assert "security_event=analytics_empty_filter" in caplog.text


def test_empty_mapping_for_requested_organization(sample_hierarchy, make_checker):
    resolver = AnalyticsOrganizationResolver(sample_hierarchy, StaticPracticeMapping({}))
    checker = make_checker(permissions=["analytics:read:organization"], orgs=["org-1"], accessible=["org-1", "org-2"])
    assert resolver.resolve(checker, organization_id="org-1") == PracticeFilter.empty("no_practices_for_organization")


def test_own_scope_uses_provider(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:own"], orgs=["org-2"], provider_uid=501)
    assert resolver.resolve(checker) == PracticeFilter.provider(501)


def test_own_scope_without_provider_is_empty(resolver, make_checker):
    checker = make_checker(permissions=["analytics:read:own"], orgs=["org-2"])
    assert resolver.resolve(checker).is_empty


@pytest.mark.parametrize("kwargs", [{"organization_id": "org-2"}, {"practice_uids": [201]}])
def test_own_scope_cannot_filter(resolver, make_checker, kwargs):
    checker = make_checker(permissions=["analytics:read:own"], orgs=["org-2"], provider_uid=501)
    with pytest.raises(AccessDenied):
        resolver.resolve(checker, **kwargs)


def test_no_analytics_permission_denied(resolver, make_checker):
    checker = make_checker(permissions=["analytics:export:organization"], orgs=["org-1"])
    with pytest.raises(AccessDenied):
        resolver.resolve(checker)
