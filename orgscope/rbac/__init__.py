"""
Authorization and data-visibility scoping engine.

This package has no dependency on the web or database layers (orgscope.db,
orgscope.routers, ...). Build a UserContext with build_user_context(), wrap it in a
PermissionChecker, and turn scopes into row predicates with ScopeFilter.
"""

from .analytics import AnalyticsOrganizationResolver, PracticeFilter, PracticeMapping, StaticPracticeMapping
from .builder import OrganizationMembership, PermissionRecord, RoleAssignment, RoleRecord, build_user_context
from .catalog import AccessScope, Permission, PermissionCatalog, load_permission_catalog
from .checker import PermissionChecker
from .context import UserContext
from .errors import (
    AccessDenied,
    AuthorizationError,
    ContextLoadTimeout,
    HierarchyIntegrityError,
    InvalidPermissionName,
    PermissionCatalogError,
    ResourceOutOfScope,
)
from .filters import MatchNothing, OrganizationSet, OwnerOnly, ScopeFilter, ScopePredicate, Unrestricted
from .hierarchy import HierarchyCache, HierarchyIntegrityWarning, OrganizationHierarchy, OrganizationRecord

__all__ = [
    "AccessDenied",
    "AccessScope",
    "AnalyticsOrganizationResolver",
    "AuthorizationError",
    "ContextLoadTimeout",
    "HierarchyCache",
    "HierarchyIntegrityError",
    "HierarchyIntegrityWarning",
    "InvalidPermissionName",
    "MatchNothing",
    "OrganizationHierarchy",
    "OrganizationMembership",
    "OrganizationRecord",
    "OrganizationSet",
    "OwnerOnly",
    "Permission",
    "PermissionCatalog",
    "PermissionCatalogError",
    "PermissionChecker",
    "PermissionRecord",
    "PracticeFilter",
    "PracticeMapping",
    "ResourceOutOfScope",
    "RoleAssignment",
    "RoleRecord",
    "ScopeFilter",
    "ScopePredicate",
    "StaticPracticeMapping",
    "Unrestricted",
    "UserContext",
    "build_user_context",
    "load_permission_catalog",
]
