from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from orgscope.models.security import Organization
from orgscope.rbac.audit import log_security_event
from orgscope.rbac.catalog import AccessScope
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.errors import ResourceOutOfScope
from orgscope.rbac.hierarchy import HierarchyCache, OrganizationTreeNode

logger = logging.getLogger(__name__)

RESOURCE = "organizations"


class OrganizationService:
    def __init__(self, db: Session, checker: PermissionChecker, hierarchy_cache: HierarchyCache) -> None:
        self._db = db
        self._checker = checker
        self._cache = hierarchy_cache

    def tree(self) -> tuple[OrganizationTreeNode, ...]:
        """
        Organization tree visible to the user.

        Scope ``all`` sees every root. Scope ``organization`` sees one subtree per
        accessible organization whose parent is not itself accessible.
        """

        scope = self._checker.require_scope(RESOURCE, "read", AccessScope.ORGANIZATION)
        hierarchy = self._cache.get()
        if scope is AccessScope.ALL:
            return hierarchy.tree()

        accessible = self._checker.context.accessible_organization_ids
        roots = sorted(org_id for org_id in accessible if hierarchy.parent_of(org_id) not in accessible)
        nodes: list[OrganizationTreeNode] = []
        for root in roots:
            nodes.extend(hierarchy.tree(root))
        return tuple(nodes)

    def set_parent(self, organization_id: str, new_parent_id: str | None) -> Organization:
        """
        Move ``organization_id`` under ``new_parent_id`` (or make it a root).

        Raises HierarchyIntegrityError if the move would create a cycle or the parent is
        unusable.
        """

        self._checker.require_permission(f"{RESOURCE}:update:all", resource_id=organization_id)
        org = self._db.get(Organization, organization_id)
        if org is None:
            raise ResourceOutOfScope(f"{RESOURCE}:update:all", resource_id=organization_id, reason="not_found")

        # The cached snapshot may lag behind other writers by up to the TTL.
        self._cache.refresh().validate_parent(organization_id, new_parent_id)

        previous = org.parent_organization_id
        org.parent_organization_id = new_parent_id
        self._db.commit()
        self._cache.invalidate()

        log_security_event(
            "organization_reparented",
            "medium",
            user_id=self._checker.user_id,
            organization_id=organization_id,
            previous_parent=previous,
            new_parent=new_parent_id,
        )
        return org
