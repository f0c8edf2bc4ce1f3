from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgscope.db.filters import scope_bound
from orgscope.models.work import WorkItem
from orgscope.rbac.catalog import AccessScope
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.errors import AccessDenied, ResourceOutOfScope
from orgscope.rbac.filters import ScopeFilter
from orgscope.services.base import ResourceRef, verify_resource_access

logger = logging.getLogger(__name__)

RESOURCE = "work-items"


def _ref(item: WorkItem) -> ResourceRef:
    return ResourceRef(item.work_item_id, item.organization_id, item.created_by)


class WorkItemService:
    def __init__(self, db: Session, checker: PermissionChecker) -> None:
        self._db = db
        self._checker = checker

    def list(self, status: str | None = None) -> list[WorkItem]:
        predicate = ScopeFilter.resolve_for(self._checker, RESOURCE, "read")
        stmt = select(WorkItem)
        if status is not None:
            stmt = stmt.where(WorkItem.status == status)
        # Scope comes from the session-level filter, not from this statement.
        with scope_bound(self._db, WorkItem, predicate):
            return list(self._db.scalars(stmt.order_by(WorkItem.created_at, WorkItem.work_item_id)).all())

    def get(self, work_item_id: str) -> WorkItem:
        return self._load(work_item_id, "read")

    def update_status(self, work_item_id: str, status: str) -> WorkItem:
        item = self._load(work_item_id, "update")
        item.status = status
        self._db.commit()
        logger.info("Work item status changed work_item_id=%s status=%s user_id=%s", work_item_id, status, self._checker.user_id)
        return item

    def create(self, subject: str, organization_id: str | None = None, description: str | None = None) -> WorkItem:
        scope = self._checker.get_access_scope(RESOURCE, "create")
        target = organization_id or self._checker.current_organization()
        if target is None:
            raise AccessDenied(f"{RESOURCE}:create", reason="no_current_organization")
        if scope is not AccessScope.ALL:
            # Own scope creates only inside the user's direct memberships.
            if scope is AccessScope.OWN:
                allowed = target in self._checker.context.organization_ids
            else:
                allowed = self._checker.can_access_organization(target)
            if not allowed:
                raise ResourceOutOfScope(f"{RESOURCE}:create:{scope.value}", resource_id=target, reason="outside_scope")

        item = WorkItem(
            work_item_id=str(uuid.uuid4()),
            organization_id=target,
            created_by=self._checker.user_id,
            subject=subject,
            description=description,
        )
        self._db.add(item)
        self._db.commit()
        logger.info("Work item created work_item_id=%s organization_id=%s", item.work_item_id, target)
        return item

    def _load(self, work_item_id: str, action: str) -> WorkItem:
        # Permission first: a user with no scope gets 403 even for ids that do not exist.
        self._checker.get_access_scope(RESOURCE, action)
        item = self._db.get(WorkItem, work_item_id)
        if item is None:
            raise ResourceOutOfScope(f"{RESOURCE}:{action}", resource_id=work_item_id, reason="not_found")
        verify_resource_access(self._checker, RESOURCE, action, _ref(item))
        return item
