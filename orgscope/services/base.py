"""
Scoped service helpers.

Services get a ``PermissionChecker`` through their constructor and call these
functions explicitly before touching storage:

- ``scoped_select`` for list queries (scope -> predicate -> WHERE clause);
- ``verify_resource_access`` before reading or changing one specific row.

The second call re-checks the row's own organization or owner, so holding
organization scope for org A never reaches a row in org B found by guessing its id.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from sqlalchemy import Select, select

from orgscope.db.filters import apply_scope
from orgscope.rbac.audit import log_security_event
from orgscope.rbac.catalog import AccessScope
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.errors import ResourceOutOfScope
from orgscope.rbac.filters import ScopeFilter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceRef:
    """The facts about one row that scope decisions depend on."""

    resource_id: str
    organization_id: str | None
    owner_id: str | None = None


def verify_resource_access(checker: PermissionChecker, resource: str, action: str, ref: ResourceRef) -> AccessScope:
    """
    Return the scope under which ``ref`` may be accessed.

    Raises AccessDenied when no scope is held for ``resource:action`` and
    ResourceOutOfScope when a scope is held but does not reach this row.
    """

    scope = checker.get_access_scope(resource, action)

    if scope is AccessScope.ALL:
        return scope
    if (
        scope.covers(AccessScope.ORGANIZATION)
        and ref.organization_id is not None
        and checker.can_access_organization(ref.organization_id)
    ):
        return AccessScope.ORGANIZATION
    if scope.covers(AccessScope.OWN) and ref.owner_id is not None and ref.owner_id == checker.user_id:
        return AccessScope.OWN

    log_security_event(
        "resource_out_of_scope",
        "medium",
        user_id=checker.user_id,
        permission=f"{resource}:{action}:{scope.value}",
        resource_id=ref.resource_id,
    )
    raise ResourceOutOfScope(f"{resource}:{action}:{scope.value}", resource_id=ref.resource_id, reason="outside_scope")


def scoped_select(checker: PermissionChecker, model: Any, resource: str, action: str) -> Select:
    """``select(model)`` restricted to the rows the user may see for ``resource:action``."""
    predicate = ScopeFilter.resolve_for(checker, resource, action)
    logger.debug("Scoped select model=%s user_id=%s predicate=%s", model.__name__, checker.user_id, predicate.kind)
    return apply_scope(select(model), model, predicate)
