"""
Scope-aware query predicates.

``ScopeFilter.resolve`` turns an ``AccessScope`` into one of four predicate shapes
that the persistence layer must apply. It fails closed: an organization scope with
nothing to restrict to becomes ``MatchNothing``, never ``Unrestricted``.

Compilation to SQL lives in ``orgscope.db.filters``; this module stays pure.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import ClassVar, Union

from .audit import log_security_event
from .catalog import AccessScope
from .checker import PermissionChecker
from .context import UserContext

logger = logging.getLogger(__name__)


# ---- Predicates ----------------------------------------------------------------------


@dataclass(frozen=True)
class Unrestricted:
    kind: ClassVar[str] = "unrestricted"

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind}


@dataclass(frozen=True)
class OrganizationSet:
    ids: frozenset[str]
    kind: ClassVar[str] = "organizationSet"

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "ids": sorted(self.ids)}


@dataclass(frozen=True)
class OwnerOnly:
    user_id: str
    kind: ClassVar[str] = "ownerOnly"

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "userId": self.user_id}


@dataclass(frozen=True)
class MatchNothing:
    reason: str = "no_access"
    kind: ClassVar[str] = "matchNothing"

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "reason": self.reason}


ScopePredicate = Union[Unrestricted, OrganizationSet, OwnerOnly, MatchNothing]


# ---- Resolution ----------------------------------------------------------------------


class ScopeFilter:
    """Stateless resolver from (scope, context) to a row predicate."""

    @staticmethod
    def resolve(scope: AccessScope, context: UserContext) -> ScopePredicate:
        if scope is AccessScope.ALL:
            return Unrestricted()

        if scope is AccessScope.ORGANIZATION:
            ids = context.accessible_organization_ids
            if not ids or context.current_organization_id is None:
                log_security_event(
                    "ambiguous_scope",
                    "high",
                    user_id=context.user_id,
                    scope=scope.value,
                    accessible=len(ids),
                    current_organization_id=context.current_organization_id,
                )
                return MatchNothing("ambiguous_scope")
            return OrganizationSet(ids)

        if scope is AccessScope.OWN:
            if not context.user_id:
                log_security_event("ambiguous_scope", "high", scope=scope.value, reason="missing_user_id")
                return MatchNothing("ambiguous_scope")
            return OwnerOnly(context.user_id)

        logger.debug("Scope none resolves to match-nothing user_id=%s", context.user_id)
        return MatchNothing("no_access")

    @classmethod
    def resolve_for(cls, checker: PermissionChecker, resource: str, action: str) -> ScopePredicate:
        """
        Resolve the predicate for ``resource:action``.

        Raises AccessDenied (from ``get_access_scope``) when the user holds no scope, so
        a denied user never gets a predicate at all.
        """

        scope = checker.get_access_scope(resource, action)
        return cls.resolve(scope, checker.context)
