"""
Analytics organization resolver.

Analytics rows are keyed by practice (``practice_uid``) and provider
(``provider_uid``), not by organization. This module turns the user's analytics scope
plus an optional organization or practice request into a ``PracticeFilter``.

Key ideas:
- Only scope ``all`` may skip practice filtering.
- An organization request expands to the organization's descendants before mapping.
- An empty resolved practice set is an explicit ``empty`` marker that must compile
  to zero rows. It is never confused with "no filter".
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Literal, Mapping, Protocol

from .audit import log_security_event
from .catalog import AccessScope
from .checker import PermissionChecker
from .errors import AccessDenied
from .hierarchy import OrganizationHierarchy

logger = logging.getLogger(__name__)

ANALYTICS_RESOURCE = "analytics"
ANALYTICS_ACTION = "read"


# ---- Filter result -------------------------------------------------------------------


@dataclass(frozen=True)
class PracticeFilter:
    kind: Literal["unrestricted", "practices", "provider", "empty"]
    practice_uids: frozenset[int] = frozenset()
    provider_uid: int | None = None
    reason: str | None = None

    @classmethod
    def unrestricted(cls) -> PracticeFilter:
        return cls(kind="unrestricted")

    @classmethod
    def practices(cls, practice_uids: Iterable[int]) -> PracticeFilter:
        return cls(kind="practices", practice_uids=frozenset(practice_uids))

    @classmethod
    def provider(cls, provider_uid: int) -> PracticeFilter:
        return cls(kind="provider", provider_uid=provider_uid)

    @classmethod
    def empty(cls, reason: str) -> PracticeFilter:
        return cls(kind="empty", reason=reason)

    @property
    def is_empty(self) -> bool:
        return self.kind == "empty"

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"kind": self.kind}
        if self.kind == "practices":
            data["practice_uids"] = sorted(self.practice_uids)
        elif self.kind == "provider":
            data["provider_uid"] = self.provider_uid
        elif self.kind == "empty":
            data["reason"] = self.reason
        return data


# ---- Organization -> practice mapping ------------------------------------------------


class PracticeMapping(Protocol):
    def practices_for(self, organization_ids: Iterable[str]) -> Mapping[str, frozenset[int]]:
        """Practice ids per organization; organizations with none may be omitted."""
        ...


class StaticPracticeMapping:
    """In-memory mapping, for tests and fixed deployments."""

    def __init__(self, mapping: Mapping[str, Iterable[int]]) -> None:
        self._mapping = {org_id: frozenset(uids) for org_id, uids in mapping.items()}

    def practices_for(self, organization_ids: Iterable[str]) -> Mapping[str, frozenset[int]]:
        return {org_id: self._mapping[org_id] for org_id in organization_ids if org_id in self._mapping}


# ---- Resolver ------------------------------------------------------------------------


class AnalyticsOrganizationResolver:
    """
    Usage:
        resolver = AnalyticsOrganizationResolver(hierarchy, SqlPracticeMapping(db))
        practice_filter = resolver.resolve(checker, organization_id="org-1")
    """

    def __init__(self, hierarchy: OrganizationHierarchy, mapping: PracticeMapping) -> None:
        self._hierarchy = hierarchy
        self._mapping = mapping

    def resolve(
        self,
        checker: PermissionChecker,
        organization_id: str | None = None,
        practice_uids: Iterable[int] | None = None,
    ) -> PracticeFilter:
        """
        Resolve the practice filter for an analytics read.

        Raises AccessDenied when the user holds no analytics scope (or holds ``own``
        and asks for an organization or practice filter), and ResourceOutOfScope when
        an organization-scoped user asks for an organization they cannot see.
        """

        scope = checker.get_access_scope(ANALYTICS_RESOURCE, ANALYTICS_ACTION)
        requested = frozenset(practice_uids) if practice_uids is not None else None
        context = checker.context

        if scope is AccessScope.ALL:
            if organization_id is None and requested is None:
                return PracticeFilter.unrestricted()
            if organization_id is None:
                return self._finalize(checker, requested or frozenset(), "no_practices_requested")
            practices = self._practices_for(self._hierarchy.descendants_of(organization_id))
            if requested is not None:
                practices &= requested
            return self._finalize(checker, practices, "no_practices_for_organization", organization_id)

        if scope is AccessScope.ORGANIZATION:
            if organization_id is not None:
                checker.require_organization_access(organization_id, f"{ANALYTICS_RESOURCE}:{ANALYTICS_ACTION}")
                organizations = self._hierarchy.descendants_of(organization_id) & context.accessible_organization_ids
                reason = "no_practices_for_organization"
            else:
                organizations = context.accessible_organization_ids
                reason = "no_accessible_practices"
            practices = self._practices_for(organizations)
            if requested is not None:
                practices &= requested
            return self._finalize(checker, practices, reason, organization_id)

        # Own scope: providers see only their own rows and may not widen with filters.
        if organization_id is not None or requested is not None:
            logger.info("RBAC: own-scope analytics filter rejected user_id=%s", checker.user_id)
            raise AccessDenied(
                f"{ANALYTICS_RESOURCE}:{ANALYTICS_ACTION}:{AccessScope.ORGANIZATION.value}",
                resource_id=organization_id,
                reason="own_scope_filter",
            )
        if context.provider_uid is None:
            log_security_event("analytics_empty_filter", "high", user_id=checker.user_id, reason="no_provider_uid")
            return PracticeFilter.empty("no_provider_uid")
        return PracticeFilter.provider(context.provider_uid)

    def _practices_for(self, organization_ids: Iterable[str]) -> frozenset[int]:
        found: set[int] = set()
        for uids in self._mapping.practices_for(organization_ids).values():
            found.update(uids)
        return frozenset(found)

    def _finalize(
        self,
        checker: PermissionChecker,
        practices: frozenset[int],
        reason: str,
        organization_id: str | None = None,
    ) -> PracticeFilter:
        if not practices:
            log_security_event(
                "analytics_empty_filter",
                "high",
                user_id=checker.user_id,
                organization_id=organization_id,
                reason=reason,
            )
            return PracticeFilter.empty(reason)
        return PracticeFilter.practices(practices)
