"""
Permission checker: pure evaluator over one ``UserContext``.

Key ideas:
- Constructed per request; never mutates the context, so it is safe to share across
  threads handling the same request.
- Super-admin is checked first and short-circuits to scope ``all``; every bypass is
  written to the audit log.
- For one resource+action the widest held scope wins, and a wider scope satisfies a
  request for a narrower one. In ``has_permission`` a ``manage`` grant also satisfies
  every other action on its resource; ``get_access_scope`` stays exact-action.

Organization-scoped checks without an ``organization_id`` are evaluated against the
current organization and fail closed when there is none. Callers that touch a
specific resource still go through ``orgscope.services.base.verify_resource_access``,
which checks the resource's own organization.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .audit import log_security_event
from .catalog import AccessScope, Permission
from .context import UserContext
from .errors import AccessDenied, InvalidPermissionName, ResourceOutOfScope

logger = logging.getLogger(__name__)

MANAGE_ACTION = "manage"


class PermissionChecker:
    """
    Usage:
        checker = PermissionChecker(context)
        scope = checker.get_access_scope("work-items", "read")
    """

    def __init__(self, context: UserContext) -> None:
        self._context = context
        index: dict[tuple[str, str], set[AccessScope]] = {}
        for permission in context.permissions:
            index.setdefault(permission.key, set()).add(permission.scope)
        self._scopes = {key: frozenset(scopes) for key, scopes in index.items()}

    @property
    def context(self) -> UserContext:
        return self._context

    @property
    def user_id(self) -> str:
        return self._context.user_id

    # ---- Identity flags ----------------------------------------------------------------

    def is_super_admin(self) -> bool:
        return self._context.is_super_admin

    def is_organization_admin(self, organization_id: str | None = None) -> bool:
        """Admin of ``organization_id``, or of the current organization when omitted."""
        if self._context.is_super_admin:
            return True
        target = organization_id or self._context.current_organization_id
        if target is None:
            return False
        return target in self._context.admin_organization_ids

    def current_organization(self) -> str | None:
        return self._context.current_organization_id

    def can_access_organization(self, organization_id: str) -> bool:
        if self._context.is_super_admin:
            return True
        return organization_id in self._context.accessible_organization_ids

    def get_all_permissions(self) -> frozenset[str]:
        return self._context.permission_names

    # ---- Scope resolution --------------------------------------------------------------

    def _widest_scope(self, resource: str, action: str) -> AccessScope:
        return AccessScope.widest(self._scopes.get((resource, action), ()))

    def get_access_scope(self, resource: str, action: str) -> AccessScope:
        """
        Widest scope held for ``resource:action``.

        Raises AccessDenied when no scope is held at all; ``AccessScope.NONE`` is never
        returned.
        """

        if self._context.is_super_admin:
            self._audit_bypass(f"{resource}:{action}")
            return AccessScope.ALL
        scope = self._widest_scope(resource, action)
        if scope is AccessScope.NONE:
            logger.info("RBAC: no scope user_id=%s resource=%s action=%s", self.user_id, resource, action)
            raise AccessDenied(f"{resource}:{action}", reason="no_permission")
        return scope

    def can_access_resource(self, resource: str, action: str) -> bool:
        if self._context.is_super_admin:
            return True
        return self._widest_scope(resource, action) is not AccessScope.NONE

    def require_scope(self, resource: str, action: str, minimum: AccessScope) -> AccessScope:
        """Return the held scope, raising AccessDenied when it is narrower than ``minimum``."""
        scope = self.get_access_scope(resource, action)
        if not scope.covers(minimum):
            logger.info(
                "RBAC: scope too narrow user_id=%s resource=%s action=%s held=%s required=%s",
                self.user_id,
                resource,
                action,
                scope.value,
                minimum.value,
            )
            raise AccessDenied(f"{resource}:{action}:{minimum.value}", reason="scope_too_narrow")
        return scope

    # ---- Boolean checks ----------------------------------------------------------------

    def has_permission(
        self,
        name: str,
        resource_id: str | None = None,
        organization_id: str | None = None,
    ) -> bool:
        if self._context.is_super_admin:
            self._audit_bypass(name, resource_id=resource_id, organization_id=organization_id)
            return True

        try:
            requested = Permission.parse(name)
        except InvalidPermissionName as exc:
            logger.warning("RBAC: malformed permission checked user_id=%s error=%s", self.user_id, exc)
            return False

        # A held ``manage`` grant satisfies every action on the same resource.
        held = AccessScope.widest(
            [
                *self._scopes.get((requested.resource, requested.action), ()),
                *self._scopes.get((requested.resource, MANAGE_ACTION), ()),
            ]
        )
        if held is AccessScope.NONE or not held.covers(requested.scope):
            return False

        if held is AccessScope.ORGANIZATION:
            target = organization_id if organization_id is not None else self._context.current_organization_id
            if target is None:
                log_security_event(
                    "ambiguous_scope",
                    "high",
                    user_id=self.user_id,
                    permission=name,
                    resource_id=resource_id,
                    reason="no_organization_context",
                )
                return False
            if target not in self._context.accessible_organization_ids:
                if organization_id is None:
                    log_security_event(
                        "ambiguous_scope",
                        "high",
                        user_id=self.user_id,
                        permission=name,
                        resource_id=resource_id,
                        current_organization_id=target,
                        reason="current_organization_not_accessible",
                    )
                else:
                    logger.info(
                        "RBAC: organization outside scope user_id=%s permission=%s resource_id=%s",
                        self.user_id,
                        name,
                        resource_id,
                    )
                return False
        return True

    def has_any_permission(
        self,
        names: Iterable[str],
        resource_id: str | None = None,
        organization_id: str | None = None,
    ) -> bool:
        return any(self.has_permission(n, resource_id, organization_id) for n in names)

    def has_all_permissions(
        self,
        names: Iterable[str],
        resource_id: str | None = None,
        organization_id: str | None = None,
    ) -> bool:
        names = list(names)
        if not names:
            return False
        return all(self.has_permission(n, resource_id, organization_id) for n in names)

    # ---- Raising variants --------------------------------------------------------------

    def require_permission(
        self,
        name: str,
        resource_id: str | None = None,
        organization_id: str | None = None,
    ) -> None:
        if not self.has_permission(name, resource_id, organization_id):
            raise AccessDenied(name, resource_id=resource_id, reason="permission_missing")

    def require_organization_access(self, organization_id: str, permission: str = "organizations:read") -> None:
        if not self.can_access_organization(organization_id):
            log_security_event(
                "organization_out_of_scope",
                "medium",
                user_id=self.user_id,
                organization_id=organization_id,
            )
            raise ResourceOutOfScope(permission, resource_id=organization_id, reason="organization_not_accessible")

    # ---- Internals ---------------------------------------------------------------------

    def _audit_bypass(self, permission: str, **fields: object) -> None:
        log_security_event(
            "super_admin_bypass",
            "low",
            user_id=self.user_id,
            permission=permission,
            **{k: v for k, v in fields.items() if v is not None},
        )
