"""Exception taxonomy for authorization decisions and configuration."""

from __future__ import annotations


class AuthorizationError(Exception):
    """
    Base class for authorization failures raised at service boundaries.

    ``permission`` and ``resource_id`` are kept for audit logging only. ``str(exc)``
    and ``public_message`` are safe to return to a client: they never name other
    tenants' organizations or resources.
    """

    public_message = "Forbidden"

    def __init__(self, permission: str, resource_id: str | None = None, reason: str | None = None) -> None:
        super().__init__(self.public_message)
        self.permission = permission
        self.resource_id = resource_id
        self.reason = reason

    def audit_fields(self) -> dict[str, object]:
        return {
            "error": type(self).__name__,
            "permission": self.permission,
            "resource_id": self.resource_id,
            "reason": self.reason,
        }


class AccessDenied(AuthorizationError):
    """User holds no permission at all for the resource+action (HTTP 403)."""


class ResourceOutOfScope(AuthorizationError):
    """
    User holds a scope for the action, but the specific resource lies outside it.

    Surfaced as "not found" so the existence of another tenant's resource is never
    confirmed.
    """

    public_message = "Not found"


class InvalidPermissionName(ValueError):
    """Raised when a string does not follow the ``resource:action:scope`` grammar."""


class PermissionCatalogError(ValueError):
    """Raised when the permission catalog YAML is invalid."""


class HierarchyIntegrityError(ValueError):
    """Raised when a proposed parent/child edit would break the organization tree."""


class ContextLoadTimeout(TimeoutError):
    """Raised when loading a user context runs past the caller's deadline."""
