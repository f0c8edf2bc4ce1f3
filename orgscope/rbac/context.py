from __future__ import annotations

from dataclasses import dataclass, field

from .catalog import Permission


@dataclass(frozen=True)
class UserContext:
    """
    Immutable per-request authorization snapshot for one principal.

    Built once by ``build_user_context`` and shared read-only by the permission
    checker, the scope filter and every service that handles the request. Every
    collection is a frozenset, so a cached context can be read from many threads
    without locking.
    """

    user_id: str
    is_super_admin: bool = False
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    # Direct memberships, the subset the user administers, and memberships plus descendants.
    organization_ids: frozenset[str] = field(default_factory=frozenset)
    admin_organization_ids: frozenset[str] = field(default_factory=frozenset)
    accessible_organization_ids: frozenset[str] = field(default_factory=frozenset)

    current_organization_id: str | None = None
    provider_uid: int | None = None

    @classmethod
    def empty(cls, user_id: str) -> UserContext:
        """A context that grants nothing."""
        return cls(user_id=user_id)

    @property
    def permission_names(self) -> frozenset[str]:
        return frozenset(p.name for p in self.permissions)

    def to_dict(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "is_super_admin": self.is_super_admin,
            "permissions": sorted(self.permission_names),
            "organization_ids": sorted(self.organization_ids),
            "admin_organization_ids": sorted(self.admin_organization_ids),
            "accessible_organization_ids": sorted(self.accessible_organization_ids),
            "current_organization_id": self.current_organization_id,
            "provider_uid": self.provider_uid,
        }
