"""
Permission catalog: the fixed ``resource:action:scope`` vocabulary.

Key ideas:
- A permission name is parsed once into a ``Permission`` triple; the triple's ``name``
  property is the canonical formatter.
- The catalog YAML is loaded and validated at startup, so malformed names never reach
  the checker.
- Scopes are totally ordered: all > organization > own > none.

This module has no FastAPI or SQLAlchemy dependency.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator
import yaml

from .errors import InvalidPermissionName, PermissionCatalogError

logger = logging.getLogger(__name__)


# ---- Scopes and permission names ------------------------------------------------------


class AccessScope(str, Enum):
    """Breadth of data a granted permission exposes."""

    NONE = "none"
    OWN = "own"
    ORGANIZATION = "organization"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _SCOPE_RANK[self]

    def covers(self, other: AccessScope) -> bool:
        """True if this scope is at least as wide as ``other``."""
        return self.rank >= other.rank

    @classmethod
    def widest(cls, scopes: Iterable[AccessScope]) -> AccessScope:
        return max(scopes, key=lambda s: s.rank, default=cls.NONE)


_SCOPE_RANK: dict[AccessScope, int] = {
    AccessScope.NONE: 0,
    AccessScope.OWN: 1,
    AccessScope.ORGANIZATION: 2,
    AccessScope.ALL: 3,
}

# Scopes that may appear in a permission name; "none" is a computed result only.
GRANTABLE_SCOPES: tuple[AccessScope, ...] = (AccessScope.OWN, AccessScope.ORGANIZATION, AccessScope.ALL)


@dataclass(frozen=True, order=True)
class Permission:
    """Structured ``resource:action:scope`` triple."""

    resource: str
    action: str
    scope: AccessScope

    @property
    def name(self) -> str:
        return f"{self.resource}:{self.action}:{self.scope.value}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.resource, self.action)

    def with_scope(self, scope: AccessScope) -> Permission:
        return Permission(self.resource, self.action, scope)

    @classmethod
    def parse(cls, name: str) -> Permission:
        """
        Parse a permission name.

        Example:
            work-items:read:own  ->  Permission("work-items", "read", AccessScope.OWN)
        """

        if not isinstance(name, str):
            raise InvalidPermissionName(f"permission name must be a string, got {type(name).__name__}")
        tokens = name.split(":")
        if len(tokens) != 3:
            raise InvalidPermissionName(f"{name!r} must have exactly three tokens (resource:action:scope)")
        if any(not token or token != token.strip() for token in tokens):
            raise InvalidPermissionName(f"{name!r} has an empty or padded token")
        resource, action, scope_raw = tokens
        try:
            scope = AccessScope(scope_raw)
        except ValueError:
            scope = None
        if scope not in GRANTABLE_SCOPES:
            raise InvalidPermissionName(f"{name!r} has unknown scope {scope_raw!r}")
        return cls(resource=resource, action=action, scope=scope)

    @classmethod
    def scoped_names(cls, resource: str, action: str) -> tuple[str, ...]:
        """All three grantable names for a resource+action, narrowest first."""
        return tuple(cls(resource, action, scope).name for scope in GRANTABLE_SCOPES)

    def __str__(self) -> str:
        return self.name


# ---- YAML model -----------------------------------------------------------------------


class PermissionEntry(BaseModel):
    name: str
    description: str | None = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        Permission.parse(value)
        return value


class RoleEntry(BaseModel):
    description: str | None = None
    system: bool = False
    permissions: list[str] = Field(default_factory=list)


class CatalogModel(BaseModel):
    super_admin_role: str = "super_admin"
    organization_admin_roles: list[str] = Field(default_factory=lambda: ["organization_admin"])
    permissions: list[PermissionEntry] = Field(default_factory=list)
    roles: dict[str, RoleEntry] = Field(default_factory=dict)


@dataclass(frozen=True)
class PermissionDef:
    """Catalog entry for one permission."""

    permission: Permission
    description: str | None = None
    is_active: bool = True

    @property
    def name(self) -> str:
        return self.permission.name


@dataclass(frozen=True)
class RoleDef:
    """Catalog role: a named bundle of permission names."""

    name: str
    permissions: frozenset[str]
    system: bool = False
    description: str | None = None


# ---- Runtime catalog ------------------------------------------------------------------


class PermissionCatalog:
    """
    Validated, read-only permission vocabulary plus the seed role definitions.

    Usage:
        catalog = load_permission_catalog(Path("config/rbac_catalog.yaml"))
        catalog.require("work-items:read:own")
    """

    def __init__(self, model: CatalogModel) -> None:
        permissions: dict[str, PermissionDef] = {}
        for entry in model.permissions:
            if entry.name in permissions:
                raise PermissionCatalogError(f"duplicate permission {entry.name!r}")
            permissions[entry.name] = PermissionDef(
                permission=Permission.parse(entry.name),
                description=entry.description,
                is_active=entry.is_active,
            )

        roles: dict[str, RoleDef] = {}
        for role_name, role in model.roles.items():
            unknown = set(role.permissions).difference(permissions)
            if unknown:
                raise PermissionCatalogError(f"role {role_name!r} references unknown permissions: {sorted(unknown)}")
            roles[role_name] = RoleDef(
                name=role_name,
                permissions=frozenset(role.permissions),
                system=role.system,
                description=role.description,
            )

        super_admin = roles.get(model.super_admin_role)
        if super_admin is None or not super_admin.system:
            raise PermissionCatalogError(f"super admin role {model.super_admin_role!r} must be a defined system role")
        missing_admin_roles = set(model.organization_admin_roles).difference(roles)
        if missing_admin_roles:
            raise PermissionCatalogError(f"unknown organization admin roles: {sorted(missing_admin_roles)}")

        self._permissions = permissions
        self._roles = roles
        self._super_admin_role = model.super_admin_role
        self._organization_admin_roles = frozenset(model.organization_admin_roles)

    @property
    def super_admin_role(self) -> str:
        return self._super_admin_role

    @property
    def organization_admin_roles(self) -> frozenset[str]:
        return self._organization_admin_roles

    @property
    def permissions(self) -> Mapping[str, PermissionDef]:
        return dict(self._permissions)

    @property
    def roles(self) -> Mapping[str, RoleDef]:
        return dict(self._roles)

    def get(self, name: str) -> PermissionDef | None:
        return self._permissions.get(name)

    def require(self, name: str) -> Permission:
        """Return the parsed permission, raising if the catalog does not define it."""
        entry = self._permissions.get(name)
        if entry is None:
            raise PermissionCatalogError(f"permission {name!r} is not in the catalog")
        return entry.permission

    def scoped_permissions(self, resource: str, action: str) -> tuple[Permission, ...]:
        """Catalog permissions for a resource+action, narrowest scope first."""
        found = [d.permission for d in self._permissions.values() if d.permission.key == (resource, action)]
        return tuple(sorted(found, key=lambda p: p.scope.rank))

    def resources(self) -> frozenset[str]:
        return frozenset(d.permission.resource for d in self._permissions.values())

    def role_permissions(self, role_name: str) -> frozenset[Permission]:
        role = self._roles.get(role_name)
        if role is None:
            return frozenset()
        return frozenset(self._permissions[name].permission for name in role.permissions)


def load_permission_catalog(path: Path) -> PermissionCatalog:
    """
    Load and validate the catalog YAML.

    Expected shape (simplified):

        rbac:
          super_admin_role: super_admin
          organization_admin_roles: [organization_admin]
          permissions:
            - name: work-items:read:own
              description: Read own work items
          roles:
            super_admin:
              system: true
            staff:
              permissions: [work-items:read:own]
    """

    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "rbac" not in raw:
        raise PermissionCatalogError(f"Missing top-level 'rbac' key in catalog: {path}")

    try:
        model = CatalogModel.model_validate(raw["rbac"])
    except ValidationError as exc:
        raise PermissionCatalogError(f"invalid permission catalog {path}: {exc}") from exc

    catalog = PermissionCatalog(model)
    logger.debug(
        "Permission catalog loaded path=%s permissions=%d roles=%d",
        path,
        len(catalog.permissions),
        len(catalog.roles),
    )
    return catalog
