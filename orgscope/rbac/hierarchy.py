"""
Organization hierarchy resolution.

A parent organization's visibility extends to all of its descendants; children never
see their parents or siblings. ``OrganizationHierarchy`` is an immutable snapshot built
from organization rows, so it can be shared across requests without locking.

Traversal is breadth-first with a visited set: it stays O(nodes + edges) and terminates
even when a cycle was introduced into the data by accident. Cycles and dangling parent
references are reported as ``HierarchyIntegrityWarning`` records and logged.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import threading
import time
from typing import Callable, Iterable, Literal

from .errors import HierarchyIntegrityError

logger = logging.getLogger(__name__)


# ---- Data structures -----------------------------------------------------------------


@dataclass(frozen=True)
class OrganizationRecord:
    """One organization row, as supplied by the persistence layer."""

    organization_id: str
    parent_organization_id: str | None = None
    is_active: bool = True
    name: str | None = None


@dataclass(frozen=True)
class HierarchyIntegrityWarning:
    """A cycle or dangling parent reference found in organization data."""

    kind: Literal["cycle", "dangling_parent"]
    organization_id: str
    related_id: str | None = None


@dataclass(frozen=True)
class OrganizationTreeNode:
    organization: OrganizationRecord
    depth: int
    children: tuple[OrganizationTreeNode, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "organization_id": self.organization.organization_id,
            "name": self.organization.name,
            "depth": self.depth,
            "children": [child.to_dict() for child in self.children],
        }


# ---- Snapshot ------------------------------------------------------------------------


class OrganizationHierarchy:
    """
    Immutable parent/child index over a set of organizations.

    Inactive organizations stay in the index (so they are not mistaken for unknown ids)
    but are never traversed into.
    """

    def __init__(self, organizations: Iterable[OrganizationRecord]) -> None:
        nodes: dict[str, OrganizationRecord] = {}
        for org in organizations:
            if org.organization_id in nodes:
                logger.warning("Duplicate organization row ignored organization_id=%s", org.organization_id)
                continue
            nodes[org.organization_id] = org

        children: dict[str, list[str]] = {}
        for org in nodes.values():
            if org.parent_organization_id is not None and org.is_active:
                children.setdefault(org.parent_organization_id, []).append(org.organization_id)

        self._nodes = nodes
        self._children = {parent: tuple(sorted(ids)) for parent, ids in children.items()}
        self._warnings = tuple(self._detect_integrity_issues())
        for warning in self._warnings:
            logger.warning(
                "Hierarchy integrity warning kind=%s organization_id=%s related_id=%s",
                warning.kind,
                warning.organization_id,
                warning.related_id,
            )

    def _detect_integrity_issues(self) -> list[HierarchyIntegrityWarning]:
        issues: list[HierarchyIntegrityWarning] = []
        for org in self._nodes.values():
            parent = org.parent_organization_id
            if parent is not None and parent not in self._nodes:
                issues.append(HierarchyIntegrityWarning("dangling_parent", org.organization_id, parent))

        done: set[str] = set()
        for start in self._nodes:
            path: list[str] = []
            on_path: set[str] = set()
            current: str | None = start
            while current is not None and current in self._nodes and current not in done:
                if current in on_path:
                    issues.append(
                        HierarchyIntegrityWarning("cycle", current, self._nodes[current].parent_organization_id)
                    )
                    break
                on_path.add(current)
                path.append(current)
                current = self._nodes[current].parent_organization_id
            done.update(path)
        return issues

    # ---- Lookup ----------------------------------------------------------------------

    def __contains__(self, organization_id: object) -> bool:
        return organization_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def integrity_warnings(self) -> tuple[HierarchyIntegrityWarning, ...]:
        return self._warnings

    @property
    def organization_ids(self) -> frozenset[str]:
        return frozenset(self._nodes)

    def get(self, organization_id: str) -> OrganizationRecord | None:
        return self._nodes.get(organization_id)

    def is_active(self, organization_id: str) -> bool:
        org = self._nodes.get(organization_id)
        return org is not None and org.is_active

    def parent_of(self, organization_id: str) -> str | None:
        org = self._nodes.get(organization_id)
        return org.parent_organization_id if org else None

    def children_of(self, organization_id: str) -> tuple[str, ...]:
        """Direct active children only."""
        return self._children.get(organization_id, ())

    # ---- Traversal -------------------------------------------------------------------

    def descendants_of(self, organization_id: str) -> frozenset[str]:
        """
        Return ``organization_id`` plus every active organization below it.

        An unknown id is a terminal node (the singleton set); a known but inactive
        organization yields the empty set.
        """

        org = self._nodes.get(organization_id)
        if org is None:
            logger.warning("Organization unknown to hierarchy, treated as terminal organization_id=%s", organization_id)
            return frozenset({organization_id})
        if not org.is_active:
            logger.debug("Inactive organization has no visible descendants organization_id=%s", organization_id)
            return frozenset()

        visited = {organization_id}
        queue = deque([organization_id])
        while queue:
            current = queue.popleft()
            for child in self._children.get(current, ()):
                if child in visited:
                    logger.warning(
                        "Cycle detected during traversal root=%s organization_id=%s child=%s",
                        organization_id,
                        current,
                        child,
                    )
                    continue
                visited.add(child)
                queue.append(child)
        return frozenset(visited)

    def accessible_organizations(self, organization_ids: Iterable[str]) -> frozenset[str]:
        """The given organizations plus all of their descendants."""
        accessible: set[str] = set()
        for org_id in organization_ids:
            if org_id in accessible:
                continue
            accessible.update(self.descendants_of(org_id))
        return frozenset(accessible)

    def ancestors_of(self, organization_id: str) -> tuple[str, ...]:
        """Chain from ``organization_id`` up to its root (inclusive), stopping at inactive or unknown parents."""
        chain: list[str] = []
        seen: set[str] = set()
        current: str | None = organization_id
        while current is not None and current not in seen:
            org = self._nodes.get(current)
            if org is None or not org.is_active:
                break
            seen.add(current)
            chain.append(current)
            current = org.parent_organization_id
        return tuple(chain)

    def depth_of(self, organization_id: str) -> int:
        """0 for roots, 1 for their children, and so on."""
        return max(len(self.ancestors_of(organization_id)) - 1, 0)

    def is_descendant(self, child_id: str, ancestor_id: str) -> bool:
        """True if ``child_id`` is ``ancestor_id`` or lies below it."""
        if child_id == ancestor_id:
            return True
        return ancestor_id in self.ancestors_of(child_id)

    def roots(self) -> tuple[str, ...]:
        return tuple(
            sorted(
                org.organization_id
                for org in self._nodes.values()
                if org.is_active
                and (org.parent_organization_id is None or org.parent_organization_id not in self._nodes)
            )
        )

    def validate_parent(self, organization_id: str, new_parent_id: str | None) -> None:
        """
        Check that re-parenting ``organization_id`` keeps the tree acyclic.

        Raises HierarchyIntegrityError when the edit is not allowed.
        """

        if new_parent_id is None:
            return
        if new_parent_id == organization_id:
            raise HierarchyIntegrityError("Organization cannot be its own parent")
        if not self.is_active(new_parent_id):
            raise HierarchyIntegrityError("Parent organization not found or inactive")
        if self.is_descendant(new_parent_id, organization_id):
            raise HierarchyIntegrityError("Cannot set descendant organization as parent (would create cycle)")

    def tree(self, root_id: str | None = None) -> tuple[OrganizationTreeNode, ...]:
        """Nested tree for display, from ``root_id`` or from every root."""
        if root_id is not None:
            roots: tuple[str, ...] = (root_id,) if self.is_active(root_id) else ()
        else:
            roots = self.roots()
        visited: set[str] = set()
        return tuple(node for node in (self._build_node(r, 0, visited) for r in roots) if node is not None)

    def _build_node(self, organization_id: str, depth: int, visited: set[str]) -> OrganizationTreeNode | None:
        if organization_id in visited:
            return None
        visited.add(organization_id)
        children = tuple(
            node
            for node in (self._build_node(c, depth + 1, visited) for c in self.children_of(organization_id))
            if node is not None
        )
        return OrganizationTreeNode(organization=self._nodes[organization_id], depth=depth, children=children)


# ---- Shared snapshot holder ------------------------------------------------------------


class HierarchyCache:
    """
    Copy-on-write holder for the current ``OrganizationHierarchy``.

    Readers take the current snapshot without locking. A rebuild constructs a new
    snapshot and swaps a single reference under a lock, so requests already resolving
    against the old snapshot are unaffected. Call ``invalidate()`` after any
    organization mutation.
    """

    def __init__(self, loader: Callable[[], Iterable[OrganizationRecord]], ttl_seconds: int = 300) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._entry: tuple[OrganizationHierarchy, float] | None = None
        self._lock = threading.Lock()

    def _fresh(self, entry: tuple[OrganizationHierarchy, float] | None) -> bool:
        return entry is not None and (time.monotonic() - entry[1]) < self._ttl

    def get(self) -> OrganizationHierarchy:
        entry = self._entry
        if entry is not None and self._fresh(entry):
            return entry[0]
        with self._lock:
            entry = self._entry
            if entry is not None and self._fresh(entry):
                return entry[0]
            return self._refresh_locked()

    def refresh(self) -> OrganizationHierarchy:
        with self._lock:
            return self._refresh_locked()

    def _refresh_locked(self) -> OrganizationHierarchy:
        snapshot = OrganizationHierarchy(self._loader())
        self._entry = (snapshot, time.monotonic())
        logger.debug("Organization hierarchy snapshot rebuilt organizations=%d", len(snapshot))
        return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None
        logger.info("Organization hierarchy cache invalidated")
