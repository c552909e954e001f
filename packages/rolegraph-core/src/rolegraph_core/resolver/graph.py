"""Depth-first resolution of the role group containment graph."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from rolegraph_core.errors import NotFoundError, TraversalLimitError
from rolegraph_core.interfaces.holder import RoleHolder
from rolegraph_core.interfaces.store import EntityStore, RoleGroup
from rolegraph_core.resolver.models import RoleSet

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64
DEFAULT_MAX_GROUPS = 10_000


class _Traversal:
    """Shortest-depth bookkeeping for one top-level resolution call.

    ``max_depth`` bounds the shortest containment path from a seed group, so
    the outcome does not depend on the order a store returns children in. A
    group is expanded again only when reached by a strictly shorter path,
    which still terminates on cycles. Groups first reached beyond the bound
    are held back and reported by ``finish`` unless a shorter path turns up.
    """

    def __init__(self, max_depth: int, max_groups: int) -> None:
        self.max_depth = max_depth
        self.max_groups = max_groups
        self.depths: dict[int, int] = {}
        self.too_deep: set[int] = set()

    def enter(self, group: RoleGroup, depth: int) -> bool:
        """Record *group* reached at *depth*. Returns True if it should be expanded."""
        seen = self.depths.get(group.id)
        if seen is not None and seen <= depth:
            logger.debug("Skipping already-visited group %s (id=%d)", group.name, group.id)
            return False
        if depth > self.max_depth:
            self.too_deep.add(group.id)
            return False
        if seen is None and len(self.depths) >= self.max_groups:
            raise TraversalLimitError("max_groups", self.max_groups)
        self.depths[group.id] = depth
        self.too_deep.discard(group.id)
        return True

    def finish(self) -> None:
        """Raise if some reachable group has no path within ``max_depth``."""
        if self.too_deep:
            raise TraversalLimitError("max_depth", self.max_depth)


class RoleGraphResolver:
    """Collects every role reachable from principals, groups or holders.

    Each public call owns fresh traversal state, so cycles in the
    containment graph terminate. ``max_depth`` limits the shortest
    containment path from any seed group to a reachable group. Soft-deleted
    roles and groups are ignored even when the store still returns them.
    """

    def __init__(
        self,
        store: EntityStore,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_groups: int = DEFAULT_MAX_GROUPS,
    ) -> None:
        self._store = store
        self.max_depth = max_depth
        self.max_groups = max_groups

    @property
    def store(self) -> EntityStore:
        return self._store

    # -- public API ------------------------------------------------------------

    def resolve_group_roles(self, group_id: int) -> RoleSet:
        """Return all roles held by *group_id* and its descendants."""
        group = self._require_group(group_id)
        return self._collect([], [group])

    def resolve_all_roles(self, principal_id: str) -> RoleSet:
        """Return the effective Role Set for a principal.

        Direct roles seed the set, then every assigned group is resolved
        and merged in.
        """
        if not self._store.has_principal(principal_id):
            raise NotFoundError("principal", principal_id)
        direct = self._store.roles_directly_assigned_to(principal_id)
        groups = self._store.role_groups_assigned_to(principal_id)
        result = self._collect(direct, groups)
        logger.debug(
            "Resolved %d role(s) for principal %r from %d direct role(s) and %d group(s)",
            len(result),
            principal_id,
            len(direct),
            len(groups),
        )
        return result

    def resolve_holder(self, holder: RoleHolder) -> RoleSet:
        """Resolve any object implementing the RoleHolder capability."""
        roles = []
        for name in holder.direct_role_names():
            role = self._store.get_role(name)
            if role is None or not role.is_active:
                raise NotFoundError("role", name)
            roles.append(role)
        groups = [self._require_group(gid) for gid in holder.direct_group_ids()]
        return self._collect(roles, groups)

    # -- traversal -------------------------------------------------------------

    def _require_group(self, group_id: int) -> RoleGroup:
        group = self._store.get_role_group_by_id(group_id)
        if group is None or not group.is_active:
            raise NotFoundError("role group", group_id)
        return group

    def _collect(self, roles: Iterable, groups: Iterable[RoleGroup]) -> RoleSet:
        result = RoleSet(r for r in roles if r.is_active)
        traversal = _Traversal(self.max_depth, self.max_groups)
        for group in groups:
            if group.is_active:
                self._walk(group, traversal, 0, result)
        traversal.finish()
        return result

    def _walk(self, group: RoleGroup, traversal: _Traversal, depth: int, acc: RoleSet) -> None:
        if not traversal.enter(group, depth):
            return
        for role in self._store.roles_of(group.id):
            if role.is_active:
                acc.add(role)
        for child in self._store.child_groups_of(group.id):
            if child.is_active:
                self._walk(child, traversal, depth + 1, acc)
