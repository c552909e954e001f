"""Authorization facade over an entity store.

``Authorizer`` wires the resolver, the per-principal cache and the
membership evaluator together and is the surface calling applications
use. It never performs I/O of its own beyond the store calls; denial is
reported by return value or by ``PermissionDenied``.
"""

from __future__ import annotations

import logging

from rolegraph_core.config.models import CacheConfig, ResolverConfig, RoleGraphConfig
from rolegraph_core.errors import PermissionDenied
from rolegraph_core.interfaces.store import EntityStore, ReverseLookup
from rolegraph_core.resolver.cache import PrincipalRoleCache
from rolegraph_core.resolver.graph import RoleGraphResolver
from rolegraph_core.resolver.membership import (
    RoleRefs,
    group_has_role,
    matches,
    normalize_role_names,
    parse_match_mode,
)
from rolegraph_core.resolver.models import MatchMode, RoleSet

logger = logging.getLogger(__name__)


class Authorizer:
    """Answers role queries for principals and role groups."""

    def __init__(
        self,
        store: EntityStore,
        resolver_config: ResolverConfig | None = None,
        cache_config: CacheConfig | None = None,
    ) -> None:
        resolver_config = resolver_config or ResolverConfig()
        cache_config = cache_config or CacheConfig()
        self._store = store
        self._resolver = RoleGraphResolver(
            store,
            max_depth=resolver_config.max_depth,
            max_groups=resolver_config.max_groups,
        )
        self._cache: PrincipalRoleCache | None = None
        if cache_config.enabled:
            self._cache = PrincipalRoleCache(
                self._resolver.resolve_all_roles,
                max_entries=cache_config.max_entries,
            )

    @classmethod
    def from_config(cls, config: RoleGraphConfig, store: EntityStore | None = None) -> Authorizer:
        """Build an Authorizer, creating the configured store backend if none is given."""
        if store is None:
            from rolegraph_core.plugins.loader import PluginLoader

            store = PluginLoader(config).create_store()
        return cls(store, resolver_config=config.resolver, cache_config=config.cache)

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def resolver(self) -> RoleGraphResolver:
        return self._resolver

    # -- resolution ------------------------------------------------------------

    def resolve_all_roles(self, principal_id: str) -> RoleSet:
        """Return a copy of the principal's effective Role Set."""
        return self._role_set(principal_id).copy()

    def resolve_group_roles(self, group_id: int) -> RoleSet:
        return self._resolver.resolve_group_roles(group_id)

    # -- queries ---------------------------------------------------------------

    def has_role(
        self, principal_id: str, roles: RoleRefs, match: str | MatchMode = "all"
    ) -> bool:
        """Check whether the principal holds *roles* under *match* semantics."""
        names = normalize_role_names(roles)
        mode = parse_match_mode(match)
        return matches(self._role_set(principal_id), names, mode)

    def check_role(
        self, principal_id: str, roles: RoleRefs, match: str | MatchMode = "all"
    ) -> None:
        """Raise ``PermissionDenied`` unless the principal holds *roles*."""
        names = normalize_role_names(roles)
        mode = parse_match_mode(match)
        if not matches(self._role_set(principal_id), names, mode):
            logger.info(
                "Denied principal %r: requires %s of %s", principal_id, mode.value, sorted(names)
            )
            raise PermissionDenied(principal_id, names, mode.value)

    def group_has_role(self, group_id: int, roles: RoleRefs) -> bool:
        return group_has_role(
            self._store,
            group_id,
            roles,
            max_depth=self._resolver.max_depth,
            max_groups=self._resolver.max_groups,
        )

    # -- cache control ---------------------------------------------------------

    def invalidate_principal_cache(self, principal_id: str) -> None:
        if self._cache is not None:
            self._cache.invalidate(principal_id)

    def invalidate_all(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def invalidate_group(self, group_id: int) -> None:
        """Invalidate every principal whose roles may depend on *group_id*.

        Walks the group's ancestors and drops the principals assigned to any
        of them. Stores without reverse lookups fall back to a full clear.
        """
        if self._cache is None:
            return
        if not isinstance(self._store, ReverseLookup):
            self._cache.clear()
            return

        affected: set[str] = set()
        visited: set[int] = set()
        pending = [group_id]
        while pending:
            current = pending.pop()
            if current in visited:
                continue
            visited.add(current)
            affected.update(self._store.principals_in_group(current))
            pending.extend(parent.id for parent in self._store.parent_groups_of(current))

        for principal_id in affected:
            self._cache.invalidate(principal_id)
        logger.debug(
            "Invalidated %d principal(s) for change in group %d", len(affected), group_id
        )

    def _role_set(self, principal_id: str) -> RoleSet:
        if self._cache is None:
            return self._resolver.resolve_all_roles(principal_id)
        return self._cache.get(principal_id)
