"""Membership queries against Role Sets and role groups."""

from __future__ import annotations

import logging
from typing import Union

from rolegraph_core.errors import InvalidArgumentError, NotFoundError
from rolegraph_core.interfaces.store import EntityStore, Role, RoleGroup
from rolegraph_core.resolver.graph import DEFAULT_MAX_DEPTH, DEFAULT_MAX_GROUPS, _Traversal
from rolegraph_core.resolver.models import MatchMode, RoleSet

logger = logging.getLogger(__name__)

RoleRef = Union[str, Role]
RoleRefs = Union[RoleRef, list, tuple, set, frozenset]

_COLLECTION_TYPES = (list, tuple, set, frozenset)


def _ref_to_name(ref: object) -> str:
    if isinstance(ref, Role):
        return ref.name
    if isinstance(ref, str):
        if not ref.strip():
            raise InvalidArgumentError("role name cannot be empty or whitespace")
        return ref
    raise InvalidArgumentError(
        f"role reference must be a Role or a role name, got {type(ref).__name__}"
    )


def normalize_role_names(refs: RoleRefs) -> frozenset[str]:
    """Turn a name, a Role, or a collection of either into a set of names."""
    if isinstance(refs, (str, Role)):
        return frozenset([_ref_to_name(refs)])
    if isinstance(refs, _COLLECTION_TYPES):
        if not refs:
            raise InvalidArgumentError("role reference collection cannot be empty")
        return frozenset(_ref_to_name(ref) for ref in refs)
    raise InvalidArgumentError(
        "roles must be a Role, a role name, or a list/tuple/set of them, "
        f"got {type(refs).__name__}"
    )


def parse_match_mode(match: str | MatchMode) -> MatchMode:
    """Parse ``"all"`` or ``"any"`` (any case) into a MatchMode."""
    if isinstance(match, MatchMode):
        return match
    if not isinstance(match, str):
        raise InvalidArgumentError(
            f'match must be a string with a value of "all" or "any", got {type(match).__name__}'
        )
    try:
        return MatchMode(match.lower())
    except ValueError:
        raise InvalidArgumentError(
            f'match must have a value of "all" or "any", got {match!r}'
        ) from None


def matches(role_set: RoleSet, names: frozenset[str], mode: MatchMode) -> bool:
    """Evaluate already-normalized *names* against *role_set*."""
    if mode is MatchMode.all:
        return all(name in role_set for name in names)
    return any(name in role_set for name in names)


def has_role(role_set: RoleSet, roles: RoleRefs, match: str | MatchMode = "all") -> bool:
    """Check *roles* against a resolved Role Set.

    ``all`` requires every requested name, ``any`` at least one.
    """
    names = normalize_role_names(roles)
    mode = parse_match_mode(match)
    return matches(role_set, names, mode)


def group_has_role(
    store: EntityStore,
    group_id: int,
    roles: RoleRefs,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_groups: int = DEFAULT_MAX_GROUPS,
) -> bool:
    """True if the group or any descendant holds at least one of *roles*.

    Searches the group's own roles before descending and stops at the
    first match instead of building the full Role Set.
    """
    names = normalize_role_names(roles)
    group = store.get_role_group_by_id(group_id)
    if group is None or not group.is_active:
        raise NotFoundError("role group", group_id)
    traversal = _Traversal(max_depth, max_groups)
    found = _search(store, group, names, traversal, 0)
    if not found:
        traversal.finish()
    return found


def _search(
    store: EntityStore,
    group: RoleGroup,
    names: frozenset[str],
    traversal: _Traversal,
    depth: int,
) -> bool:
    if not traversal.enter(group, depth):
        return False
    if any(role.is_active and role.name in names for role in store.roles_of(group.id)):
        logger.debug("Group %s holds one of %s", group.name, sorted(names))
        return True
    for child in store.child_groups_of(group.id):
        if child.is_active and _search(store, child, names, traversal, depth + 1):
            return True
    return False
