"""Role Set and match mode models for the resolver subsystem."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import Enum

from rolegraph_core.interfaces.store import Role


class MatchMode(str, Enum):
    """Query semantics over a requested set of role names."""

    all = "all"
    any = "any"


class RoleSet:
    """Deduplicated mapping from role name to Role.

    The first Role stored under a name wins, so roles added earlier (a
    principal's direct roles) take precedence over group-derived copies.
    """

    def __init__(self, roles: Iterable[Role] = ()) -> None:
        self._roles: dict[str, Role] = {}
        for role in roles:
            self.add(role)

    def add(self, role: Role) -> bool:
        """Store *role* unless its name is already present. Returns True if added."""
        if role.name in self._roles:
            return False
        self._roles[role.name] = role
        return True

    def merge(self, other: RoleSet) -> None:
        for role in other:
            self.add(role)

    def get(self, name: str) -> Role | None:
        return self._roles.get(name)

    def names(self) -> frozenset[str]:
        return frozenset(self._roles)

    def copy(self) -> RoleSet:
        return RoleSet(self._roles.values())

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Role):
            return item.name in self._roles
        return item in self._roles

    def __iter__(self) -> Iterator[Role]:
        return iter(self._roles.values())

    def __len__(self) -> int:
        return len(self._roles)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoleSet):
            return NotImplemented
        return self.names() == other.names()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"RoleSet({sorted(self._roles)})"
