"""Exception hierarchy shared by the resolver, evaluator and store backends."""

from __future__ import annotations

from collections.abc import Iterable


class RoleGraphError(Exception):
    """Base class for every error raised by rolegraph."""


class NotFoundError(RoleGraphError):
    """A principal, role or group does not resolve to an active entity."""

    def __init__(self, kind: str, key: object) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key!r}")


class DuplicateError(RoleGraphError):
    """A store write would reuse a name that is already taken."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} already exists: {name!r}")


class InvalidArgumentError(RoleGraphError, ValueError):
    """Malformed role reference, match mode or name set."""


class PermissionDenied(RoleGraphError):
    """The principal does not hold the requested roles."""

    def __init__(self, principal_id: str, names: Iterable[str], match: str) -> None:
        self.principal_id = principal_id
        self.names = frozenset(names)
        self.match = match
        super().__init__(
            f"principal {principal_id!r} lacks {match} of {sorted(self.names)}"
        )


class TraversalLimitError(RoleGraphError):
    """Group traversal exceeded a configured safety bound."""

    def __init__(self, limit: str, value: int) -> None:
        self.limit = limit
        self.value = value
        super().__init__(f"group traversal exceeded {limit}={value}")
