"""Store and holder interfaces consumed by the rolegraph core."""

from rolegraph_core.interfaces.holder import RoleHolder
from rolegraph_core.interfaces.store import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    NAME_PATTERN,
    EntityStore,
    MutableEntityStore,
    ReverseLookup,
    Role,
    RoleGroup,
    validate_name,
)

__all__ = [
    "NAME_MAX_LENGTH",
    "NAME_MIN_LENGTH",
    "NAME_PATTERN",
    "EntityStore",
    "MutableEntityStore",
    "ReverseLookup",
    "Role",
    "RoleGroup",
    "RoleHolder",
    "validate_name",
]
