"""rolegraph core - role group graph resolution and membership queries."""

from rolegraph_core.authorizer import Authorizer
from rolegraph_core.config import RoleGraphConfig, load_config
from rolegraph_core.errors import (
    DuplicateError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDenied,
    RoleGraphError,
    TraversalLimitError,
)
from rolegraph_core.interfaces import EntityStore, MutableEntityStore, Role, RoleGroup, RoleHolder
from rolegraph_core.resolver import (
    MatchMode,
    PrincipalRoleCache,
    RoleGraphResolver,
    RoleSet,
    group_has_role,
    has_role,
)

__version__ = "0.1.0"

__all__ = [
    "Authorizer",
    "DuplicateError",
    "EntityStore",
    "InvalidArgumentError",
    "MatchMode",
    "MutableEntityStore",
    "NotFoundError",
    "PermissionDenied",
    "PrincipalRoleCache",
    "Role",
    "RoleGraphConfig",
    "RoleGraphError",
    "RoleGraphResolver",
    "RoleGroup",
    "RoleHolder",
    "RoleSet",
    "TraversalLimitError",
    "group_has_role",
    "has_role",
    "load_config",
]
