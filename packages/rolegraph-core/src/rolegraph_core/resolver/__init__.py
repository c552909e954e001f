"""Role graph resolution, membership evaluation and per-principal caching."""

from rolegraph_core.resolver.cache import PrincipalRoleCache
from rolegraph_core.resolver.graph import RoleGraphResolver
from rolegraph_core.resolver.membership import (
    RoleRef,
    group_has_role,
    has_role,
    normalize_role_names,
    parse_match_mode,
)
from rolegraph_core.resolver.models import MatchMode, RoleSet

__all__ = [
    "MatchMode",
    "PrincipalRoleCache",
    "RoleGraphResolver",
    "RoleRef",
    "RoleSet",
    "group_has_role",
    "has_role",
    "normalize_role_names",
    "parse_match_mode",
]
