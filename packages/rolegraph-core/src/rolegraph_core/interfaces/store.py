"""Entity store interface and the Role / RoleGroup models it returns."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rolegraph_core.errors import InvalidArgumentError

NAME_PATTERN = re.compile(r"^[a-z]+(_[a-z]+)*$")
NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50


def validate_name(name: str) -> str:
    """Check a role or group name against the naming rule and return it.

    Names are lower case a-z words separated by single underscores,
    between 3 and 50 characters long.
    """
    if not isinstance(name, str):
        raise InvalidArgumentError(f"name must be a string, got {type(name).__name__}")
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise InvalidArgumentError(
            f"name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters, got {len(name)}"
        )
    if not NAME_PATTERN.fullmatch(name):
        raise InvalidArgumentError(
            f"name can contain only lower case a-z separated by single underscores: {name!r}"
        )
    return name


def _now() -> datetime:
    return datetime.now(UTC)


class _NamedEntity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str = ""
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    deleted_at: datetime | None = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_name(v)

    @property
    def is_active(self) -> bool:
        """False once the entity has been soft-deleted."""
        return self.deleted_at is None


class Role(_NamedEntity):
    """An atomic named permission."""


class RoleGroup(_NamedEntity):
    """A named collection of roles and nested role groups."""


@runtime_checkable
class EntityStore(Protocol):
    """Read side of the data-access layer consumed by the resolver.

    Lookups return ``None`` for unknown or soft-deleted entities, and the
    relationship queries only return active entities.
    """

    def get_role(self, name: str) -> Role | None: ...

    def get_role_group(self, name: str) -> RoleGroup | None: ...

    def get_role_group_by_id(self, group_id: int) -> RoleGroup | None: ...

    def has_principal(self, principal_id: str) -> bool: ...

    def roles_directly_assigned_to(self, principal_id: str) -> list[Role]: ...

    def role_groups_assigned_to(self, principal_id: str) -> list[RoleGroup]: ...

    def roles_of(self, group_id: int) -> list[Role]: ...

    def child_groups_of(self, group_id: int) -> list[RoleGroup]: ...


@runtime_checkable
class ReverseLookup(Protocol):
    """Upward queries used to find principals affected by a group change."""

    def parent_groups_of(self, group_id: int) -> list[RoleGroup]: ...

    def principals_in_group(self, group_id: int) -> list[str]: ...


@runtime_checkable
class MutableEntityStore(EntityStore, Protocol):
    """Entity store with the CRUD operations used by the bundled backends."""

    def add_principal(self, principal_id: str) -> None: ...

    def create_role(self, name: str, description: str = "") -> Role: ...

    def create_role_group(self, name: str, description: str = "") -> RoleGroup: ...

    def delete_role(self, name: str) -> None: ...

    def delete_role_group(self, name: str) -> None: ...

    def attach_role(self, group_id: int, role_id: int) -> None: ...

    def detach_role(self, group_id: int, role_id: int) -> None: ...

    def attach_child(self, parent_id: int, child_id: int) -> None: ...

    def detach_child(self, parent_id: int, child_id: int) -> None: ...

    def assign_role(self, principal_id: str, role_id: int) -> None: ...

    def unassign_role(self, principal_id: str, role_id: int) -> None: ...

    def assign_role_group(self, principal_id: str, group_id: int) -> None: ...

    def unassign_role_group(self, principal_id: str, group_id: int) -> None: ...

    def list_roles(self) -> list[Role]: ...

    def list_role_groups(self) -> list[RoleGroup]: ...
