"""MutableEntityStore implementation held entirely in process memory."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

from rolegraph_core.errors import DuplicateError, NotFoundError
from rolegraph_core.interfaces.store import Role, RoleGroup, validate_name

logger = logging.getLogger(__name__)


def _link(edges: dict, key: object, value: int) -> None:
    targets = edges.setdefault(key, [])
    if value not in targets:
        targets.append(value)


def _unlink(edges: dict, key: object, value: int) -> None:
    targets = edges.get(key)
    if targets and value in targets:
        targets.remove(value)


class InMemoryEntityStore:
    """Dict-backed store for tests, demos and embedding in short-lived processes.

    Soft-deleted roles and groups stay in the maps with ``deleted_at`` set;
    edges pointing at them are kept but filtered out of every query. Names
    stay reserved after a soft delete, matching the SQLite schema.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._principals: set[str] = set()
        self._roles: dict[int, Role] = {}
        self._groups: dict[int, RoleGroup] = {}
        self._role_names: dict[str, int] = {}
        self._group_names: dict[str, int] = {}
        self._group_roles: dict[int, list[int]] = {}
        self._group_children: dict[int, list[int]] = {}
        self._principal_roles: dict[str, list[int]] = {}
        self._principal_groups: dict[str, list[int]] = {}
        self._next_role_id = 1
        self._next_group_id = 1

    # -- helpers ---------------------------------------------------------------

    def _active_role(self, role_id: int) -> Role:
        role = self._roles.get(role_id)
        if role is None or not role.is_active:
            raise NotFoundError("role", role_id)
        return role

    def _active_group(self, group_id: int) -> RoleGroup:
        group = self._groups.get(group_id)
        if group is None or not group.is_active:
            raise NotFoundError("role group", group_id)
        return group

    def _require_principal(self, principal_id: str) -> None:
        if principal_id not in self._principals:
            raise NotFoundError("principal", principal_id)

    def _roles_for(self, ids: list[int]) -> list[Role]:
        return [self._roles[i] for i in ids if self._roles[i].is_active]

    def _groups_for(self, ids: list[int]) -> list[RoleGroup]:
        return [self._groups[i] for i in ids if self._groups[i].is_active]

    # -- EntityStore protocol --------------------------------------------------

    def get_role(self, name: str) -> Role | None:
        with self._lock:
            role_id = self._role_names.get(name)
            if role_id is None or not self._roles[role_id].is_active:
                return None
            return self._roles[role_id]

    def get_role_group(self, name: str) -> RoleGroup | None:
        with self._lock:
            group_id = self._group_names.get(name)
            if group_id is None:
                return None
            return self.get_role_group_by_id(group_id)

    def get_role_group_by_id(self, group_id: int) -> RoleGroup | None:
        with self._lock:
            group = self._groups.get(group_id)
            if group is None or not group.is_active:
                return None
            return group

    def has_principal(self, principal_id: str) -> bool:
        with self._lock:
            return principal_id in self._principals

    def roles_directly_assigned_to(self, principal_id: str) -> list[Role]:
        with self._lock:
            return self._roles_for(self._principal_roles.get(principal_id, []))

    def role_groups_assigned_to(self, principal_id: str) -> list[RoleGroup]:
        with self._lock:
            return self._groups_for(self._principal_groups.get(principal_id, []))

    def roles_of(self, group_id: int) -> list[Role]:
        with self._lock:
            return self._roles_for(self._group_roles.get(group_id, []))

    def child_groups_of(self, group_id: int) -> list[RoleGroup]:
        with self._lock:
            return self._groups_for(self._group_children.get(group_id, []))

    # -- ReverseLookup protocol ------------------------------------------------

    def parent_groups_of(self, group_id: int) -> list[RoleGroup]:
        with self._lock:
            parents = [pid for pid, kids in self._group_children.items() if group_id in kids]
            return self._groups_for(sorted(parents))

    def principals_in_group(self, group_id: int) -> list[str]:
        with self._lock:
            return sorted(
                pid for pid, groups in self._principal_groups.items() if group_id in groups
            )

    # -- writes ----------------------------------------------------------------

    def add_principal(self, principal_id: str) -> None:
        with self._lock:
            self._principals.add(principal_id)

    def create_role(self, name: str, description: str = "") -> Role:
        validate_name(name)
        with self._lock:
            if name in self._role_names:
                raise DuplicateError("role", name)
            role = Role(id=self._next_role_id, name=name, description=description)
            self._next_role_id += 1
            self._roles[role.id] = role
            self._role_names[name] = role.id
        logger.debug("Created role %s (id=%d)", name, role.id)
        return role

    def create_role_group(self, name: str, description: str = "") -> RoleGroup:
        validate_name(name)
        with self._lock:
            if name in self._group_names:
                raise DuplicateError("role group", name)
            group = RoleGroup(id=self._next_group_id, name=name, description=description)
            self._next_group_id += 1
            self._groups[group.id] = group
            self._group_names[name] = group.id
        logger.debug("Created role group %s (id=%d)", name, group.id)
        return group

    def delete_role(self, name: str) -> None:
        with self._lock:
            role = self.get_role(name)
            if role is None:
                raise NotFoundError("role", name)
            now = datetime.now(UTC)
            self._roles[role.id] = role.model_copy(update={"deleted_at": now, "updated_at": now})
        logger.info("Soft-deleted role %s", name)

    def delete_role_group(self, name: str) -> None:
        with self._lock:
            group = self.get_role_group(name)
            if group is None:
                raise NotFoundError("role group", name)
            now = datetime.now(UTC)
            self._groups[group.id] = group.model_copy(
                update={"deleted_at": now, "updated_at": now}
            )
        logger.info("Soft-deleted role group %s", name)

    def attach_role(self, group_id: int, role_id: int) -> None:
        with self._lock:
            self._active_group(group_id)
            self._active_role(role_id)
            _link(self._group_roles, group_id, role_id)

    def detach_role(self, group_id: int, role_id: int) -> None:
        with self._lock:
            _unlink(self._group_roles, group_id, role_id)

    def attach_child(self, parent_id: int, child_id: int) -> None:
        with self._lock:
            self._active_group(parent_id)
            self._active_group(child_id)
            _link(self._group_children, parent_id, child_id)

    def detach_child(self, parent_id: int, child_id: int) -> None:
        with self._lock:
            _unlink(self._group_children, parent_id, child_id)

    def assign_role(self, principal_id: str, role_id: int) -> None:
        with self._lock:
            self._require_principal(principal_id)
            self._active_role(role_id)
            _link(self._principal_roles, principal_id, role_id)

    def unassign_role(self, principal_id: str, role_id: int) -> None:
        with self._lock:
            _unlink(self._principal_roles, principal_id, role_id)

    def assign_role_group(self, principal_id: str, group_id: int) -> None:
        with self._lock:
            self._require_principal(principal_id)
            self._active_group(group_id)
            _link(self._principal_groups, principal_id, group_id)

    def unassign_role_group(self, principal_id: str, group_id: int) -> None:
        with self._lock:
            _unlink(self._principal_groups, principal_id, group_id)

    def list_roles(self) -> list[Role]:
        with self._lock:
            return [r for r in self._roles.values() if r.is_active]

    def list_role_groups(self) -> list[RoleGroup]:
        with self._lock:
            return [g for g in self._groups.values() if g.is_active]
