"""MutableEntityStore implementation backed by a local SQLite database."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path

from rolegraph_core.errors import DuplicateError, NotFoundError
from rolegraph_core.interfaces.store import Role, RoleGroup, validate_name

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS roles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);
CREATE TABLE IF NOT EXISTS role_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);
CREATE TABLE IF NOT EXISTS role_group_roles (
    role_group_id INTEGER NOT NULL REFERENCES role_groups(id),
    role_id INTEGER NOT NULL REFERENCES roles(id),
    created_at TEXT NOT NULL,
    PRIMARY KEY (role_group_id, role_id)
);
CREATE TABLE IF NOT EXISTS role_group_groups (
    role_group_id INTEGER NOT NULL REFERENCES role_groups(id),
    sub_role_group_id INTEGER NOT NULL REFERENCES role_groups(id),
    created_at TEXT NOT NULL,
    PRIMARY KEY (role_group_id, sub_role_group_id)
);
CREATE TABLE IF NOT EXISTS principals (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS user_roles (
    user_id TEXT NOT NULL REFERENCES principals(id),
    role_id INTEGER NOT NULL REFERENCES roles(id),
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, role_id)
);
CREATE TABLE IF NOT EXISTS user_role_groups (
    user_id TEXT NOT NULL REFERENCES principals(id),
    role_group_id INTEGER NOT NULL REFERENCES role_groups(id),
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, role_group_id)
);
CREATE INDEX IF NOT EXISTS idx_role_group_groups_child ON role_group_groups(sub_role_group_id);
CREATE INDEX IF NOT EXISTS idx_user_role_groups_group ON user_role_groups(role_group_id);
"""

_COLUMNS = "id, name, description, created_at, updated_at, deleted_at"

# Rows inserted by seed_defaults().
DEFAULT_GROUPS = [
    ("role_manager", "Can manage all aspects of the user roles"),
]


class SQLiteEntityStore:
    """MutableEntityStore using SQLite with WAL mode.

    Every statement runs behind one lock so a single store can be shared by
    threads. Soft deletes set ``deleted_at``; read queries only return rows
    where it is NULL.
    """

    def __init__(self, db_path: str = ".rolegraph/roles.db") -> None:
        path = Path(db_path)
        if db_path != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(path) if db_path != ":memory:" else db_path
        self._lock = threading.Lock()
        # isolation_level=None => autocommit mode, multi-statement writes
        # open their own transaction.
        self._conn = sqlite3.connect(
            self.db_path, isolation_level=None, timeout=5, check_same_thread=False
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # -- helpers ---------------------------------------------------------------

    def _now_iso(self) -> str:
        return datetime.now(UTC).isoformat()

    @staticmethod
    def _row_fields(row: tuple) -> dict:
        id_, name, description, created_at, updated_at, deleted_at = row
        return dict(
            id=id_,
            name=name,
            description=description,
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(updated_at),
            deleted_at=datetime.fromisoformat(deleted_at) if deleted_at else None,
        )

    def _fetch_roles(self, sql: str, params: tuple) -> list[Role]:
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [Role(**self._row_fields(r)) for r in rows]

    def _fetch_groups(self, sql: str, params: tuple) -> list[RoleGroup]:
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [RoleGroup(**self._row_fields(r)) for r in rows]

    def _exists(self, sql: str, params: tuple) -> bool:
        with self._lock:
            return self._conn.execute(sql, params).fetchone() is not None

    def _require_role(self, role_id: int) -> None:
        if not self._exists(
            "SELECT 1 FROM roles WHERE id = ? AND deleted_at IS NULL", (role_id,)
        ):
            raise NotFoundError("role", role_id)

    def _require_group(self, group_id: int) -> None:
        if not self._exists(
            "SELECT 1 FROM role_groups WHERE id = ? AND deleted_at IS NULL", (group_id,)
        ):
            raise NotFoundError("role group", group_id)

    def _require_principal(self, principal_id: str) -> None:
        if not self.has_principal(principal_id):
            raise NotFoundError("principal", principal_id)

    def _execute(self, sql: str, params: tuple) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(sql, params)

    # -- EntityStore protocol --------------------------------------------------

    def get_role(self, name: str) -> Role | None:
        roles = self._fetch_roles(
            f"SELECT {_COLUMNS} FROM roles WHERE name = ? AND deleted_at IS NULL", (name,)
        )
        return roles[0] if roles else None

    def get_role_group(self, name: str) -> RoleGroup | None:
        groups = self._fetch_groups(
            f"SELECT {_COLUMNS} FROM role_groups WHERE name = ? AND deleted_at IS NULL",
            (name,),
        )
        return groups[0] if groups else None

    def get_role_group_by_id(self, group_id: int) -> RoleGroup | None:
        groups = self._fetch_groups(
            f"SELECT {_COLUMNS} FROM role_groups WHERE id = ? AND deleted_at IS NULL",
            (group_id,),
        )
        return groups[0] if groups else None

    def has_principal(self, principal_id: str) -> bool:
        return self._exists("SELECT 1 FROM principals WHERE id = ?", (principal_id,))

    def roles_directly_assigned_to(self, principal_id: str) -> list[Role]:
        return self._fetch_roles(
            "SELECT r.id, r.name, r.description, r.created_at, r.updated_at, r.deleted_at "
            "FROM roles r JOIN user_roles ur ON ur.role_id = r.id "
            "WHERE ur.user_id = ? AND r.deleted_at IS NULL ORDER BY ur.rowid",
            (principal_id,),
        )

    def role_groups_assigned_to(self, principal_id: str) -> list[RoleGroup]:
        return self._fetch_groups(
            "SELECT g.id, g.name, g.description, g.created_at, g.updated_at, g.deleted_at "
            "FROM role_groups g JOIN user_role_groups ug ON ug.role_group_id = g.id "
            "WHERE ug.user_id = ? AND g.deleted_at IS NULL ORDER BY ug.rowid",
            (principal_id,),
        )

    def roles_of(self, group_id: int) -> list[Role]:
        return self._fetch_roles(
            "SELECT r.id, r.name, r.description, r.created_at, r.updated_at, r.deleted_at "
            "FROM roles r JOIN role_group_roles gr ON gr.role_id = r.id "
            "WHERE gr.role_group_id = ? AND r.deleted_at IS NULL ORDER BY gr.rowid",
            (group_id,),
        )

    def child_groups_of(self, group_id: int) -> list[RoleGroup]:
        return self._fetch_groups(
            "SELECT g.id, g.name, g.description, g.created_at, g.updated_at, g.deleted_at "
            "FROM role_groups g JOIN role_group_groups gg ON gg.sub_role_group_id = g.id "
            "WHERE gg.role_group_id = ? AND g.deleted_at IS NULL ORDER BY gg.rowid",
            (group_id,),
        )

    # -- ReverseLookup protocol ------------------------------------------------

    def parent_groups_of(self, group_id: int) -> list[RoleGroup]:
        return self._fetch_groups(
            "SELECT g.id, g.name, g.description, g.created_at, g.updated_at, g.deleted_at "
            "FROM role_groups g JOIN role_group_groups gg ON gg.role_group_id = g.id "
            "WHERE gg.sub_role_group_id = ? AND g.deleted_at IS NULL ORDER BY g.id",
            (group_id,),
        )

    def principals_in_group(self, group_id: int) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT user_id FROM user_role_groups WHERE role_group_id = ? ORDER BY user_id",
                (group_id,),
            ).fetchall()
        return [r[0] for r in rows]

    # -- writes ----------------------------------------------------------------

    def add_principal(self, principal_id: str) -> None:
        self._execute(
            "INSERT OR IGNORE INTO principals (id, created_at) VALUES (?, ?)",
            (principal_id, self._now_iso()),
        )

    def _create(self, table: str, kind: str, name: str, description: str) -> dict:
        validate_name(name)
        now = self._now_iso()
        try:
            cursor = self._execute(
                f"INSERT INTO {table} (name, description, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (name, description, now, now),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateError(kind, name) from e
        logger.debug("Created %s %s (id=%d)", kind, name, cursor.lastrowid)
        return dict(
            id=cursor.lastrowid,
            name=name,
            description=description,
            created_at=datetime.fromisoformat(now),
            updated_at=datetime.fromisoformat(now),
        )

    def create_role(self, name: str, description: str = "") -> Role:
        return Role(**self._create("roles", "role", name, description))

    def create_role_group(self, name: str, description: str = "") -> RoleGroup:
        return RoleGroup(**self._create("role_groups", "role group", name, description))

    def _soft_delete(self, table: str, kind: str, name: str) -> None:
        now = self._now_iso()
        cursor = self._execute(
            f"UPDATE {table} SET deleted_at = ?, updated_at = ? "
            "WHERE name = ? AND deleted_at IS NULL",
            (now, now, name),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(kind, name)
        logger.info("Soft-deleted %s %s", kind, name)

    def delete_role(self, name: str) -> None:
        self._soft_delete("roles", "role", name)

    def delete_role_group(self, name: str) -> None:
        self._soft_delete("role_groups", "role group", name)

    def attach_role(self, group_id: int, role_id: int) -> None:
        self._require_group(group_id)
        self._require_role(role_id)
        self._execute(
            "INSERT OR IGNORE INTO role_group_roles (role_group_id, role_id, created_at) "
            "VALUES (?, ?, ?)",
            (group_id, role_id, self._now_iso()),
        )

    def detach_role(self, group_id: int, role_id: int) -> None:
        self._execute(
            "DELETE FROM role_group_roles WHERE role_group_id = ? AND role_id = ?",
            (group_id, role_id),
        )

    def attach_child(self, parent_id: int, child_id: int) -> None:
        self._require_group(parent_id)
        self._require_group(child_id)
        self._execute(
            "INSERT OR IGNORE INTO role_group_groups (role_group_id, sub_role_group_id, created_at) "
            "VALUES (?, ?, ?)",
            (parent_id, child_id, self._now_iso()),
        )

    def detach_child(self, parent_id: int, child_id: int) -> None:
        self._execute(
            "DELETE FROM role_group_groups WHERE role_group_id = ? AND sub_role_group_id = ?",
            (parent_id, child_id),
        )

    def assign_role(self, principal_id: str, role_id: int) -> None:
        self._require_principal(principal_id)
        self._require_role(role_id)
        self._execute(
            "INSERT OR IGNORE INTO user_roles (user_id, role_id, created_at) VALUES (?, ?, ?)",
            (principal_id, role_id, self._now_iso()),
        )

    def unassign_role(self, principal_id: str, role_id: int) -> None:
        self._execute(
            "DELETE FROM user_roles WHERE user_id = ? AND role_id = ?",
            (principal_id, role_id),
        )

    def assign_role_group(self, principal_id: str, group_id: int) -> None:
        self._require_principal(principal_id)
        self._require_group(group_id)
        self._execute(
            "INSERT OR IGNORE INTO user_role_groups (user_id, role_group_id, created_at) "
            "VALUES (?, ?, ?)",
            (principal_id, group_id, self._now_iso()),
        )

    def unassign_role_group(self, principal_id: str, group_id: int) -> None:
        self._execute(
            "DELETE FROM user_role_groups WHERE user_id = ? AND role_group_id = ?",
            (principal_id, group_id),
        )

    def list_roles(self) -> list[Role]:
        return self._fetch_roles(
            f"SELECT {_COLUMNS} FROM roles WHERE deleted_at IS NULL ORDER BY name", ()
        )

    def list_role_groups(self) -> list[RoleGroup]:
        return self._fetch_groups(
            f"SELECT {_COLUMNS} FROM role_groups WHERE deleted_at IS NULL ORDER BY name", ()
        )

    # -- extras ----------------------------------------------------------------

    def seed_defaults(self) -> None:
        """Insert the default role groups if they are not present yet."""
        now = self._now_iso()
        for name, description in DEFAULT_GROUPS:
            self._execute(
                "INSERT OR IGNORE INTO role_groups (name, description, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (name, description, now, now),
            )

    def stats(self) -> dict[str, int]:
        """Count active rows per entity table."""
        counts = {}
        with self._lock:
            for table in ("roles", "role_groups"):
                counts[table] = self._conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE deleted_at IS NULL"
                ).fetchone()[0]
            counts["principals"] = self._conn.execute(
                "SELECT COUNT(*) FROM principals"
            ).fetchone()[0]
        return counts
