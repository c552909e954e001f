"""Shared test fixtures for rolegraph."""

import pytest

from rolegraph_core.config.models import RoleGraphConfig
from rolegraph_lite.store.memory_store import InMemoryEntityStore
from rolegraph_lite.store.sqlite_store import SQLiteEntityStore


def build_graph(store, groups=None, edges=(), roles=()):
    """Populate *store* and return ``(roles_by_name, groups_by_name)``.

    groups: {group_name: [role_name, ...]}
    edges:  [(parent_group, child_group), ...]
    roles:  extra role names not attached to any group
    """
    groups = groups or {}
    role_names = list(dict.fromkeys([*roles, *(r for rs in groups.values() for r in rs)]))
    made_roles = {name: store.create_role(name, f"{name} permission") for name in role_names}
    made_groups = {name: store.create_role_group(name) for name in groups}
    for group_name, members in groups.items():
        for role_name in members:
            store.attach_role(made_groups[group_name].id, made_roles[role_name].id)
    for parent, child in edges:
        store.attach_child(made_groups[parent].id, made_groups[child].id)
    return made_roles, made_groups


@pytest.fixture
def memory_store():
    return InMemoryEntityStore()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteEntityStore(db_path=str(tmp_path / "roles.db"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Runs the test once against each bundled backend."""
    if request.param == "memory":
        yield InMemoryEntityStore()
    else:
        s = SQLiteEntityStore(db_path=str(tmp_path / "roles.db"))
        yield s
        s.close()


@pytest.fixture
def editorial(store):
    """senior_editor (publish_post) contains editor (edit_post); user u1 gets senior_editor."""
    roles, groups = build_graph(
        store,
        groups={"editor": ["edit_post"], "senior_editor": ["publish_post"]},
        edges=[("senior_editor", "editor")],
    )
    store.add_principal("u1")
    store.assign_role_group("u1", groups["senior_editor"].id)
    return store, roles, groups


@pytest.fixture
def sample_config():
    return RoleGraphConfig()
