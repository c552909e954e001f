"""Tests for the Authorizer facade: queries, denial and cache invalidation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from rolegraph_core.authorizer import Authorizer
from rolegraph_core.config.models import CacheConfig, ResolverConfig, RoleGraphConfig
from rolegraph_core.errors import (
    InvalidArgumentError,
    NotFoundError,
    PermissionDenied,
    TraversalLimitError,
)
from rolegraph_lite.store.memory_store import InMemoryEntityStore


class ReadOnlyView:
    """EntityStore without reverse lookups."""

    def __init__(self, inner):
        self._inner = inner

    def get_role(self, name):
        return self._inner.get_role(name)

    def get_role_group(self, name):
        return self._inner.get_role_group(name)

    def get_role_group_by_id(self, group_id):
        return self._inner.get_role_group_by_id(group_id)

    def has_principal(self, principal_id):
        return self._inner.has_principal(principal_id)

    def roles_directly_assigned_to(self, principal_id):
        return self._inner.roles_directly_assigned_to(principal_id)

    def role_groups_assigned_to(self, principal_id):
        return self._inner.role_groups_assigned_to(principal_id)

    def roles_of(self, group_id):
        return self._inner.roles_of(group_id)

    def child_groups_of(self, group_id):
        return self._inner.child_groups_of(group_id)


# -- queries -------------------------------------------------------------------


class TestQueries:
    def test_editor_scenario(self, editorial):
        store, _, _ = editorial
        authz = Authorizer(store)
        assert authz.resolve_all_roles("u1").names() == {"edit_post", "publish_post"}
        assert authz.has_role("u1", "edit_post", "all") is True
        assert authz.has_role("u1", ["edit_post", "delete_post"], "all") is False
        assert authz.has_role("u1", ["edit_post", "delete_post"], "any") is True

    def test_resolve_all_roles(self, editorial):
        store, _, _ = editorial
        assert Authorizer(store).resolve_all_roles("u1").names() == {"publish_post", "edit_post"}

    def test_resolve_returns_copy(self, editorial):
        store, _, _ = editorial
        authz = Authorizer(store)
        result = authz.resolve_all_roles("u1")
        result.add(store.create_role("ban_user"))
        assert "ban_user" not in authz.resolve_all_roles("u1")

    def test_has_role_all(self, editorial):
        store, _, _ = editorial
        authz = Authorizer(store)
        assert authz.has_role("u1", ["edit_post", "publish_post"], "all")
        assert not authz.has_role("u1", ["edit_post", "delete_post"], "all")

    def test_has_role_any(self, editorial):
        store, _, _ = editorial
        assert Authorizer(store).has_role("u1", ["edit_post", "delete_post"], "any")

    def test_has_role_default_match(self, editorial):
        store, _, _ = editorial
        assert not Authorizer(store).has_role("u1", ["edit_post", "delete_post"])

    def test_unknown_principal(self, store):
        with pytest.raises(NotFoundError):
            Authorizer(store).has_role("ghost", "edit_post")

    def test_group_queries(self, editorial):
        store, _, groups = editorial
        authz = Authorizer(store)
        assert authz.resolve_group_roles(groups["senior_editor"].id).names() == {
            "publish_post",
            "edit_post",
        }
        assert authz.group_has_role(groups["senior_editor"].id, "edit_post")
        assert not authz.group_has_role(groups["editor"].id, "publish_post")

    def test_resolver_limits_from_config(self, editorial):
        store, _, groups = editorial
        authz = Authorizer(store, resolver_config=ResolverConfig(max_depth=1, max_groups=1))
        with pytest.raises(TraversalLimitError):
            authz.resolve_group_roles(groups["senior_editor"].id)
        with pytest.raises(TraversalLimitError):
            authz.group_has_role(groups["senior_editor"].id, "edit_post")


# -- argument validation -------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize("roles,match", [
        ([], "all"),
        ("", "any"),
        (["edit_post", 7], "all"),
        ("edit_post", "most"),
    ])
    def test_invalid_input_never_reaches_store(self, roles, match):
        store = MagicMock()
        authz = Authorizer(store)
        with pytest.raises(InvalidArgumentError):
            authz.has_role("u1", roles, match)
        with pytest.raises(InvalidArgumentError):
            authz.check_role("u1", roles, match)
        store.has_principal.assert_not_called()
        store.roles_directly_assigned_to.assert_not_called()

    def test_invalid_input_is_value_error(self, editorial):
        store, _, _ = editorial
        with pytest.raises(ValueError):
            Authorizer(store).has_role("u1", "edit_post", "some")


# -- check_role ----------------------------------------------------------------


class TestCheckRole:
    def test_granted_returns_none(self, editorial):
        store, _, _ = editorial
        assert Authorizer(store).check_role("u1", "publish_post") is None

    def test_denied_raises(self, editorial):
        store, _, _ = editorial
        with pytest.raises(PermissionDenied) as exc_info:
            Authorizer(store).check_role("u1", ["edit_post", "delete_post"], "all")
        err = exc_info.value
        assert err.principal_id == "u1"
        assert err.names == {"edit_post", "delete_post"}
        assert err.match == "all"

    def test_denied_is_logged(self, editorial, caplog):
        store, _, _ = editorial
        with caplog.at_level("INFO", logger="rolegraph_core.authorizer"):
            with pytest.raises(PermissionDenied):
                Authorizer(store).check_role("u1", "delete_post", "any")
        assert "Denied principal 'u1'" in caplog.text


# -- caching -------------------------------------------------------------------


class TestCaching:
    def test_results_are_cached(self, editorial):
        store, _, groups = editorial
        authz = Authorizer(store)
        assert not authz.has_role("u1", "delete_post")
        new_role = store.create_role("delete_post")
        store.attach_role(groups["editor"].id, new_role.id)
        # Stale until invalidated
        assert not authz.has_role("u1", "delete_post")

    def test_invalidate_principal(self, editorial):
        store, _, groups = editorial
        authz = Authorizer(store)
        authz.has_role("u1", "edit_post")
        new_role = store.create_role("delete_post")
        store.assign_role("u1", new_role.id)
        authz.invalidate_principal_cache("u1")
        assert authz.has_role("u1", "delete_post")

    def test_invalidate_group_reaches_ancestors(self, editorial):
        store, _, groups = editorial
        authz = Authorizer(store)
        authz.has_role("u1", "edit_post")
        new_role = store.create_role("delete_post")
        store.attach_role(groups["editor"].id, new_role.id)
        # u1 is only assigned to senior_editor, which contains editor
        authz.invalidate_group(groups["editor"].id)
        assert authz.has_role("u1", "delete_post")

    def test_invalidate_group_leaves_unrelated(self, editorial):
        store, _, groups = editorial
        other = store.create_role_group("moderator")
        store.add_principal("u2")
        store.assign_role_group("u2", other.id)
        authz = Authorizer(store)
        authz.has_role("u1", "edit_post")
        authz.has_role("u2", "edit_post")
        authz.invalidate_group(other.id)
        assert "u1" in authz._cache
        assert "u2" not in authz._cache

    def test_invalidate_group_terminates_on_cycle(self, editorial):
        store, _, groups = editorial
        store.attach_child(groups["editor"].id, groups["senior_editor"].id)
        authz = Authorizer(store)
        authz.has_role("u1", "edit_post")
        authz.invalidate_group(groups["editor"].id)
        assert "u1" not in authz._cache

    def test_invalidate_group_without_reverse_lookup_clears(self, editorial):
        store, _, groups = editorial
        authz = Authorizer(ReadOnlyView(store))
        authz.has_role("u1", "edit_post")
        authz.invalidate_group(groups["editor"].id)
        assert len(authz._cache) == 0

    def test_invalidate_all(self, editorial):
        store, _, _ = editorial
        authz = Authorizer(store)
        authz.has_role("u1", "edit_post")
        authz.invalidate_all()
        assert len(authz._cache) == 0

    def test_cache_disabled_always_resolves(self, editorial):
        store, _, groups = editorial
        authz = Authorizer(store, cache_config=CacheConfig(enabled=False))
        assert not authz.has_role("u1", "delete_post")
        new_role = store.create_role("delete_post")
        store.attach_role(groups["editor"].id, new_role.id)
        assert authz.has_role("u1", "delete_post")
        # Invalidation is a no-op without a cache
        authz.invalidate_principal_cache("u1")
        authz.invalidate_group(groups["editor"].id)
        authz.invalidate_all()


# -- construction --------------------------------------------------------------


class TestFromConfig:
    def test_with_explicit_store(self):
        store = InMemoryEntityStore()
        authz = Authorizer.from_config(RoleGraphConfig(), store=store)
        assert authz.store is store

    def test_creates_configured_backend(self):
        config = RoleGraphConfig(store={"provider": "memory"}, resolver={"max_depth": 5})
        authz = Authorizer.from_config(config)
        assert isinstance(authz.store, InMemoryEntityStore)
        assert authz.resolver.max_depth == 5
