"""Tests for the rolegraph CLI (config, entity management, queries)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from rolegraph_lite.cli import app
from rolegraph_lite.store.sqlite_store import SQLiteEntityStore

runner = CliRunner()


@pytest.fixture
def cfg(tmp_path: Path) -> str:
    """Config file pointing the SQLite store into tmp_path."""
    path = tmp_path / "rolegraph.yaml"
    path.write_text(
        "store:\n"
        "  provider: sqlite\n"
        f"  db_path: \"{tmp_path / 'db' / 'roles.db'}\"\n"
        "log_level: error\n"
    )
    return str(path)


def _run(cfg: str, *args: str):
    return runner.invoke(app, ["--config", cfg, *args])


@pytest.fixture
def editorial_cli(cfg):
    """senior_editor (publish_post) contains editor (edit_post); u1 holds senior_editor."""
    for args in (
        ["role", "add", "edit_post"],
        ["role", "add", "publish_post"],
        ["group", "add", "editor"],
        ["group", "add", "senior_editor"],
        ["group", "attach", "editor", "edit_post"],
        ["group", "attach", "senior_editor", "publish_post"],
        ["group", "nest", "senior_editor", "editor"],
        ["principal", "add", "u1"],
        ["principal", "grant-group", "u1", "senior_editor"],
    ):
        result = _run(cfg, *args)
        assert result.exit_code == 0, result.output
    return cfg


# ── config ───────────────────────────────────────────────────────────


def test_config_init_writes_template(tmp_path: Path):
    target = tmp_path / "rolegraph.yaml"
    result = runner.invoke(app, ["config", "init", "--path", str(target)])
    assert result.exit_code == 0
    assert "max_depth" in target.read_text()


def test_config_init_refuses_overwrite(tmp_path: Path):
    target = tmp_path / "rolegraph.yaml"
    target.write_text("log_level: info\n")
    result = runner.invoke(app, ["config", "init", "--path", str(target)])
    assert result.exit_code == 1
    assert target.read_text() == "log_level: info\n"

    result = runner.invoke(app, ["config", "init", "--path", str(target), "--force"])
    assert result.exit_code == 0
    assert "max_groups" in target.read_text()


def test_config_show(cfg):
    result = _run(cfg, "config", "show")
    assert result.exit_code == 0
    assert "max_depth" in result.output


def test_invalid_config_file(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("resolver:\n  max_depth: -3\n")
    result = runner.invoke(app, ["--config", str(bad), "config", "show"])
    assert result.exit_code == 1
    assert "Invalid config" in result.output


def test_missing_config_file(tmp_path: Path):
    result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "config", "show"])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


# ── init / roles / groups ────────────────────────────────────────────


def test_init_seeds_default_groups(cfg):
    assert _run(cfg, "init").exit_code == 0
    result = _run(cfg, "group", "list")
    assert result.exit_code == 0
    assert "role_manager" in result.output


def test_role_add_and_list(cfg):
    assert _run(cfg, "role", "add", "edit_post", "-d", "Edit posts").exit_code == 0
    result = _run(cfg, "role", "list")
    assert result.exit_code == 0
    assert "edit_post" in result.output


def test_role_add_invalid_name_exits_2(cfg):
    result = _run(cfg, "role", "add", "EditPost")
    assert result.exit_code == 2


def test_role_add_duplicate_exits_1(cfg):
    _run(cfg, "role", "add", "edit_post")
    result = _run(cfg, "role", "add", "edit_post")
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_role_delete(cfg):
    _run(cfg, "role", "add", "edit_post")
    assert _run(cfg, "role", "delete", "edit_post").exit_code == 0
    assert "edit_post" not in _run(cfg, "role", "list").output
    assert _run(cfg, "role", "delete", "edit_post").exit_code == 1


def test_group_attach_unknown_role(cfg):
    _run(cfg, "group", "add", "editor")
    result = _run(cfg, "group", "attach", "editor", "nope_role")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_group_roles_includes_nested(editorial_cli):
    result = _run(editorial_cli, "group", "roles", "senior_editor")
    assert result.exit_code == 0
    assert "edit_post" in result.output
    assert "publish_post" in result.output


def test_group_check(editorial_cli):
    assert _run(editorial_cli, "group", "check", "senior_editor", "edit_post").exit_code == 0
    assert _run(editorial_cli, "group", "check", "editor", "publish_post").exit_code == 1


def test_group_unnest(editorial_cli):
    assert _run(editorial_cli, "group", "unnest", "senior_editor", "editor").exit_code == 0
    assert _run(editorial_cli, "group", "check", "senior_editor", "edit_post").exit_code == 1


def test_group_detach(editorial_cli):
    assert _run(editorial_cli, "group", "detach", "editor", "edit_post").exit_code == 0
    assert "edit_post" not in _run(editorial_cli, "group", "roles", "editor").output


# ── principals / queries ─────────────────────────────────────────────


def test_roles_for_principal(editorial_cli):
    result = _run(editorial_cli, "roles", "u1")
    assert result.exit_code == 0
    assert "edit_post" in result.output
    assert "publish_post" in result.output


def test_roles_unknown_principal(cfg):
    result = _run(cfg, "roles", "ghost")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_check_all_granted(editorial_cli):
    result = _run(editorial_cli, "check", "u1", "edit_post", "publish_post")
    assert result.exit_code == 0
    assert "Granted" in result.output


def test_check_all_denied(editorial_cli):
    result = _run(editorial_cli, "check", "u1", "edit_post", "delete_post")
    assert result.exit_code == 1
    assert "Denied" in result.output


def test_check_any(editorial_cli):
    result = _run(editorial_cli, "check", "u1", "edit_post", "delete_post", "--match", "any")
    assert result.exit_code == 0


def test_check_bad_match_exits_2(editorial_cli):
    result = _run(editorial_cli, "check", "u1", "edit_post", "-m", "some")
    assert result.exit_code == 2


def test_grant_and_revoke_role(editorial_cli):
    assert _run(editorial_cli, "role", "add", "ban_user").exit_code == 0
    assert _run(editorial_cli, "principal", "grant-role", "u1", "ban_user").exit_code == 0
    assert _run(editorial_cli, "check", "u1", "ban_user").exit_code == 0
    assert _run(editorial_cli, "principal", "revoke-role", "u1", "ban_user").exit_code == 0
    assert _run(editorial_cli, "check", "u1", "ban_user").exit_code == 1


def test_revoke_group(editorial_cli):
    assert _run(editorial_cli, "principal", "revoke-group", "u1", "senior_editor").exit_code == 0
    assert _run(editorial_cli, "check", "u1", "edit_post", "-m", "any").exit_code == 1


def test_grant_to_unknown_principal(editorial_cli):
    result = _run(editorial_cli, "principal", "grant-group", "ghost", "editor")
    assert result.exit_code == 1


def test_deleted_group_no_longer_grants(editorial_cli):
    assert _run(editorial_cli, "group", "delete", "editor").exit_code == 0
    assert _run(editorial_cli, "check", "u1", "edit_post").exit_code == 1
    assert _run(editorial_cli, "check", "u1", "publish_post").exit_code == 0


# ── store lifecycle ──────────────────────────────────────────────────


def _track_closes():
    closed: list[SQLiteEntityStore] = []
    real_close = SQLiteEntityStore.close

    def recording_close(self):
        closed.append(self)
        real_close(self)

    return closed, patch.object(SQLiteEntityStore, "close", recording_close)


def test_store_closed_after_command(cfg):
    closed, patcher = _track_closes()
    with patcher:
        result = _run(cfg, "role", "list")
    assert result.exit_code == 0
    assert len(closed) == 1


def test_store_closed_after_failed_command(cfg):
    closed, patcher = _track_closes()
    with patcher:
        result = _run(cfg, "roles", "ghost")
    assert result.exit_code == 1
    assert len(closed) == 1
