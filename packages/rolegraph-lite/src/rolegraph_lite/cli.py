"""CLI entry point for rolegraph."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, NoReturn

import typer
import yaml
from rich import print as rprint
from rich.syntax import Syntax
from rich.table import Table

from rolegraph_core.authorizer import Authorizer
from rolegraph_core.config import RoleGraphConfig, load_config
from rolegraph_core.config.loader import DEFAULT_CONFIG_TEMPLATE
from rolegraph_core.errors import InvalidArgumentError, RoleGraphError
from rolegraph_core.interfaces.store import MutableEntityStore, Role, RoleGroup
from rolegraph_core.logging_config import setup_logging
from rolegraph_core.plugins.loader import PluginLoader, PluginNotFoundError
from rolegraph_core.resolver.models import RoleSet

app = typer.Typer(
    name="rolegraph",
    help="Resolve nested role groups and answer role membership queries.",
)

config_app = typer.Typer(help="Manage rolegraph configuration.")
app.add_typer(config_app, name="config")

role_app = typer.Typer(help="Create, delete and list roles.")
app.add_typer(role_app, name="role")

group_app = typer.Typer(help="Manage role groups and their contents.")
app.add_typer(group_app, name="group")

principal_app = typer.Typer(help="Manage principals and their assignments.")
app.add_typer(principal_app, name="principal")

# Global state
_config: RoleGraphConfig | None = None
_open_stores: list = []


def _get_config() -> RoleGraphConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to rolegraph.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    setup_logging(_config.log_level, _config.log_format)
    ctx.call_on_close(_close_stores)


# -- helpers -------------------------------------------------------------------


def _open_store() -> MutableEntityStore:
    try:
        store = PluginLoader(_get_config()).create_store()
    except PluginNotFoundError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    _open_stores.append(store)
    if not isinstance(store, MutableEntityStore):
        rprint(f"[red]Error:[/red] store backend {type(store).__name__} is read-only")
        raise typer.Exit(1)
    return store


def _close_stores() -> None:
    """Release every store opened by the current command."""
    while _open_stores:
        store = _open_stores.pop()
        close = getattr(store, "close", None)
        if close is not None:
            close()


def _fail(e: Exception) -> NoReturn:
    rprint(f"[red]Error:[/red] {e}")
    raise typer.Exit(2 if isinstance(e, InvalidArgumentError) else 1)


def _require_role(store: MutableEntityStore, name: str) -> Role:
    role = store.get_role(name)
    if role is None:
        rprint(f"[red]Error:[/red] role not found: {name!r}")
        raise typer.Exit(1)
    return role


def _require_group(store: MutableEntityStore, name: str) -> RoleGroup:
    group = store.get_role_group(name)
    if group is None:
        rprint(f"[red]Error:[/red] role group not found: {name!r}")
        raise typer.Exit(1)
    return group


def _display_entities(title: str, entities: list[Role] | list[RoleGroup]) -> None:
    table = Table(title=f"{title} ({len(entities)})")
    table.add_column("Id", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for e in entities:
        table.add_row(str(e.id), e.name, e.description or "-")
    rprint(table)


def _display_role_set(title: str, role_set: RoleSet) -> None:
    table = Table(title=f"{title} ({len(role_set)})")
    table.add_column("Role", style="green")
    table.add_column("Description")
    for role in sorted(role_set, key=lambda r: r.name):
        table.add_row(role.name, role.description or "-")
    rprint(table)


# -- config --------------------------------------------------------------------


@config_app.command("init")
def config_init(
    path: str = typer.Option("rolegraph.yaml", "--path", "-p", help="Where to write the file"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a default rolegraph.yaml."""
    target = Path(path)
    if target.exists() and not force:
        rprint(f"[yellow]{target} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Wrote[/green] {target}")


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration."""
    dumped = yaml.safe_dump(_get_config().model_dump(), sort_keys=False)
    rprint(Syntax(dumped, "yaml", theme="monokai"))


# -- store bootstrap -----------------------------------------------------------


@app.command()
def init() -> None:
    """Create the store schema and seed the default role groups."""
    store = _open_store()
    seed = getattr(store, "seed_defaults", None)
    if seed is not None:
        seed()
    rprint(f"[green]Initialized[/green] {type(store).__name__}")


# -- roles ---------------------------------------------------------------------


@role_app.command("add")
def role_add(
    name: str = typer.Argument(..., help="Role name (lower_case_words)"),
    description: str = typer.Option("", "--description", "-d"),
) -> None:
    """Create a role."""
    store = _open_store()
    try:
        role = store.create_role(name, description)
    except RoleGraphError as e:
        _fail(e)
    rprint(f"[green]Created role[/green] {role.name} (id={role.id})")


@role_app.command("delete")
def role_delete(name: str = typer.Argument(..., help="Role name")) -> None:
    """Soft-delete a role."""
    store = _open_store()
    try:
        store.delete_role(name)
    except RoleGraphError as e:
        _fail(e)
    rprint(f"[green]Deleted role[/green] {name}")


@role_app.command("list")
def role_list() -> None:
    """List active roles."""
    _display_entities("Roles", _open_store().list_roles())


# -- groups --------------------------------------------------------------------


@group_app.command("add")
def group_add(
    name: str = typer.Argument(..., help="Group name (lower_case_words)"),
    description: str = typer.Option("", "--description", "-d"),
) -> None:
    """Create a role group."""
    store = _open_store()
    try:
        group = store.create_role_group(name, description)
    except RoleGraphError as e:
        _fail(e)
    rprint(f"[green]Created group[/green] {group.name} (id={group.id})")


@group_app.command("delete")
def group_delete(name: str = typer.Argument(..., help="Group name")) -> None:
    """Soft-delete a role group."""
    store = _open_store()
    try:
        store.delete_role_group(name)
    except RoleGraphError as e:
        _fail(e)
    rprint(f"[green]Deleted group[/green] {name}")


@group_app.command("list")
def group_list() -> None:
    """List active role groups."""
    _display_entities("Role groups", _open_store().list_role_groups())


@group_app.command("attach")
def group_attach(group: str, role: str) -> None:
    """Put ROLE into GROUP."""
    store = _open_store()
    store.attach_role(_require_group(store, group).id, _require_role(store, role).id)
    rprint(f"[green]Attached[/green] {role} -> {group}")


@group_app.command("detach")
def group_detach(group: str, role: str) -> None:
    """Remove ROLE from GROUP."""
    store = _open_store()
    store.detach_role(_require_group(store, group).id, _require_role(store, role).id)
    rprint(f"[green]Detached[/green] {role} from {group}")


@group_app.command("nest")
def group_nest(parent: str, child: str) -> None:
    """Make CHILD a sub-group of PARENT."""
    store = _open_store()
    store.attach_child(_require_group(store, parent).id, _require_group(store, child).id)
    rprint(f"[green]Nested[/green] {child} under {parent}")


@group_app.command("unnest")
def group_unnest(parent: str, child: str) -> None:
    """Remove CHILD from PARENT."""
    store = _open_store()
    store.detach_child(_require_group(store, parent).id, _require_group(store, child).id)
    rprint(f"[green]Unnested[/green] {child} from {parent}")


@group_app.command("roles")
def group_roles(group: str) -> None:
    """Show every role GROUP grants, including nested groups."""
    store = _open_store()
    authorizer = Authorizer.from_config(_get_config(), store=store)
    try:
        role_set = authorizer.resolve_group_roles(_require_group(store, group).id)
    except RoleGraphError as e:
        _fail(e)
    _display_role_set(f"Roles in {group}", role_set)


@group_app.command("check")
def group_check(
    group: str,
    roles: Annotated[list[str], typer.Argument(help="Role names to look for")],
) -> None:
    """Exit 0 if GROUP (or a sub-group) holds any of ROLES."""
    store = _open_store()
    authorizer = Authorizer.from_config(_get_config(), store=store)
    try:
        granted = authorizer.group_has_role(_require_group(store, group).id, roles)
    except RoleGraphError as e:
        _fail(e)
    if not granted:
        rprint(f"[red]No[/red] {group} does not hold any of {', '.join(roles)}")
        raise typer.Exit(1)
    rprint(f"[green]Yes[/green] {group} holds one of {', '.join(roles)}")


# -- principals ----------------------------------------------------------------


@principal_app.command("add")
def principal_add(principal_id: str) -> None:
    """Register a principal id."""
    _open_store().add_principal(principal_id)
    rprint(f"[green]Added principal[/green] {principal_id}")


@principal_app.command("grant-role")
def principal_grant_role(principal_id: str, role: str) -> None:
    """Assign ROLE directly to a principal."""
    store = _open_store()
    try:
        store.assign_role(principal_id, _require_role(store, role).id)
    except RoleGraphError as e:
        _fail(e)
    rprint(f"[green]Granted[/green] {role} to {principal_id}")


@principal_app.command("grant-group")
def principal_grant_group(principal_id: str, group: str) -> None:
    """Assign GROUP to a principal."""
    store = _open_store()
    try:
        store.assign_role_group(principal_id, _require_group(store, group).id)
    except RoleGraphError as e:
        _fail(e)
    rprint(f"[green]Granted[/green] group {group} to {principal_id}")


@principal_app.command("revoke-role")
def principal_revoke_role(principal_id: str, role: str) -> None:
    """Remove a direct ROLE assignment."""
    store = _open_store()
    store.unassign_role(principal_id, _require_role(store, role).id)
    rprint(f"[green]Revoked[/green] {role} from {principal_id}")


@principal_app.command("revoke-group")
def principal_revoke_group(principal_id: str, group: str) -> None:
    """Remove a GROUP assignment."""
    store = _open_store()
    store.unassign_role_group(principal_id, _require_group(store, group).id)
    rprint(f"[green]Revoked[/green] group {group} from {principal_id}")


# -- queries -------------------------------------------------------------------


@app.command()
def roles(principal_id: str) -> None:
    """Show the effective roles of a principal."""
    authorizer = Authorizer.from_config(_get_config(), store=_open_store())
    try:
        role_set = authorizer.resolve_all_roles(principal_id)
    except RoleGraphError as e:
        _fail(e)
    _display_role_set(f"Roles for {principal_id}", role_set)


@app.command()
def check(
    principal_id: str,
    roles: Annotated[list[str], typer.Argument(help="Role names to require")],
    match: str = typer.Option("all", "--match", "-m", help="all | any"),
) -> None:
    """Exit 0 if the principal holds ROLES, 1 if not, 2 on bad input."""
    authorizer = Authorizer.from_config(_get_config(), store=_open_store())
    try:
        granted = authorizer.has_role(principal_id, roles, match)
    except RoleGraphError as e:
        _fail(e)
    if not granted:
        rprint(f"[red]Denied[/red] {principal_id} lacks {match} of {', '.join(roles)}")
        raise typer.Exit(1)
    rprint(f"[green]Granted[/green] {principal_id} holds {match} of {', '.join(roles)}")


if __name__ == "__main__":
    app()
