"""Command line interface for appshelf."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from appshelf.catalog import CatalogSnapshot, FolderEntry, Item
from appshelf.cli_support import configure_logging, entries_payload, snapshot_payload
from appshelf.config import ConfigError, ConfigManager, flatten_for_env
from appshelf.config.models import AppShelfConfig
from appshelf.organization import CommandError
from appshelf.service import CatalogService
from appshelf.state import StateError

console = Console()
err_console = Console(stderr=True)


@dataclass
class _CliState:
    config_path: Optional[Path] = None
    quiet: bool = False
    verbose: int = 0
    service: Optional[CatalogService] = field(default=None)


def _load_config(state: _CliState) -> AppShelfConfig:
    try:
        return ConfigManager(state.config_path).load()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _service(ctx: click.Context) -> CatalogService:
    """Return the service for this invocation, creating it on first use."""
    state: _CliState = ctx.ensure_object(_CliState)
    if state.service is None:
        config = _load_config(state)
        settings = config.logging
        if state.verbose:
            settings = settings.model_copy(update={"level": "DEBUG" if state.verbose > 1 else "INFO"})
        storage_dir = Path(config.storage.directory).expanduser()
        configure_logging(settings, log_path=storage_dir.parent / "appshelf.log", console=err_console)
        state.quiet = state.quiet or config.cli.quiet_default
        state.service = CatalogService(config)
    return state.service


def _emit(ctx: click.Context, message: Any) -> None:
    state: _CliState = ctx.ensure_object(_CliState)
    if not state.quiet:
        console.print(message)


def _run_command(ctx: click.Context, action: Callable[[CatalogService], Any]) -> CatalogSnapshot:
    """Run an organization command, then wait for the reconciliation it triggered."""
    service = _service(ctx)
    try:
        action(service)
    except (CommandError, StateError) as exc:
        service.settle()
        raise click.ClickException(str(exc)) from exc
    return service.settle()


def _emit_errors(snapshot: CatalogSnapshot) -> None:
    for error in snapshot.errors:
        err_console.print(f"[yellow]Skipped location: {error}[/yellow]")


def _entries_table(snapshot: CatalogSnapshot, entries: Iterable[Any]) -> Table:
    table = Table(title=f"Catalog (pass {snapshot.generation})")
    table.add_column("Kind", style="cyan")
    table.add_column("Name")
    table.add_column("ID", style="dim")
    table.add_column("Contents")
    for entry in entries:
        if isinstance(entry, FolderEntry):
            contents = ", ".join(member.name for member in entry.members) or "(empty)"
            table.add_row("folder", entry.name, entry.id, contents)
        else:
            table.add_row("item", entry.name, entry.id, entry.item.location)
    return table


def _items_table(snapshot: CatalogSnapshot, items: Iterable[Item]) -> Table:
    folder_names = {folder.id: folder.name for folder in snapshot.folders}
    table = Table(title="Applications")
    table.add_column("Name")
    table.add_column("ID", style="dim")
    table.add_column("Category")
    table.add_column("Weight", justify="right")
    table.add_column("Folder")
    for item in items:
        table.add_row(
            item.name,
            item.id,
            item.category or "",
            str(item.sort_weight),
            folder_names.get(item.folder_id or "", ""),
        )
    return table


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="appshelf")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file to use instead of ~/.appshelf/config.yaml.",
)
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (repeatable).")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], quiet: bool, verbose: int) -> None:
    """appshelf catalogs installed applications and organizes them into folders."""
    ctx.obj = _CliState(config_path=config_path, quiet=quiet, verbose=verbose)


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the snapshot as JSON.")
@click.pass_context
def scan(ctx: click.Context, json_output: bool) -> None:
    """Rescan search locations and summarize the catalog."""
    snapshot = _service(ctx).refresh(force=True)
    if json_output:
        console.print_json(data=snapshot_payload(snapshot))
        return
    _emit_errors(snapshot)
    _emit(
        ctx,
        f"[green]Scan complete: items={len(snapshot.items)}, folders={len(snapshot.folders)}, "
        f"entries={len(snapshot.entries)}.[/green]",
    )


@cli.command("list")
@click.option("--search", "query", default="", help="Only show entries whose name contains TEXT.")
@click.option("--json", "json_output", is_flag=True, help="Emit entries as JSON.")
@click.pass_context
def list_entries(ctx: click.Context, query: str, json_output: bool) -> None:
    """Show the top-level catalog: folders first, then loose items."""
    snapshot = _service(ctx).refresh(force=False)
    entries = snapshot.search(query)
    if json_output:
        console.print_json(data=snapshot_payload(snapshot, entries=entries))
        return
    _emit_errors(snapshot)
    console.print(_entries_table(snapshot, entries))


@cli.command()
@click.option("--search", "query", default="", help="Only show items whose name contains TEXT.")
@click.option("--category", help="Only show items in CATEGORY.")
@click.option("--json", "json_output", is_flag=True, help="Emit items as JSON.")
@click.pass_context
def apps(ctx: click.Context, query: str, category: Optional[str], json_output: bool) -> None:
    """List every visible item, including folder members."""
    snapshot = _service(ctx).refresh(force=False)
    items = snapshot.filter_items(query, category)
    if json_output:
        console.print_json(data={"items": [item.model_dump(mode="json") for item in items]})
        return
    console.print(_items_table(snapshot, items))


@cli.command()
@click.pass_context
def categories(ctx: click.Context) -> None:
    """List categories assigned to visible items."""
    for name in _service(ctx).refresh(force=False).categories():
        console.print(name)


@cli.command()
@click.pass_context
def hidden(ctx: click.Context) -> None:
    """List hidden item ids."""
    hidden_ids = _service(ctx).hidden_ids()
    if not hidden_ids:
        _emit(ctx, "[yellow]No hidden items.[/yellow]")
    for item_id in hidden_ids:
        console.print(item_id)


@cli.command()
@click.argument("item_ids", nargs=-1, required=True)
@click.pass_context
def hide(ctx: click.Context, item_ids: tuple[str, ...]) -> None:
    """Hide ITEM_IDS from the catalog."""
    _run_command(ctx, lambda service: service.commands.hide_many(item_ids))
    _emit(ctx, f"[green]Hidden {len(item_ids)} item(s).[/green]")


@cli.command()
@click.argument("item_ids", nargs=-1, required=True)
@click.pass_context
def unhide(ctx: click.Context, item_ids: tuple[str, ...]) -> None:
    """Show previously hidden ITEM_IDS again."""

    def _unhide(service: CatalogService) -> None:
        for item_id in item_ids:
            service.commands.unhide(item_id)

    _run_command(ctx, _unhide)
    _emit(ctx, f"[green]Unhidden {len(item_ids)} item(s).[/green]")


@cli.group()
def folder() -> None:
    """Create and edit folders."""


@folder.command("create")
@click.argument("name")
@click.argument("item_ids", nargs=-1, required=True)
@click.pass_context
def folder_create(ctx: click.Context, name: str, item_ids: tuple[str, ...]) -> None:
    """Create folder NAME holding two or more ITEM_IDS."""
    created: list[Any] = []
    _run_command(ctx, lambda service: created.append(service.commands.group(item_ids, name)))
    _emit(ctx, f"[green]Created folder {created[0].name} ({created[0].id}).[/green]")


@folder.command("add")
@click.argument("folder_id")
@click.argument("item_ids", nargs=-1, required=True)
@click.pass_context
def folder_add(ctx: click.Context, folder_id: str, item_ids: tuple[str, ...]) -> None:
    """Move ITEM_IDS into FOLDER_ID."""
    snapshot = _run_command(ctx, lambda service: service.commands.move_many(item_ids, folder_id))
    if snapshot.folder(folder_id) is None:
        _emit(ctx, f"[yellow]No folder with id {folder_id}; nothing changed.[/yellow]")
        return
    _emit(ctx, f"[green]Moved {len(item_ids)} item(s) into {folder_id}.[/green]")


@folder.command("remove")
@click.argument("folder_id")
@click.argument("item_id")
@click.pass_context
def folder_remove(ctx: click.Context, folder_id: str, item_id: str) -> None:
    """Take ITEM_ID out of FOLDER_ID."""
    snapshot = _run_command(
        ctx, lambda service: service.commands.remove_from_folder(item_id, folder_id)
    )
    suffix = "" if snapshot.folder(folder_id) else "; folder removed"
    _emit(ctx, f"[green]Removed {item_id} from {folder_id}{suffix}.[/green]")


@folder.command("rename")
@click.argument("folder_id")
@click.argument("name")
@click.pass_context
def folder_rename(ctx: click.Context, folder_id: str, name: str) -> None:
    """Rename FOLDER_ID to NAME."""
    _run_command(ctx, lambda service: service.commands.rename_folder(folder_id, name))
    _emit(ctx, f"[green]Renamed {folder_id}.[/green]")


@folder.command("delete")
@click.argument("folder_id")
@click.pass_context
def folder_delete(ctx: click.Context, folder_id: str) -> None:
    """Delete FOLDER_ID; its items return to the top level."""
    _run_command(ctx, lambda service: service.commands.delete_folder(folder_id))
    _emit(ctx, f"[green]Deleted folder {folder_id}.[/green]")


@cli.command()
@click.argument("item_ids", nargs=-1, required=True)
@click.option("--value", help="Category to assign.")
@click.option("--clear", is_flag=True, help="Remove the category instead.")
@click.pass_context
def category(
    ctx: click.Context, item_ids: tuple[str, ...], value: Optional[str], clear: bool
) -> None:
    """Assign or clear the category of ITEM_IDS."""
    if clear == bool(value):
        raise click.UsageError("Pass exactly one of --value or --clear.")
    target = None if clear else value
    _run_command(ctx, lambda service: service.commands.set_category_many(item_ids, target))
    _emit(ctx, f"[green]Updated category for {len(item_ids)} item(s).[/green]")


@cli.command()
@click.argument("item_id")
@click.argument("weight", type=int)
@click.pass_context
def weight(ctx: click.Context, item_id: str, weight: int) -> None:
    """Set the manual sort WEIGHT of ITEM_ID (lower sorts first)."""
    _run_command(ctx, lambda service: service.commands.set_sort_weight(item_id, weight))
    _emit(ctx, f"[green]Sort weight of {item_id} set to {weight}.[/green]")


@cli.command()
@click.argument("item_id")
@click.pass_context
def launch(ctx: click.Context, item_id: str) -> None:
    """Open ITEM_ID with the system handler."""
    service = _service(ctx)
    service.refresh(force=False)
    if not service.launch(item_id):
        raise click.ClickException(f"Could not launch {item_id}.")
    _emit(ctx, f"[green]Launched {item_id}.[/green]")


@cli.group()
def config() -> None:
    """Manage appshelf configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides.")
@click.option("--env", "as_env", is_flag=True, help="Show the values as environment variables.")
@click.pass_context
def config_view(ctx: click.Context, no_env: bool, as_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    state: _CliState = ctx.ensure_object(_CliState)
    try:
        loaded = ConfigManager(state.config_path).load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for key, value in flatten_for_env(loaded).items():
            console.print(f"{key}={value}", markup=False)
        return
    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML value to assign to KEY.")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    state: _CliState = ctx.ensure_object(_CliState)
    try:
        before, after = ConfigManager(state.config_path).set_value(key, value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    diff = difflib.unified_diff(
        before.splitlines(), after.splitlines(), "before", "after", lineterm=""
    )
    for line in diff:
        console.print(line, markup=False, highlight=False)


def main() -> None:
    cli()


__all__ = ["cli", "main"]
