"""Command-line interface for versionstore."""

import copy
import json
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from versionstore.backends import FileDocument
from versionstore.base import StoreAction, StoreError
from versionstore.config import ConfigError, StoreSettings, load_settings
from versionstore.definitions import DEFAULT_DEFINITION, load_definition
from versionstore.logging import configure_logging
from versionstore.store import StoreDefinition, VersionedStore, read_version

app = typer.Typer(
    name="versionstore",
    help="Inspect and migrate versioned settings documents",
    add_completion=False,
)

DefinitionOpt = Annotated[
    str,
    typer.Option("--definition", "-d", help="Store definition as module:attribute"),
]
ConfigOpt = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Settings file (YAML or JSON)"),
]
LogLevelOpt = Annotated[
    Optional[str],
    typer.Option("--log-level", help="Log level (overrides settings)"),
]
FileArg = Annotated[Path, typer.Argument(help="Path to the JSON or YAML document")]


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _prepare(
    definition_ref: str,
    config: Optional[Path],
    log_level: Optional[str],
) -> tuple[StoreDefinition, StoreSettings]:
    try:
        settings = load_settings(config_path=config)
        definition = load_definition(definition_ref)
    except (ConfigError, StoreError) as e:
        _fail(str(e))
    configure_logging(level=log_level or settings.log_level, format=settings.log_format)
    return definition, settings


def _open(
    file: Path,
    definition: StoreDefinition,
    settings: StoreSettings,
) -> tuple[FileDocument, VersionedStore]:
    try:
        document = FileDocument.load(file)
        store = definition.open(document, settings)
    except StoreError as e:
        _fail(str(e))
    return document, store


def _render(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2)
    return json.dumps(value)


@app.command(name="paths")
def paths_cmd(
    definition: DefinitionOpt = DEFAULT_DEFINITION,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = None,
) -> None:
    """List the paths declared by the current schema."""
    store_def, _ = _prepare(definition, config, log_level)
    store = VersionedStore.from_definition(store_def, {})

    table = Table(show_header=True, header_style="bold")
    table.add_column("Path", style="cyan")
    table.add_column("Type", style="white")
    table.add_column("Default", justify="right")

    for spec in store.paths():
        default = _render(store.get(spec.path)) if spec.leaf else ""
        table.add_row(spec.path, spec.type_name, default)

    console = Console()
    console.print(f"[bold]{store_def.name}[/bold] (version {store_def.version})")
    console.print(table)


@app.command(name="status")
def status_cmd(
    file: FileArg,
    definition: DefinitionOpt = DEFAULT_DEFINITION,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = None,
) -> None:
    """Show the stored version and pending migrations without writing."""
    store_def, _ = _prepare(definition, config, log_level)
    try:
        document = FileDocument.load(file)
    except StoreError as e:
        _fail(str(e))

    stored = read_version(document)
    current = store_def.version
    console = Console()
    console.print(f"[bold]{store_def.name}[/bold]: {file}")
    console.print(f"  Current version: {current}")

    if stored is None:
        console.print("  Stored version:  none")
        console.print("[yellow]Document is uninitialized; it will be initialized[/yellow]")
    elif stored == current:
        console.print(f"  Stored version:  {stored}")
        console.print("[green]✓ Up to date[/green]")
    elif stored > current:
        console.print(f"  Stored version:  {stored}")
        console.print(f"[red]Document is newer than version {current}[/red]")
    else:
        console.print(f"  Stored version:  {stored}")
        try:
            path = store_def.registry.find_path(stored, current)
        except StoreError as e:
            _fail(str(e))
        console.print(f"[yellow]{len(path)} pending migration(s):[/yellow]")
        for migration in path:
            description = f" {migration.description}" if migration.description else ""
            console.print(f"  {migration.info}{description}")


@app.command(name="migrate")
def migrate_cmd(
    file: FileArg,
    definition: DefinitionOpt = DEFAULT_DEFINITION,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Run the chain on a copy and write nothing"),
    ] = False,
) -> None:
    """Initialize or migrate a document to the current version."""
    store_def, settings = _prepare(definition, config, log_level)

    if dry_run:
        try:
            document = FileDocument.load(file)
        except StoreError as e:
            _fail(str(e))
        try:
            store = store_def.open(copy.deepcopy(dict(document)), settings)
        except StoreError as e:
            _fail(f"dry run failed: {e}")
        result = store.last_result
        if result.action is not StoreAction.MIGRATED:
            typer.echo(f"Nothing to migrate (stored version: {result.from_version})")
            return
        typer.echo(f"Dry run OK: {result.from_version} -> {result.to_version}")
        for step in result.migrations_applied:
            typer.echo(f"  would apply {step}")
        return

    document, store = _open(file, store_def, settings)
    result = store.last_result
    if result.changed:
        try:
            document.flush()
        except StoreError as e:
            _fail(str(e))

    typer.echo(f"{result.action.value}: {result.from_version} -> {result.to_version}")
    for step in result.migrations_applied:
        typer.echo(f"  applied {step}")


@app.command(name="get")
def get_cmd(
    file: FileArg,
    path: Annotated[str, typer.Argument(help="Dot-delimited path, e.g. hide.voice")],
    definition: DefinitionOpt = DEFAULT_DEFINITION,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = None,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (console, json)"),
    ] = "console",
) -> None:
    """Read a value. The document on disk is not rewritten."""
    store_def, settings = _prepare(definition, config, log_level)
    _, store = _open(file, store_def, settings)

    try:
        value = store.get(path)
    except StoreError as e:
        _fail(str(e))

    if format == "json":
        typer.echo(json.dumps({"path": path, "value": value}))
    else:
        typer.echo(_render(value))


@app.command(name="set")
def set_cmd(
    file: FileArg,
    path: Annotated[str, typer.Argument(help="Dot-delimited path, e.g. hide.voice")],
    value: Annotated[str, typer.Argument(help="Value, parsed as YAML (true, 3, {a: 1})")],
    definition: DefinitionOpt = DEFAULT_DEFINITION,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = None,
) -> None:
    """Write a value and flush the document."""
    store_def, settings = _prepare(definition, config, log_level)
    document, store = _open(file, store_def, settings)

    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError as e:
        _fail(f"Cannot parse value {value!r}: {e}")

    try:
        store.set(path, parsed)
        document.flush()
    except StoreError as e:
        _fail(str(e))

    typer.echo(f"{path} = {_render(parsed)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
