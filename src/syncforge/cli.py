"""
Command-line interface for syncforge.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path
from typing import Iterable, List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConnectionTarget, SyncForgeConfig
from .data.models import DataDiffEntry, DataSyncOptions
from .exceptions import SyncForgeError
from .logging_setup import setup_logging
from .schema.models import DiffEntry
from .service import SyncService
from .statements import Dialect


console = Console()

KIND_STYLES = {
    "added": "green",
    "modified": "yellow",
    "removed": "red",
    "insert": "green",
    "update": "yellow",
    "delete": "red",
}


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SyncForgeError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def config_option(func):
    return click.option(
        "--config",
        "-c",
        type=click.Path(dir_okay=False),
        default=None,
        help="Configuration file path (default: ~/.syncforge/config.yaml)",
    )(func)


def _debug_enabled() -> bool:
    ctx = click.get_current_context(silent=True)
    if ctx is None:
        return False
    obj = ctx.find_root().obj or {}
    return bool(obj.get("debug"))


def _load_config(path: Optional[str]) -> SyncForgeConfig:
    """Load the configuration file and set up logging from it."""
    config = SyncForgeConfig.from_yaml(path or SyncForgeConfig.default_path())
    setup_logging(config.logging, debug=_debug_enabled())
    return config


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """syncforge: compare and synchronize database schemas and data."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=None,
    help="Output configuration file path (default: ~/.syncforge/config.yaml)",
)
@handle_errors
def init(output: Optional[str]):
    """Initialize a new syncforge configuration file."""
    path = Path(output) if output else SyncForgeConfig.default_path()
    if path.exists():
        if not click.confirm(f"Configuration file {path} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(path)
    console.print(f"[green]✓[/green] Configuration file created: {path}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the connection profiles with your database details")
    console.print("2. Run: syncforge test-connection")
    console.print("3. Run: syncforge schema-diff --source dev --target staging")


@main.command()
@config_option
@handle_errors
def validate_config(config: Optional[str]):
    """Validate configuration file."""
    syncforge_config = _load_config(config)
    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(syncforge_config)


@main.command()
@config_option
@click.option("--name", required=True, help="Profile name")
@click.option(
    "--dialect",
    type=click.Choice([d.value for d in Dialect]),
    default=Dialect.MYSQL.value,
    help="Database type",
)
@click.option("--host", default="localhost", help="Database host")
@click.option("--port", type=int, default=None, help="Database port")
@click.option("--user", default="", help="Database user")
@click.option("--password", default="", help="Database password")
@click.option("--database", default="", help="Database name")
@click.option("--file-path", default=None, help="SQLite database file")
@handle_errors
def save_connection(
    config: Optional[str],
    name: str,
    dialect: str,
    host: str,
    port: Optional[int],
    user: str,
    password: str,
    database: str,
    file_path: Optional[str],
):
    """Add or replace a saved connection profile."""
    path = Path(config) if config else SyncForgeConfig.default_path()
    syncforge_config = SyncForgeConfig.load_or_create(path)
    try:
        target = ConnectionTarget(
            dialect=dialect,
            host=host,
            port=port,
            user=user,
            password=password,
            database=database,
            file_path=file_path,
        )
    except ValueError as e:
        console.print(f"[red]✗[/red] Invalid connection: {e}")
        sys.exit(1)

    syncforge_config.save_connection(name, target)
    syncforge_config.to_yaml(path)
    console.print(f"[green]✓[/green] Saved connection '{name}' ({target.display_name})")


@main.command()
@config_option
@click.option("--name", required=True, help="Profile name")
@handle_errors
def delete_connection(config: Optional[str], name: str):
    """Remove a saved connection profile."""
    path = Path(config) if config else SyncForgeConfig.default_path()
    syncforge_config = SyncForgeConfig.from_yaml(path)
    if not syncforge_config.delete_connection(name):
        console.print(f"[yellow]No connection named '{name}'[/yellow]")
        return
    syncforge_config.to_yaml(path)
    console.print(f"[green]✓[/green] Deleted connection '{name}'")


@main.command()
@config_option
@click.option("--profile", "-p", default=None, help="Only test this profile")
@handle_errors
def test_connection(config: Optional[str], profile: Optional[str]):
    """Test saved database connections."""
    syncforge_config = _load_config(config)
    names = [profile] if profile else list(syncforge_config.connections)
    service = SyncService(syncforge_config.diff)

    async def run_connection_tests() -> int:
        failed = 0
        for name in names:
            target = syncforge_config.get_connection(name)
            result = await service.test_connection(target)
            if result["status"] == "connected":
                console.print(
                    f"  ✅ [green]{name}[/green] {target.display_name} "
                    f"({result['response_time_ms']:.1f}ms)"
                )
                console.print(f"     Version: {(str(result['version']).splitlines() or [''])[0]}")
            else:
                console.print(f"  ❌ [red]{name}[/red] {target.display_name}: {result['error']}")
                failed += 1
        return failed

    failed = asyncio.run(run_connection_tests())
    if failed:
        console.print(f"\n[bold yellow]{failed} connection(s) failed[/bold yellow]")
        sys.exit(1)
    console.print("\n[bold green]All connections working![/bold green]")


@main.command()
@config_option
@click.option("--profile", "-p", required=True, help="Connection profile")
@handle_errors
def tables(config: Optional[str], profile: str):
    """List tables with their primary keys and row counts."""
    syncforge_config = _load_config(config)
    target = syncforge_config.get_connection(profile)
    service = SyncService(syncforge_config.diff)

    infos = asyncio.run(service.get_tables_for_sync(target))

    table = Table(title=f"Tables in {target.display_name}")
    table.add_column("Table", style="cyan")
    table.add_column("Primary Key", style="magenta")
    table.add_column("Columns", style="green")
    table.add_column("Rows", justify="right", style="yellow")
    for info in infos:
        table.add_row(
            info.table_name,
            ", ".join(info.primary_keys) if info.is_eligible else "[red]none[/red]",
            str(len(info.columns)),
            f"{info.source_count:,}",
        )
    console.print(table)


@main.command()
@config_option
@click.option("--source", "-s", required=True, help="Source connection profile")
@click.option("--target", "-t", required=True, help="Target connection profile")
@click.option(
    "--output", "-o", type=click.Path(), default=None, help="Write statements to a SQL file"
)
@handle_errors
def schema_diff(config: Optional[str], source: str, target: str, output: Optional[str]):
    """Compare the structure of two databases."""
    syncforge_config = _load_config(config)
    source_target = syncforge_config.get_connection(source)
    target_target = syncforge_config.get_connection(target)
    service = SyncService(syncforge_config.diff)

    entries = asyncio.run(service.compare_schemas(source_target, target_target))
    if not entries:
        console.print("[green]✓[/green] Schemas are identical")
        return

    _display_schema_diff(entries)
    if output:
        _write_statements(output, (entry.sql for entry in entries))
        console.print(f"[green]✓[/green] {len(entries)} statements written to {output}")


@main.command()
@config_option
@click.option("--source", "-s", required=True, help="Source connection profile")
@click.option("--target", "-t", required=True, help="Target connection profile")
@click.option("--table", required=True, help="Table to compare")
@click.option("--insert/--no-insert", default=None, help="Report rows missing from the target")
@click.option("--update/--no-update", default=None, help="Report rows that differ")
@click.option("--delete/--no-delete", default=None, help="Report rows missing from the source")
@click.option(
    "--output", "-o", type=click.Path(), default=None, help="Write statements to a SQL file"
)
@handle_errors
def data_diff(
    config: Optional[str],
    source: str,
    target: str,
    table: str,
    insert: Optional[bool],
    update: Optional[bool],
    delete: Optional[bool],
    output: Optional[str],
):
    """Compare the rows of one table."""
    syncforge_config = _load_config(config)
    source_target = syncforge_config.get_connection(source)
    target_target = syncforge_config.get_connection(target)
    service = SyncService(syncforge_config.diff)

    defaults = service.default_options()
    options = DataSyncOptions(
        sync_insert=defaults.sync_insert if insert is None else insert,
        sync_update=defaults.sync_update if update is None else update,
        sync_delete=defaults.sync_delete if delete is None else delete,
    )

    entries = asyncio.run(
        service.compare_table_data(source_target, target_target, table, options)
    )
    if not entries:
        console.print(f"[green]✓[/green] Table {table} is in sync")
        return

    _display_data_diff(entries)
    if output:
        _write_statements(output, (entry.sql for entry in entries))
        console.print(f"[green]✓[/green] {len(entries)} statements written to {output}")


@main.command()
@config_option
@click.option("--source", "-s", required=True, help="Source connection profile")
@click.option("--target", "-t", required=True, help="Target connection profile")
@click.option("--table", required=True, help="Table to summarize")
@handle_errors
def summary(config: Optional[str], source: str, target: str, table: str):
    """Show row counts and pending changes for one table."""
    syncforge_config = _load_config(config)
    service = SyncService(syncforge_config.diff)

    info = asyncio.run(service.get_data_sync_summary(
        syncforge_config.get_connection(source),
        syncforge_config.get_connection(target),
        table,
    ))

    summary_table = Table(title=f"Data sync summary: {info.table_name}")
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", justify="right", style="magenta")
    summary_table.add_row("Primary key", ", ".join(info.primary_keys))
    summary_table.add_row("Source rows", f"{info.source_count:,}")
    summary_table.add_row("Target rows", f"{info.target_count:,}")
    summary_table.add_row("Inserts", str(info.insert_count))
    summary_table.add_row("Updates", str(info.update_count))
    summary_table.add_row("Deletes", str(info.delete_count))
    summary_table.add_row("Total changes", str(info.total_changes))
    console.print(summary_table)


def _create_default_config() -> SyncForgeConfig:
    """Create a default configuration with example profiles."""
    return SyncForgeConfig(
        connections={
            "dev": ConnectionTarget(
                dialect=Dialect.MYSQL,
                host="localhost",
                port=3306,
                user="${MYSQL_USER}",
                password="${MYSQL_PASSWORD}",
                database="app_dev",
            ),
            "staging": ConnectionTarget(
                dialect=Dialect.MYSQL,
                host="${STAGING_HOST}",
                port=3306,
                user="${MYSQL_USER}",
                password="${MYSQL_PASSWORD}",
                database="app",
            ),
            "local": ConnectionTarget(
                dialect=Dialect.SQLITE,
                file_path="app.db",
            ),
        }
    )


def _display_config_summary(config: SyncForgeConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")

    profiles = Table(title="Connection Profiles")
    profiles.add_column("Name", style="cyan")
    profiles.add_column("Type", style="magenta")
    profiles.add_column("Location", style="green")

    for name, target in config.connections.items():
        profiles.add_row(name, target.dialect.value, target.display_name)

    console.print(profiles)


def _display_schema_diff(entries: List[DiffEntry]):
    table = Table(title=f"Schema differences ({len(entries)})")
    table.add_column("Type")
    table.add_column("Table", style="cyan")
    table.add_column("Detail")
    table.add_column("SQL", style="dim")
    for entry in entries:
        style = KIND_STYLES.get(entry.kind.value, "white")
        table.add_row(
            f"[{style}]{entry.kind.value}[/{style}]",
            escape(entry.table_name),
            escape(entry.detail),
            escape(entry.sql),
        )
    console.print(table)


def _display_data_diff(entries: List[DataDiffEntry]):
    table = Table(title=f"Data differences ({len(entries)})")
    table.add_column("Type")
    table.add_column("Key", style="cyan")
    table.add_column("SQL", style="dim")
    for entry in entries:
        style = KIND_STYLES.get(entry.kind.value, "white")
        key = ", ".join(f"{k}={v}" for k, v in entry.primary_key.as_dict().items())
        table.add_row(f"[{style}]{entry.kind.value}[/{style}]", escape(key), escape(entry.sql))
    console.print(table)


def _write_statements(path: str, statements: Iterable[str]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        for statement in statements:
            f.write(statement)
            f.write("\n")


if __name__ == "__main__":
    main()
