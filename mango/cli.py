# mango — fluent query builder and schema migrations for MySQL
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Command line interface for mango migrations.

Commands:
    generate: Create a new migration file from the template
    status:   Show which migrations have run
    up:       Apply the next pending migration
    latest:   Apply all pending migrations
    down:     Roll back the most recent migration
    reset:    Roll back every executed migration

Connection settings come from ``MANGO_DB_*`` environment variables
(see :class:`mango.config.DatabaseConfig`); ``--sqlite PATH`` overrides
them with a SQLite database file.

Exit codes:
    0: Success
    1: Configuration or validation error (bad migration file, bad name)
    2: Database or ledger error
    3: A migration's up/down failed

Examples:
    mango generate create_users_table
    mango generate add_email_column ./db/migrations
    mango status --migrations ./db/migrations
    mango latest --sqlite ./dev.db
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mango.config import DatabaseConfig
from mango.database import Database
from mango.errors import (
    ConnectivityError,
    LedgerError,
    MigrationLoadError,
    MigrationStepError,
    ValidationError,
)
from mango.migrations.engine import MigrationEngine
from mango.migrations.loader import load_migrations
from mango.migrations.models import MigrationProgress, MigrationStatus
from mango.migrations.scaffold import generate_migration_file

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_DB_ERROR = 2
EXIT_MIGRATION_ERROR = 3

DEFAULT_MIGRATIONS_DIR = Path("./migrations")

console = Console()

app = typer.Typer(
    name="mango",
    help="Schema migrations for MySQL-compatible databases",
    add_completion=False,
)

MigrationsOption = typer.Option(
    DEFAULT_MIGRATIONS_DIR,
    "--migrations",
    "-m",
    help="Directory containing migration files",
)
SqliteOption = typer.Option(
    None,
    "--sqlite",
    help="Use this SQLite database file instead of MANGO_DB_* settings",
)
LedgerOption = typer.Option(
    None,
    "--ledger-table",
    help="Ledger table name (default: MANGO_LEDGER_TABLE or mango_migrations)",
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Schema migrations for MySQL-compatible databases."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _print_progress(progress: MigrationProgress) -> None:
    arrow = "→" if progress.direction == "up" else "←"
    step = f"[{progress.index}/{progress.total}]" if progress.total > 1 else ""
    if progress.status == "started":
        console.print(f"[cyan]{arrow}[/cyan] {step} [bold]{progress.name}[/bold]")
    elif progress.status == "completed":
        console.print("  [green]✓[/green] Completed")
    else:
        console.print("  [red]✗[/red] Failed")
        if progress.message:
            console.print(f"    [dim]Error: {escape(progress.message)}[/dim]")


def _config(sqlite: Optional[Path], ledger_table: Optional[str]) -> DatabaseConfig:
    config = DatabaseConfig.from_env(ledger_table=ledger_table)
    if sqlite is not None:
        config = config.with_sqlite(str(sqlite))
    return config


def _run(
    migrations_dir: Path,
    sqlite: Optional[Path],
    ledger_table: Optional[str],
    action: Callable[[MigrationEngine], Awaitable[Any]],
) -> Any:
    """Load migrations, connect, run *action*, and map errors to exit codes."""
    try:
        config = _config(sqlite, ledger_table)
        migrations = load_migrations(migrations_dir)
    except (ValidationError, MigrationLoadError) as e:
        console.print(f"[red]✗ Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    async def _session() -> Any:
        db = await Database.connect(config)
        try:
            engine = MigrationEngine(
                db,
                migrations,
                ledger_table=config.ledger_table,
                on_progress=_print_progress,
            )
            return await action(engine)
        finally:
            await db.disconnect()

    try:
        return asyncio.run(_session())
    except MigrationStepError as e:
        console.print(f"[red]✗ Migration failed:[/red] [bold]{e.migration}[/bold] ({e.phase})")
        raise typer.Exit(EXIT_MIGRATION_ERROR)
    except (ValidationError, ImportError) as e:
        # ImportError: the MySQL driver extra is not installed
        console.print(f"[red]✗ Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except (ConnectivityError, LedgerError) as e:
        console.print(f"[red]✗ Database error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_DB_ERROR)
    except Exception as e:
        # Driver errors (bad SQL, lost connection) surface untyped
        console.print(f"[red]✗ Unexpected database error:[/red] {type(e).__name__}: {escape(str(e))}")
        raise typer.Exit(EXIT_DB_ERROR)


def _print_status(status: MigrationStatus) -> None:
    console.print("\n[bold cyan]=== Migration Status ===[/bold cyan]\n")

    if status.state == "empty":
        console.print("  [dim]No migrations registered[/dim]")
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Status")
        table.add_column("Name", style="cyan")
        table.add_column("Timestamp", justify="right")
        for m in status.migrations:
            label = "[green]✓ Executed[/green]" if m.executed else "[yellow]⧗ Pending[/yellow]"
            table.add_row(label, m.name, str(m.timestamp))
        console.print(table)

    for name in status.orphans:
        console.print(f"[yellow]⚠[/yellow] Recorded but not registered: [bold]{name}[/bold]")

    console.print(
        f"\n[bold]Total:[/bold] {status.total} | "
        f"[green]Executed:[/green] {status.executed_count} | "
        f"[yellow]Pending:[/yellow] {status.pending_count}\n"
    )
    if status.state == "up_to_date":
        console.print("[green]✓[/green] Up to date")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def generate(
    name: str = typer.Argument(..., help="Migration name, e.g. create_users_table"),
    output_dir: Path = typer.Argument(DEFAULT_MIGRATIONS_DIR, help="Where to write the file"),
    template_dir: Optional[Path] = typer.Option(
        None,
        "--template-dir",
        help="Directory with a custom migration.py.j2",
    ),
):
    """Generate a new migration file."""
    try:
        path = generate_migration_file(name, output_dir, template_dir=template_dir)
    except ValidationError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    console.print(f"[green]✓[/green] Created migration: [cyan]{escape(str(path))}[/cyan]")


@app.command()
def status(
    migrations: Path = MigrationsOption,
    sqlite: Optional[Path] = SqliteOption,
    ledger_table: Optional[str] = LedgerOption,
    format: str = typer.Option("text", "--format", "-f", help="Output format: text or json"),
):
    """Show executed and pending migrations."""
    result = _run(migrations, sqlite, ledger_table, lambda engine: engine.status())
    if format == "json":
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_status(result)


@app.command()
def up(
    migrations: Path = MigrationsOption,
    sqlite: Optional[Path] = SqliteOption,
    ledger_table: Optional[str] = LedgerOption,
):
    """Apply the next pending migration."""
    applied = _run(migrations, sqlite, ledger_table, lambda engine: engine.migrate_up())
    if applied is None:
        console.print("[yellow]⚠[/yellow] No pending migrations to execute")


@app.command()
def latest(
    migrations: Path = MigrationsOption,
    sqlite: Optional[Path] = SqliteOption,
    ledger_table: Optional[str] = LedgerOption,
):
    """Apply all pending migrations."""
    applied = _run(migrations, sqlite, ledger_table, lambda engine: engine.migrate_up_to_latest())
    if not applied:
        console.print("[yellow]⚠[/yellow] No pending migrations to execute")
    else:
        console.print(f"[green]✓[/green] Applied {len(applied)} migration(s)")


@app.command()
def down(
    migrations: Path = MigrationsOption,
    sqlite: Optional[Path] = SqliteOption,
    ledger_table: Optional[str] = LedgerOption,
):
    """Roll back the most recent migration."""
    reverted = _run(migrations, sqlite, ledger_table, lambda engine: engine.migrate_down())
    if reverted is None:
        console.print("[yellow]⚠[/yellow] No migrations to roll back")


@app.command()
def reset(
    migrations: Path = MigrationsOption,
    sqlite: Optional[Path] = SqliteOption,
    ledger_table: Optional[str] = LedgerOption,
):
    """Roll back every executed migration, newest first."""
    reverted = _run(migrations, sqlite, ledger_table, lambda engine: engine.migrate_down_to_oldest())
    if not reverted:
        console.print("[yellow]⚠[/yellow] No migrations to roll back")
    else:
        console.print(f"[green]✓[/green] Rolled back {len(reverted)} migration(s)")


if __name__ == "__main__":
    app()
