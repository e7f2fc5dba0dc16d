"""Database management commands."""

from contextlib import nullcontext

import typer
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from event_relay.cli.utils import console, ensure_database
from event_relay.database import AlembicManager, borrow_db_session
from event_relay.database.advisory_lock import AdvisoryLock, advisory_lock, supports_advisory_locks

app = typer.Typer(help="Database operations")


def _check_connection() -> None:
    ensure_database()
    try:
        with borrow_db_session() as session:
            session.exec(text("SELECT 1"))
    except SQLAlchemyError as e:
        console.print(f"[red]Database connection failed: {e}[/red]")
        raise typer.Exit(1) from e
    console.print("[green]Database connection OK[/green]")


@app.command()
def check():
    """Check database connection and schema status.

    No migration is performed.

    Examples:
        event-relay-cli db check
    """
    console.print("[bold]Checking database connection and schema...[/bold]\n")
    _check_connection()

    message, details, is_success = AlembicManager().validate_schema_state()
    if not is_success:
        console.print(f"[red]{message}[/red]")
        if details.get("head_revision"):
            console.print(f"[dim]Current: {details.get('current_revision', 'Unknown')}[/dim]")
            console.print(f"[dim]Head: {details.get('head_revision', 'Unknown')}[/dim]")
        raise typer.Exit(1)

    console.print(f"[dim]Current revision: {details.get('current_revision', 'Unknown')}[/dim]")
    console.print("[green]Database is accessible and schema is up to date![/green]")


@app.command()
def upgrade(
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt and proceed with migration automatically",
    ),
):
    """Upgrade database to latest schema version.

    On PostgreSQL the migration runs under an advisory lock so that
    concurrently starting instances do not migrate twice.

    Examples:
        event-relay-cli db upgrade
        event-relay-cli db upgrade --yes
    """
    console.print("[bold]Upgrading database to latest version...[/bold]\n")
    _check_connection()

    alembic_manager = AlembicManager()
    message, details, is_success = alembic_manager.validate_schema_state()

    if is_success:
        console.print("[green]Database is already at latest version[/green]")
        console.print(f"[dim]Current revision: {details.get('current_revision', 'Unknown')}[/dim]")
        return

    console.print("[yellow]Database upgrade needed:[/yellow]")
    console.print(f"[dim]{message}[/dim]\n")

    if not yes:
        console.print("[yellow]The upgrade process will modify your database schema.[/yellow]")
        if not typer.confirm("Proceed with database upgrade?"):
            console.print("[yellow]Upgrade cancelled.[/yellow]")
            raise typer.Exit(0)

    lock = advisory_lock(AdvisoryLock.MIGRATION) if supports_advisory_locks() else nullcontext()
    try:
        with lock:
            success = alembic_manager.perform_migration()
    except (OSError, ValueError, RuntimeError, SQLAlchemyError) as e:
        console.print(f"[red]Upgrade error: {e!s}[/red]")
        raise typer.Exit(1) from None

    if not success:
        console.print("[red]Database upgrade failed[/red]")
        raise typer.Exit(1)

    message, _, is_success = alembic_manager.validate_schema_state()
    if not is_success:
        console.print(f"[red]Post-upgrade validation failed: {message}[/red]")
        raise typer.Exit(1)
    console.print("[bold green]Database upgrade completed successfully![/bold green]")
