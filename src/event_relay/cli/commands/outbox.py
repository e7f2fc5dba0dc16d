"""Outbox inspection and recovery commands."""

import typer
from rich.table import Table

from event_relay.cli.utils import console, ensure_database, run_async
from event_relay.outbox import OutboxStatus, SqlOutboxStore

app = typer.Typer(help="Outbox operations")


@app.command()
def status():
    """Show how many outbox entries are in each status.

    Examples:
        event-relay-cli outbox status
    """
    ensure_database()
    counts = run_async(SqlOutboxStore().count_by_status, "Counting outbox entries")

    table = Table(title="Outbox entries")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for outbox_status in OutboxStatus:
        table.add_row(outbox_status.value, str(counts[outbox_status]))
    console.print(table)

    if counts[OutboxStatus.FAILED]:
        console.print(f"[yellow]{counts[OutboxStatus.FAILED]} entries need attention (see 'outbox failed')[/yellow]")


@app.command()
def failed(
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Maximum number of entries to show"),
):
    """List dead-lettered outbox entries, oldest first.

    Examples:
        event-relay-cli outbox failed --limit 20
    """
    ensure_database()
    store = SqlOutboxStore()
    entries = run_async(lambda: store.list_entries(OutboxStatus.FAILED, limit), "Listing failed entries")

    if not entries:
        console.print("[green]No failed outbox entries[/green]")
        return

    table = Table(title=f"Failed outbox entries ({len(entries)})")
    table.add_column("ID", justify="right", no_wrap=True)
    table.add_column("Event", no_wrap=True)
    table.add_column("Aggregate", no_wrap=True)
    table.add_column("Created", no_wrap=True)
    table.add_column("Retries", justify="right")
    table.add_column("Last error", overflow="fold")
    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.event_type,
            f"{entry.aggregate_type}:{entry.aggregate_id}",
            entry.created_at.isoformat(timespec="seconds"),
            str(entry.retry_count),
            entry.last_error or "",
        )
    console.print(table)


@app.command("retry-failed")
def retry_failed(
    entry_ids: list[int] = typer.Argument(None, help="Entries to requeue (default: all failed entries)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Move failed outbox entries back to PENDING with a fresh retry budget.

    Examples:
        event-relay-cli outbox retry-failed --yes
        event-relay-cli outbox retry-failed 12 15
    """
    ensure_database()
    ids = entry_ids or None

    if not yes:
        target = f"{len(ids)} failed entries" if ids else "all failed entries"
        if not typer.confirm(f"Requeue {target}?"):
            console.print("[yellow]Retry cancelled.[/yellow]")
            raise typer.Exit(0)

    store = SqlOutboxStore()
    requeued = run_async(lambda: store.requeue_failed(ids), "Requeueing failed entries")
    console.print(f"[green]Requeued {requeued} outbox entries[/green]")
