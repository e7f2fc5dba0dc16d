"""Main CLI application."""

import typer

from event_relay.cli.commands import db, outbox
from event_relay.database import dispose_db
from event_relay.settings import get_settings

app = typer.Typer(
    name="event-relay-cli",
    help="Event relay CLI - Administrative tools",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    database_url: str = typer.Option(
        None,
        help="Database URL (overrides EVENT_RELAY_DATABASE_URL)",
        metavar="<dsn>",
    ),
):
    """Global options for all commands."""
    if database_url is not None:
        get_settings().database_url = database_url
    ctx.call_on_close(dispose_db)


app.add_typer(db.app, name="db")
app.add_typer(outbox.app, name="outbox")
