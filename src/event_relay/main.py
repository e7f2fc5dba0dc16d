"""Main entry point for the event relay using Typer and Pydantic Settings."""

import asyncio
import signal

import typer
from loguru import logger

from event_relay.bootstrap import build_event_core, load_collaborators
from event_relay.database import dispose_db
from event_relay.logging import setup_logging, setup_sqlalchemy_logging
from event_relay.settings import Settings, get_settings

app = typer.Typer(help="Event relay - drains the transactional outbox through the event bus")


LOG_LEVEL_OPTION = typer.Option(
    None,
    help="Log level (overrides EVENT_RELAY_LOG_LEVEL)",
    metavar="<level>",
    case_sensitive=False,
)  # fmt: skip
SQL_LOG_OPTION = typer.Option(
    None,
    help="Enable/disable SQL query logging (overrides EVENT_RELAY_SQL_LOG)",
)  # fmt: skip
DATABASE_URL_OPTION = typer.Option(
    None,
    help="Database URL (overrides EVENT_RELAY_DATABASE_URL)",
    metavar="<dsn>",
)  # fmt: skip
INTERVAL_OPTION = typer.Option(
    None,
    help="Seconds between publisher ticks (overrides EVENT_RELAY_OUTBOX_POLL_INTERVAL)",
    metavar="<seconds>",
)  # fmt: skip
BATCH_SIZE_OPTION = typer.Option(
    None,
    help="Entries claimed per tick (overrides EVENT_RELAY_OUTBOX_BATCH_SIZE)",
    metavar="<n>",
)  # fmt: skip


def _update_settings(
    log_level: str | None,
    sql_log: bool | None,
    database_url: str | None,
    poll_interval: float | None = None,
    batch_size: int | None = None,
) -> Settings:
    """Apply CLI overrides to the cached settings and return them."""
    settings = get_settings()

    if log_level is not None:
        settings.log_level = log_level.upper()
    if sql_log is not None:
        settings.sql_log = sql_log
    if database_url is not None:
        settings.database_url = database_url
    if poll_interval is not None:
        settings.outbox_poll_interval = poll_interval
    if batch_size is not None:
        settings.outbox_batch_size = batch_size

    return settings


def _configure(settings: Settings) -> None:
    setup_logging(settings.log_level)
    if settings.sql_log:
        setup_sqlalchemy_logging()


async def _run_publisher(settings: Settings) -> None:
    core = build_event_core(settings, load_collaborators(settings))

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    core.publisher.start()
    await stop_requested.wait()
    logger.info("Shutdown requested, waiting for the current tick to finish")
    await core.publisher.stop()


@app.command()
def run(
    log_level: str = LOG_LEVEL_OPTION,
    sql_log: bool = SQL_LOG_OPTION,
    database_url: str = DATABASE_URL_OPTION,
    interval: float = INTERVAL_OPTION,
    batch_size: int = BATCH_SIZE_OPTION,
) -> None:
    """Run the outbox publisher until interrupted."""
    settings = _update_settings(log_level, sql_log, database_url, interval, batch_size)
    _configure(settings)

    logger.info(f"Starting event relay as publisher {settings.publisher_id}")
    try:
        asyncio.run(_run_publisher(settings))
    finally:
        dispose_db()


@app.command()
def tick(
    log_level: str = LOG_LEVEL_OPTION,
    sql_log: bool = SQL_LOG_OPTION,
    database_url: str = DATABASE_URL_OPTION,
    batch_size: int = BATCH_SIZE_OPTION,
) -> None:
    """Publish a single batch of pending outbox entries, then exit."""
    settings = _update_settings(log_level, sql_log, database_url, batch_size=batch_size)
    _configure(settings)

    core = build_event_core(settings, load_collaborators(settings))
    try:
        report = asyncio.run(core.publisher.tick())
    except Exception as e:
        logger.error(f"Outbox tick failed: {e}")
        raise SystemExit(1) from None
    finally:
        dispose_db()

    typer.echo(
        f"claimed={report.claimed} published={report.published} retried={report.retried} "
        f"dead_lettered={report.dead_lettered} deferred={report.deferred} store_errors={report.store_errors}"
    )


if __name__ == "__main__":
    app()
