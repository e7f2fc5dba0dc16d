"""CLI utility functions shared across commands."""

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import typer
from loguru import logger
from rich.console import Console

from event_relay.database import get_engine

console = Console()

T = TypeVar("T")


def run_async(action: Callable[[], Coroutine[Any, Any, T]], description: str) -> T:
    """Run an async store operation, turning failures into a CLI exit.

    Args:
        action: Coroutine function to run
        description: Human-readable description for the error message

    Raises:
        typer.Exit: If the operation fails
    """
    try:
        return asyncio.run(action())
    except Exception as e:
        logger.debug(f"{description} failed: {e!r}")
        console.print(f"[red]Error: {description} failed: {e}[/red]")
        raise typer.Exit(1) from e


def ensure_database() -> None:
    """Make sure a database is configured and reachable.

    Raises:
        typer.Exit: If the engine cannot be created
    """
    try:
        get_engine()
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e
