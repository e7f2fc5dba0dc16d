"""Saga coordination.

A saga reacts to an event by issuing a command. The coordinator subscribes
to the event bus for every event type one of its sagas listens to; on
receipt it asks each matching saga for a command and dispatches that command
through the ``CommandBus``.

```python
saga = Saga(
    name="verified-lyrics-translation",
    event_types=("lyrics.verified",),
    transform=lambda envelope: Command.from_event("translate-additional-languages", payload, envelope),
)
coordinator = SagaCoordinator(command_bus, [saga])
coordinator.attach(bus)
```

Sagas hold no state of their own; the workflow state lives in the lyrics
store, which keeps command handlers idempotent under redelivery.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from event_relay.event_bus import EventBus, EventEnvelope
from event_relay.event_bus.envelope import new_id, to_payload
from event_relay.utils.clock import utcnow


class CommandMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    correlation_id: str | None = None
    causation_id: str | None = None
    user_id: str | None = None


class Command(BaseModel):
    """Instruction to perform a unit of work, issued by a saga."""

    model_config = ConfigDict(frozen=True)

    command_id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: CommandMetadata = Field(default_factory=CommandMetadata)

    @classmethod
    def from_event(
        cls,
        name: str,
        payload: BaseModel | Mapping[str, Any] | None,
        envelope: EventEnvelope,
    ) -> "Command":
        """Build a command caused by ``envelope``, keeping its correlation and user."""
        return cls(
            name=name,
            payload=to_payload(payload),
            metadata=CommandMetadata(
                correlation_id=envelope.metadata.correlation_id,
                causation_id=envelope.event_id,
                user_id=envelope.metadata.user_id,
            ),
        )


class CommandDispatchError(Exception):
    """Base exception for command dispatch errors."""


class UnknownCommandError(CommandDispatchError):
    """Raised when no handler is registered for a command name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No handler registered for command '{name}'")


class CommandHandler(ABC):
    """Base class for command handlers.

    Handlers must be idempotent: the event that produced a command may be
    delivered more than once.
    """

    @abstractmethod
    async def execute(self, command: Command) -> None:
        """Perform the work described by ``command``."""


class CommandBus:
    """Maps command names to exactly one handler each."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}

    def register(self, name: str, handler: CommandHandler) -> None:
        if not name:
            raise ValueError("Command name must be a non-empty string")
        if name in self._handlers:
            logger.warning(f"Replacing handler for command '{name}'")
        self._handlers[name] = handler
        logger.debug(f"Registered {handler!r} for command '{name}'")

    def get_registered_commands(self) -> list[str]:
        return list(self._handlers)

    async def execute(self, command: Command) -> None:
        handler = self._handlers.get(command.name)
        if handler is None:
            raise UnknownCommandError(command.name)

        logger.debug(f"Executing command {command.name} (correlationId={command.metadata.correlation_id})")
        await handler.execute(command)


@dataclass(frozen=True)
class Saga:
    """Reaction rule: an event of a listened type may produce a command.

    Args:
        name: Identifier used in logs
        event_types: Event names the saga listens to
        transform: Builds the command for an event
        predicate: Optional filter applied to events before ``transform``
        command_filter: Optional filter applied to the produced command
    """

    name: str
    event_types: Sequence[str]
    transform: Callable[[EventEnvelope], Command | None]
    predicate: Callable[[EventEnvelope], bool] | None = None
    command_filter: Callable[[Command], bool] | None = None

    def __call__(self, envelope: EventEnvelope) -> Command | None:
        """Return the command for ``envelope`` or None if the saga does not react."""
        if envelope.name not in self.event_types:
            return None
        if self.predicate is not None and not self.predicate(envelope):
            return None

        command = self.transform(envelope)
        if command is None:
            return None
        if self.command_filter is not None and not self.command_filter(command):
            return None
        return command


class SagaCoordinator:
    """Translate events into commands and dispatch them."""

    def __init__(self, command_bus: CommandBus, sagas: Iterable[Saga] = ()):
        self.command_bus = command_bus
        self.sagas = list(sagas)

    @property
    def event_types(self) -> list[str]:
        return sorted({event_type for saga in self.sagas for event_type in saga.event_types})

    def attach(self, bus: EventBus) -> None:
        """Subscribe the coordinator to every event type its sagas listen to."""
        for event_type in self.event_types:
            bus.subscribe(event_type, self.handle)
        logger.info(f"Saga coordinator attached with {len(self.sagas)} sagas on {len(self.event_types)} event types")

    async def handle(self, envelope: EventEnvelope) -> None:
        """Run every matching saga on ``envelope``.

        Each saga is isolated: a failure in one, whether while building its
        command or while executing it, is logged and does not affect the others.
        """
        await asyncio.gather(*(self._run_saga(saga, envelope) for saga in self.sagas))

    async def _run_saga(self, saga: Saga, envelope: EventEnvelope) -> None:
        try:
            command = saga(envelope)
            if command is None:
                return
            logger.debug(f"Saga {saga.name} issued {command.name} for event {envelope.event_id}")
            await self.command_bus.execute(command)
        except Exception as e:
            logger.opt(exception=e).error(
                f"Saga {saga.name} failed on {envelope.name} "
                f"(eventId={envelope.event_id}, correlationId={envelope.metadata.correlation_id}): {e}"
            )
