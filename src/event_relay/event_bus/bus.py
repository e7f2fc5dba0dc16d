"""Event Bus Implementation.

This module provides the ``EventBus`` that routes enriched envelopes to every
handler subscribed to the envelope's name.

## Key Features

- **Async Handler Execution**: All handlers of an event run concurrently
- **Error Isolation**: A failing handler never affects its siblings nor the publisher
- **Explicit Wiring**: The bus is constructed at startup and passed to producers
- **Causal Metadata**: Envelopes are enriched with timestamp and correlation id

## Usage

```python
bus = EventBus()
bus.subscribe("lyrics.created", index_lyrics)
bus.subscribe("lyrics.created", LyricsCreatedHandler(search))

await bus.publish(EventEnvelope.create("lyrics.created", {"id": "L1"}))
await bus.publish_all([first, second])
```

"""

import asyncio
import inspect
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

from .core import HandlerRegistrationError, PublishError
from .envelope import EventEnvelope

T_Handler = Callable[[EventEnvelope], Any]


class EventBus:
    """In-process publish/subscribe router for event envelopes.

    Handlers are keyed by event name and invoked in registration order. Each
    handler is an isolated failure domain: its exception is logged and
    recorded in the results, but ``publish`` still completes normally.
    """

    def __init__(self, isolate_events: bool = False) -> None:
        """Initialize a new EventBus instance.

        Args:
            isolate_events: If True, each handler receives a deep copy of the envelope.
                Otherwise all handlers of an event share one payload dict, and a
                handler that mutates it changes what its siblings see.
        """
        self._handlers: dict[str, list[T_Handler]] = {}
        self._isolate_events = isolate_events
        logger.debug(f"EventBus initialized (isolate_events={isolate_events})")

    def subscribe(self, event_type: str, handler: T_Handler) -> None:
        """Register a handler for an event name.

        Args:
            event_type: The event name to handle, e.g. "lyrics.created"
            handler: Async or sync callable, or an EventHandler instance

        Raises:
            HandlerRegistrationError: If event_type is empty or handler is not callable
        """
        if not isinstance(event_type, str) or not event_type.strip():
            raise HandlerRegistrationError(f"Event type must be a non-empty string, got: {event_type!r}")

        if not callable(handler):
            raise HandlerRegistrationError(f"Handler must be callable: {handler!r}")

        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Registered handler for {event_type}: {handler!r}")

    def remove_handler(self, event_type: str, handler: T_Handler) -> bool:
        """Remove a specific handler for an event name."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Removed handler for {event_type}: {handler!r}")
                return True
            except ValueError:
                pass
        return False

    def clear_handlers(self, event_type: str | None = None) -> None:
        """Clear handlers for a specific event name or all events."""
        if event_type is None:
            self._handlers.clear()
            logger.debug("Cleared all handlers")
        elif event_type in self._handlers:
            del self._handlers[event_type]
            logger.debug(f"Cleared handlers for {event_type}")

    def get_handler_count(self, event_type: str) -> int:
        """Get the number of handlers registered for an event name."""
        return len(self._handlers.get(event_type, []))

    def get_registered_events(self) -> list[str]:
        """Get all event names that have registered handlers."""
        return [name for name, handlers in self._handlers.items() if handlers]

    async def publish(self, envelope: EventEnvelope) -> EventEnvelope:
        """Enrich an envelope and dispatch it to every subscribed handler.

        Handlers start in registration order and run concurrently; the call
        returns once all of them have settled.

        Args:
            envelope: The envelope to publish

        Returns:
            The enriched envelope that handlers received

        Raises:
            PublishError: If the envelope is invalid or dispatch setup fails.
                Handler failures never raise.
        """
        try:
            if not isinstance(envelope, EventEnvelope):
                raise TypeError(f"Expected EventEnvelope, got: {type(envelope).__name__}")
            enriched = envelope.enrich()
            handlers = list(self._handlers.get(enriched.name, ()))
        except Exception as e:
            name = getattr(envelope, "name", type(envelope).__name__)
            logger.error(f"Failed to publish event {name}: {e}")
            raise PublishError(f"Failed to publish event {name}: {e}", [e]) from e

        correlation_id = enriched.metadata.correlation_id
        if not handlers:
            logger.debug(f"No handlers registered for {enriched.name} (correlationId={correlation_id})")
            return enriched

        logger.debug(f"Publishing {enriched.name} to {len(handlers)} handlers (correlationId={correlation_id})")

        tasks = []
        for i, handler in enumerate(handlers):
            handler_envelope = enriched.model_copy(deep=True) if self._isolate_events else enriched
            logger.trace(f"Creating task for handler {i + 1}/{len(handlers)}: {handler!r}")
            tasks.append(self._execute_handler(handler, handler_envelope))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        failed = sum(1 for r in results if isinstance(r, BaseException))
        if failed > 0:
            logger.warning(
                f"Event {enriched.name}: {len(results) - failed} successful, {failed} failed handlers "
                f"(correlationId={correlation_id})"
            )
        logger.trace(f"Event {enriched.name} results: {results}")

        return enriched

    async def publish_all(self, envelopes: Iterable[EventEnvelope]) -> list[EventEnvelope]:
        """Publish several envelopes concurrently.

        Every publish is allowed to settle before the outcome is decided.

        Returns:
            The enriched envelopes, in input order

        Raises:
            PublishError: If any single publish failed at the setup stage;
                the whole batch must then be treated as unresolved.
        """
        results = await asyncio.gather(*(self.publish(envelope) for envelope in envelopes), return_exceptions=True)

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise PublishError(f"{len(errors)} of {len(results)} events could not be published", errors)

        return list(results)

    async def _execute_handler(self, handler: T_Handler, envelope: EventEnvelope) -> Any:
        """Execute a single handler, capturing any failure.

        Returns:
            The handler's result or the exception it raised
        """
        try:
            logger.trace(f"Executing handler {handler!r} for event {envelope.name}")
            result = handler(envelope)
            if inspect.isawaitable(result):
                result = await result
            logger.trace(f"Handler {handler!r} completed successfully")
            return result
        except Exception as e:
            logger.opt(exception=e).error(
                f"Handler {handler!r} failed for event {envelope.name} "
                f"(correlationId={envelope.metadata.correlation_id}): {e}"
            )
            return e
