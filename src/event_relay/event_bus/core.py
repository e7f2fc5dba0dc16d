"""Core Event Bus Components.

This module contains the fundamental abstractions for the event bus system.

## Key Components

- **EventHandler**: Base class for class-based event handlers
- **EventBusError**: Base exception for all event bus related errors
- **HandlerRegistrationError**: Raised when handler registration fails
- **PublishError**: Raised when an envelope cannot be dispatched

## Usage Example

```python
from event_relay.event_bus import EventEnvelope, EventHandler

class IndexLyrics(EventHandler):
    def __init__(self, search: SearchService):
        self.search = search

    async def handle(self, envelope: EventEnvelope) -> None:
        await self.search.index(SearchDocument.from_lyrics(envelope.payload))

bus.subscribe("lyrics.created", IndexLyrics(search))
```

Handlers receive their collaborators through the constructor; the bus never
builds them.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from .envelope import EventEnvelope


class EventHandler(ABC):
    """Base class for event handlers.

    Subclasses implement ``handle``. Instances are callable so they can be
    subscribed to the bus like any function handler.
    """

    @abstractmethod
    async def handle(self, envelope: EventEnvelope) -> Any:
        """Handle the event.

        Args:
            envelope: The enriched envelope being published.

        Returns:
            Optional result from handling the event.

        Raises:
            Any exception that occurs during handling. Exceptions are caught
            and logged by the event bus and never reach the publisher.
        """

    def __call__(self, envelope: EventEnvelope) -> Any:
        """Make the handler callable."""
        return self.handle(envelope)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class EventBusError(Exception):
    """Base exception for all event bus related errors.

    Use this for catching any event bus related error:
        ```python
        try:
            await bus.publish(envelope)
        except EventBusError as e:
            logger.error(f"Event bus error: {e}")
        ```
    """


class HandlerRegistrationError(EventBusError):
    """Raised when handler registration fails.

    This occurs when:
    - The event type is not a non-empty string
    - The handler is not callable
    """


class PublishError(EventBusError):
    """Raised when an envelope could not be dispatched.

    Only failures that happen before any handler runs (invalid envelope,
    enrichment, handler lookup) raise this error. For ``publish_all`` it
    carries every underlying failure in ``errors``.
    """

    def __init__(self, message: str, errors: Sequence[BaseException] = ()):
        super().__init__(message)
        self.errors = list(errors)
