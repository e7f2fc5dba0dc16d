"""Event Bus System for Decoupled Component Communication.

This package provides the in-process event bus every domain module uses to
emit or react to events. It supports:

- **Immutable Envelopes**: Events travel as frozen ``EventEnvelope`` models
- **Metadata Enrichment**: Timestamp and correlation id assigned when absent
- **Async Handler Execution**: Handlers run concurrently per event
- **Error Isolation**: Handler failures don't affect other handlers

## Quick Start

```python
from event_relay.event_bus import EventBus, EventEnvelope

async def index_lyrics(envelope: EventEnvelope) -> None:
    print(f"Indexing {envelope.payload['id']}")

bus = EventBus()
bus.subscribe("lyrics.created", index_lyrics)
await bus.publish(EventEnvelope.create("lyrics.created", {"id": "L1"}))
```

Producers do not normally call ``publish`` directly: they record an outbox
entry in their own transaction and the outbox publisher drains it through
the bus (see ``event_relay.outbox``).
"""

from .bus import EventBus
from .core import EventBusError, EventHandler, HandlerRegistrationError, PublishError
from .envelope import EventEnvelope, EventMetadata

__all__ = [
    "EventBus",
    "EventBusError",
    "EventEnvelope",
    "EventHandler",
    "EventMetadata",
    "HandlerRegistrationError",
    "PublishError",
]
