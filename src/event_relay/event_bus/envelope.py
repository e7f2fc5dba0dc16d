"""Event envelope.

Every domain event travels through the relay wrapped in an immutable
``EventEnvelope``: a stable ``name``, an opaque JSON ``payload`` and the
``EventMetadata`` used to reconstruct causal chains.

```python
envelope = EventEnvelope.create("lyrics.created", {"id": "L1", "language": "en"}, user_id="u1")
enriched = envelope.enrich()          # fills timestamp / correlation_id
follow_up = enriched.derive("lyrics.indexed", {"id": "L1"})
assert follow_up.metadata.correlation_id == enriched.metadata.correlation_id
assert follow_up.metadata.causation_id == enriched.event_id
```
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from event_relay.utils.clock import utcnow


def new_id() -> str:
    """Return a fresh v4 UUID string."""
    return str(uuid4())


def to_payload(payload: BaseModel | Mapping[str, Any] | None) -> dict[str, Any]:
    """Normalize a payload into a JSON-compatible dict."""
    if payload is None:
        return {}
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return dict(payload)


class EventMetadata(BaseModel):
    """Causal metadata attached to an envelope.

    ``timestamp`` and ``correlation_id`` are assigned at enrichment when
    absent. ``causation_id`` points at the event or command that directly
    produced this one.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime | None = None
    correlation_id: str | None = None
    causation_id: str | None = None
    user_id: str | None = None


class EventEnvelope(BaseModel):
    """Immutable record carrying a domain event."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, description="Stable event type identifier, e.g. 'lyrics.created'")
    # Frozen model, mutable dict: handlers must treat it as read-only unless the bus isolates events
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: EventMetadata = Field(default_factory=EventMetadata)

    @classmethod
    def create(
        cls,
        name: str,
        payload: BaseModel | Mapping[str, Any] | None = None,
        *,
        correlation_id: str | None = None,
        causation_id: str | None = None,
        user_id: str | None = None,
    ) -> "EventEnvelope":
        """Build an envelope from a model or mapping payload."""
        return cls(
            name=name,
            payload=to_payload(payload),
            metadata=EventMetadata(
                correlation_id=correlation_id,
                causation_id=causation_id,
                user_id=user_id,
            ),
        )

    @property
    def is_enriched(self) -> bool:
        return self.metadata.timestamp is not None and self.metadata.correlation_id is not None

    def enrich(self, now: datetime | None = None) -> "EventEnvelope":
        """Return an envelope whose absent ``timestamp``/``correlation_id`` are filled.

        Present values are never overwritten, so enriching twice is a no-op.

        Args:
            now: Timestamp to assign when missing (defaults to the current UTC time)

        Returns:
            ``self`` when nothing is missing, otherwise an enriched copy
        """
        if self.is_enriched:
            return self

        updates: dict[str, Any] = {}
        if self.metadata.timestamp is None:
            updates["timestamp"] = now or utcnow()
        if self.metadata.correlation_id is None:
            updates["correlation_id"] = new_id()

        return self.model_copy(update={"metadata": self.metadata.model_copy(update=updates)})

    def derive(self, name: str, payload: BaseModel | Mapping[str, Any] | None = None) -> "EventEnvelope":
        """Create a follow-up envelope in the same causal chain."""
        return EventEnvelope.create(
            name,
            payload,
            correlation_id=self.metadata.correlation_id,
            causation_id=self.event_id,
            user_id=self.metadata.user_id,
        )
