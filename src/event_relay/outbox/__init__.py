"""Transactional outbox.

- ``record_outbox_entry``: called by domain write paths inside their own transaction
- ``OutboxStore``: storage interface (``SqlOutboxStore``, ``InMemoryOutboxStore``)
- ``OutboxPublisher``: scheduled drain of pending entries through the event bus
"""

from .memory import InMemoryOutboxStore
from .models import OutboxEntry, OutboxError, OutboxPayloadError, OutboxStatus
from .publisher import OutboxPublisher, TickReport
from .recorder import build_outbox_entry, record_outbox_entry
from .store import OutboxStore, SqlOutboxStore, select_claimable

__all__ = [
    "InMemoryOutboxStore",
    "OutboxEntry",
    "OutboxError",
    "OutboxPayloadError",
    "OutboxPublisher",
    "OutboxStatus",
    "OutboxStore",
    "SqlOutboxStore",
    "TickReport",
    "build_outbox_entry",
    "record_outbox_entry",
    "select_claimable",
]
