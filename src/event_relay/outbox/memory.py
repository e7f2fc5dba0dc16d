"""In-memory outbox store for tests and local runs."""

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel

from event_relay.event_bus.envelope import EventEnvelope
from event_relay.utils.clock import Clock, utcnow

from .models import OutboxEntry, OutboxStatus
from .recorder import build_outbox_entry
from .store import OutboxStore, select_claimable


class InMemoryOutboxStore(OutboxStore):
    """Outbox store keeping entries in a dict, with the same lease semantics as SQL."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._entries: dict[int, OutboxEntry] = {}
        self._next_id = 1
        self._clock = clock

    def add(self, entry: OutboxEntry) -> OutboxEntry:
        entry.id = self._next_id
        self._next_id += 1
        self._entries[entry.id] = entry
        return entry

    def record(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: EventEnvelope | BaseModel | Mapping[str, Any] | None,
        *,
        scheduled_for: datetime | None = None,
        **metadata: str | None,
    ) -> OutboxEntry:
        """Record a PENDING entry, mirroring ``record_outbox_entry`` without a session."""
        entry = build_outbox_entry(aggregate_type, aggregate_id, event_type, payload, scheduled_for=scheduled_for, **metadata)
        return self.add(entry)

    def get(self, entry_id: int) -> OutboxEntry | None:
        return self._entries.get(entry_id)

    def all_entries(self) -> list[OutboxEntry]:
        return self._ordered(self._entries.values())

    @staticmethod
    def _ordered(entries) -> list[OutboxEntry]:
        return sorted(entries, key=lambda e: (e.created_at, e.id))

    def _leased(self, entry_id: int, owner: str) -> OutboxEntry | None:
        entry = self._entries.get(entry_id)
        if entry is None or entry.locked_by != owner or entry.status != OutboxStatus.PENDING:
            return None
        return entry

    async def claim_batch(self, owner: str, limit: int, lease_seconds: float) -> list[OutboxEntry]:
        now = self._clock()
        pending = [e for e in self._ordered(self._entries.values()) if e.status == OutboxStatus.PENDING][:limit]
        claimed = select_claimable(pending, now)
        for entry in claimed:
            entry.locked_by = owner
            entry.locked_until = now + timedelta(seconds=lease_seconds)
        return claimed

    async def mark_published(self, entry_id: int, owner: str) -> bool:
        entry = self._leased(entry_id, owner)
        if entry is None:
            return False
        entry.status = OutboxStatus.PUBLISHED
        entry.published_at = self._clock()
        entry.locked_by = None
        entry.locked_until = None
        return True

    async def record_failure(self, entry_id: int, owner: str, error: str, max_retries: int) -> OutboxStatus | None:
        entry = self._leased(entry_id, owner)
        if entry is None:
            return None
        entry.retry_count += 1
        entry.last_error = error
        entry.locked_by = None
        entry.locked_until = None
        if entry.retry_count >= max_retries:
            entry.status = OutboxStatus.FAILED
        return OutboxStatus(entry.status)

    async def release(self, entry_ids: Sequence[int], owner: str) -> None:
        for entry_id in entry_ids:
            entry = self._entries.get(entry_id)
            if entry is not None and entry.locked_by == owner:
                entry.locked_by = None
                entry.locked_until = None

    async def requeue_failed(self, entry_ids: Sequence[int] | None = None) -> int:
        requeued = 0
        for entry in self._entries.values():
            if entry.status != OutboxStatus.FAILED or (entry_ids is not None and entry.id not in entry_ids):
                continue
            entry.status = OutboxStatus.PENDING
            entry.retry_count = 0
            entry.last_error = None
            requeued += 1
        return requeued

    async def list_entries(self, status: OutboxStatus | None = None, limit: int = 100) -> list[OutboxEntry]:
        entries = [e for e in self.all_entries() if status is None or e.status == status]
        return entries[:limit]

    async def count_by_status(self) -> dict[OutboxStatus, int]:
        counts = {status: 0 for status in OutboxStatus}
        for entry in self._entries.values():
            counts[OutboxStatus(entry.status)] += 1
        return counts
