"""Tests for the event bus system."""

import asyncio
from typing import Any

import pytest

from event_relay.event_bus import EventBus, EventEnvelope, EventHandler, HandlerRegistrationError, PublishError


# Test handlers
async def simple_handler(envelope: EventEnvelope) -> str:
    """Simple function handler."""
    return f"processed: {envelope.payload['message']}"


async def void_handler(_envelope: EventEnvelope) -> None:
    """Handler that returns nothing."""
    return


class RecordingHandler(EventHandler):
    """Class-based handler remembering what it received."""

    def __init__(self):
        self.received: list[EventEnvelope] = []

    async def handle(self, envelope: EventEnvelope) -> str:
        self.received.append(envelope)
        return f"class handled: {envelope.payload['message']}"


class FailingHandler(EventHandler):
    """Handler that always fails."""

    def __init__(self):
        self.calls = 0

    async def handle(self, envelope: EventEnvelope) -> str:
        self.calls += 1
        raise ValueError("Test handler failure")


def sample_envelope(message: str = "test", **metadata: Any) -> EventEnvelope:
    return EventEnvelope.create("sample.happened", {"message": message}, **metadata)


class TestEventBusRegistration:
    """Test handler registration on EventBus."""

    def test_event_bus_initialization(self):
        bus = EventBus()
        assert bus.get_handler_count("sample.happened") == 0
        assert bus.get_registered_events() == []

    def test_subscribe_function_and_class_handlers(self):
        bus = EventBus()
        bus.subscribe("sample.happened", simple_handler)
        bus.subscribe("sample.happened", void_handler)
        bus.subscribe("sample.happened", RecordingHandler())

        assert bus.get_handler_count("sample.happened") == 3
        assert bus.get_registered_events() == ["sample.happened"]

    @pytest.mark.parametrize("event_type", ["", "   ", None, 42])
    def test_subscribe_invalid_event_type(self, event_type):
        bus = EventBus()

        with pytest.raises(HandlerRegistrationError):
            bus.subscribe(event_type, simple_handler)

    def test_subscribe_invalid_handler(self):
        bus = EventBus()

        with pytest.raises(HandlerRegistrationError):
            bus.subscribe("sample.happened", "not_callable")

    def test_remove_handler(self):
        bus = EventBus()
        bus.subscribe("sample.happened", simple_handler)

        assert bus.remove_handler("sample.happened", simple_handler) is True
        assert bus.get_handler_count("sample.happened") == 0

        # Removing non-existent handler
        assert bus.remove_handler("sample.happened", simple_handler) is False

    def test_clear_handlers(self):
        bus = EventBus()
        bus.subscribe("sample.happened", simple_handler)
        bus.subscribe("other.happened", simple_handler)

        bus.clear_handlers("sample.happened")
        assert bus.get_handler_count("sample.happened") == 0
        assert bus.get_handler_count("other.happened") == 1

        bus.clear_handlers()
        assert bus.get_registered_events() == []


class TestEventBusPublish:
    """Test publishing envelopes."""

    @pytest.mark.asyncio
    async def test_publish_without_handlers_returns_enriched_envelope(self):
        bus = EventBus()

        published = await bus.publish(sample_envelope())

        assert published.metadata.timestamp is not None
        assert published.metadata.correlation_id is not None

    @pytest.mark.asyncio
    async def test_publish_keeps_existing_correlation_id(self):
        bus = EventBus()
        handler = RecordingHandler()
        bus.subscribe("sample.happened", handler)

        published = await bus.publish(sample_envelope(correlation_id="corr-1", user_id="u1"))

        assert published.metadata.correlation_id == "corr-1"
        assert handler.received[0].metadata.correlation_id == "corr-1"
        assert handler.received[0].metadata.user_id == "u1"

    @pytest.mark.asyncio
    async def test_publish_only_reaches_matching_handlers(self):
        bus = EventBus()
        matching = RecordingHandler()
        other = RecordingHandler()
        bus.subscribe("sample.happened", matching)
        bus.subscribe("other.happened", other)

        await bus.publish(sample_envelope())

        assert len(matching.received) == 1
        assert other.received == []

    @pytest.mark.asyncio
    async def test_sync_handlers_are_supported(self):
        bus = EventBus()
        seen = []
        bus.subscribe("sample.happened", lambda envelope: seen.append(envelope.name))

        await bus.publish(sample_envelope())

        assert seen == ["sample.happened"]

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self):
        """A failing handler neither blocks its siblings nor fails the publish."""
        bus = EventBus()
        failing = FailingHandler()
        recording = RecordingHandler()
        bus.subscribe("sample.happened", failing)
        bus.subscribe("sample.happened", recording)

        published = await bus.publish(sample_envelope())

        assert failing.calls == 1
        assert len(recording.received) == 1
        assert published.name == "sample.happened"

    @pytest.mark.asyncio
    async def test_handlers_run_concurrently(self):
        bus = EventBus()
        started = []
        release = asyncio.Event()

        async def waiting_handler(envelope: EventEnvelope) -> None:
            started.append("waiting")
            await release.wait()

        async def releasing_handler(envelope: EventEnvelope) -> None:
            started.append("releasing")
            release.set()

        bus.subscribe("sample.happened", waiting_handler)
        bus.subscribe("sample.happened", releasing_handler)

        await asyncio.wait_for(bus.publish(sample_envelope()), timeout=1)

        assert started == ["waiting", "releasing"]

    @pytest.mark.asyncio
    async def test_isolate_events_gives_each_handler_a_copy(self):
        bus = EventBus(isolate_events=True)
        first = RecordingHandler()
        second = RecordingHandler()
        bus.subscribe("sample.happened", first)
        bus.subscribe("sample.happened", second)

        await bus.publish(sample_envelope())

        assert first.received[0] == second.received[0]
        assert first.received[0] is not second.received[0]

    @pytest.mark.asyncio
    async def test_isolate_events_keeps_payload_mutations_private(self):
        bus = EventBus(isolate_events=True)
        seen: list[dict[str, Any]] = []

        async def tamper(envelope):
            envelope.payload["message"] = "tampered"

        async def observe(envelope):
            seen.append(dict(envelope.payload))

        bus.subscribe("sample.happened", tamper)
        bus.subscribe("sample.happened", observe)
        envelope = sample_envelope()

        await bus.publish(envelope)

        assert seen[0]["message"] == "test"
        assert envelope.payload["message"] == "test"

    @pytest.mark.asyncio
    async def test_publish_rejects_non_envelope(self):
        bus = EventBus()

        with pytest.raises(PublishError) as exc_info:
            await bus.publish({"name": "sample.happened"})

        assert len(exc_info.value.errors) == 1
        assert isinstance(exc_info.value.errors[0], TypeError)


class TestEventBusPublishAll:
    @pytest.mark.asyncio
    async def test_publish_all_returns_envelopes_in_order(self):
        bus = EventBus()
        handler = RecordingHandler()
        bus.subscribe("sample.happened", handler)

        published = await bus.publish_all([sample_envelope("one"), sample_envelope("two")])

        assert [e.payload["message"] for e in published] == ["one", "two"]
        assert len(handler.received) == 2

    @pytest.mark.asyncio
    async def test_publish_all_empty(self):
        assert await EventBus().publish_all([]) == []

    @pytest.mark.asyncio
    async def test_publish_all_settles_everything_before_failing(self):
        bus = EventBus()
        handler = RecordingHandler()
        bus.subscribe("sample.happened", handler)

        with pytest.raises(PublishError) as exc_info:
            await bus.publish_all([sample_envelope("one"), "not an envelope", sample_envelope("three")])

        assert len(exc_info.value.errors) == 1
        assert [e.payload["message"] for e in handler.received] == ["one", "three"]

    @pytest.mark.asyncio
    async def test_handler_failures_do_not_fail_publish_all(self):
        bus = EventBus()
        bus.subscribe("sample.happened", FailingHandler())

        published = await bus.publish_all([sample_envelope("one"), sample_envelope("two")])

        assert len(published) == 2
