"""Startup wiring.

Builds the event bus, command bus, sagas, outbox store and publisher from
settings and a set of collaborators. Nothing here is a module-level
singleton; every process (server, CLI, test) builds its own core.
"""

import importlib
from dataclasses import dataclass, field

from loguru import logger

from event_relay.event_bus import EventBus
from event_relay.events import register_event_handlers
from event_relay.outbox import OutboxPublisher, OutboxStore, SqlOutboxStore
from event_relay.sagas import CommandBus, Saga, SagaCoordinator, register_command_handlers, translation_sagas
from event_relay.services import Collaborators
from event_relay.settings import Settings


@dataclass
class EventCore:
    bus: EventBus
    command_bus: CommandBus
    coordinator: SagaCoordinator
    store: OutboxStore
    publisher: OutboxPublisher
    collaborators: Collaborators = field(default_factory=Collaborators)


def load_collaborators(settings: Settings) -> Collaborators:
    """Resolve collaborators from ``settings.collaborators_factory``.

    The factory is given as ``"package.module:callable"`` and is called with
    the settings. Without a factory, logging-only adapters are used and the
    translation workflow stays disabled.

    Raises:
        ValueError: If the factory path is malformed or does not return ``Collaborators``
    """
    if not settings.collaborators_factory:
        logger.info("No collaborators factory configured, using logging adapters")
        return Collaborators()

    module_name, _, attribute = settings.collaborators_factory.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Invalid collaborators factory '{settings.collaborators_factory}', expected 'module:callable'")

    factory = getattr(importlib.import_module(module_name), attribute)
    collaborators = factory(settings)
    if not isinstance(collaborators, Collaborators):
        raise ValueError(f"Collaborators factory '{settings.collaborators_factory}' returned {type(collaborators).__name__}")

    logger.info(f"Loaded collaborators from {settings.collaborators_factory}")
    return collaborators


def build_event_core(
    settings: Settings,
    collaborators: Collaborators | None = None,
    store: OutboxStore | None = None,
) -> EventCore:
    """Wire handlers, sagas and the outbox publisher.

    Args:
        settings: Runtime settings
        collaborators: External services; defaults to logging adapters
        store: Outbox store; defaults to the SQL store on the configured database
    """
    collaborators = collaborators or Collaborators()
    store = store or SqlOutboxStore()

    bus = EventBus()
    register_event_handlers(bus, collaborators)

    command_bus = CommandBus()
    sagas: list[Saga] = []
    if collaborators.supports_translation:
        register_command_handlers(command_bus, collaborators)
        sagas = translation_sagas(settings.translation_target_languages)
    else:
        logger.warning("No lyrics store or translation service configured, automatic translation disabled")

    coordinator = SagaCoordinator(command_bus, sagas)
    coordinator.attach(bus)

    publisher = OutboxPublisher(
        store,
        bus,
        publisher_id=settings.publisher_id,
        batch_size=settings.outbox_batch_size,
        max_retries=settings.outbox_max_retries,
        poll_interval=settings.outbox_poll_interval,
        lease_seconds=settings.outbox_lease_seconds,
    )

    logger.debug(f"Event core ready with events: {', '.join(bus.get_registered_events())}")
    return EventCore(
        bus=bus,
        command_bus=command_bus,
        coordinator=coordinator,
        store=store,
        publisher=publisher,
        collaborators=collaborators,
    )
