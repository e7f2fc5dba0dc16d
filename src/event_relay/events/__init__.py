"""Event handlers reacting to domain events.

This module provides event names, payload models and handlers, and the
startup-time registration that maps event names to handler instances.
"""

from loguru import logger

from event_relay.event_bus import EventBus
from event_relay.events.block_handlers import BlockEventHandler
from event_relay.events.follow_handlers import FollowNotificationHandler
from event_relay.events.lyrics_handlers import LyricsCreatedHandler, LyricsVerifiedHandler
from event_relay.events.types import LYRICS_CREATED, LYRICS_VERIFIED
from event_relay.services import Collaborators

__all__ = [
    "BlockEventHandler",
    "FollowNotificationHandler",
    "LyricsCreatedHandler",
    "LyricsVerifiedHandler",
    "register_event_handlers",
]


def register_event_handlers(bus: EventBus, collaborators: Collaborators) -> None:
    """Register event handlers in the event bus.

    Args:
        bus: The bus producers publish to
        collaborators: External services the handlers call
    """
    logger.debug("Registering event handlers in event bus")

    bus.subscribe(LYRICS_CREATED, LyricsCreatedHandler(collaborators.search))
    bus.subscribe(LYRICS_VERIFIED, LyricsVerifiedHandler(collaborators.notifications, collaborators.analytics))

    follow_handler = FollowNotificationHandler(collaborators.notifications, collaborators.analytics)
    for event_type in follow_handler.event_types():
        bus.subscribe(event_type, follow_handler)

    block_handler = BlockEventHandler(collaborators.follows, collaborators.recommendations)
    for event_type in block_handler.event_types():
        bus.subscribe(event_type, block_handler)

    logger.info("Event handlers registered successfully")
