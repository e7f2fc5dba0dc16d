"""Log-only collaborator adapters.

Used when the process runs without real backends: every call is logged and
succeeds.
"""

from typing import Any

from loguru import logger

from .interfaces import Notification, SearchDocument


class LoggingSearchService:
    async def index(self, document: SearchDocument) -> None:
        logger.info(f"[search] index {document.type} {document.id} ({document.language})")


class LoggingNotificationService:
    async def send(self, notification: Notification) -> None:
        logger.info(f"[notify] {notification.type} -> {notification.recipient_id}: {notification.title}")


class LoggingAnalyticsService:
    async def track_event(self, name: str, properties: dict[str, Any]) -> None:
        logger.info(f"[analytics] {name} {properties}")


class LoggingRecommendationService:
    async def invalidate_user_recommendations(self, user_id: str) -> None:
        logger.info(f"[recommendations] invalidate {user_id}")
