"""External collaborators consumed by the event relay."""

from .interfaces import (
    AnalyticsService,
    FollowService,
    Lyrics,
    LyricsStore,
    NewTranslation,
    Notification,
    NotificationService,
    RecommendationService,
    ReviewRequest,
    SearchDocument,
    SearchService,
    Translation,
    TranslationService,
)
from .collaborators import Collaborators
from .logging_adapters import (
    LoggingAnalyticsService,
    LoggingNotificationService,
    LoggingRecommendationService,
    LoggingSearchService,
)

__all__ = [
    "AnalyticsService",
    "Collaborators",
    "FollowService",
    "LoggingAnalyticsService",
    "LoggingNotificationService",
    "LoggingRecommendationService",
    "LoggingSearchService",
    "Lyrics",
    "LyricsStore",
    "NewTranslation",
    "Notification",
    "NotificationService",
    "RecommendationService",
    "ReviewRequest",
    "SearchDocument",
    "SearchService",
    "Translation",
    "TranslationService",
]
