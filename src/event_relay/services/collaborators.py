"""Bundle of collaborator instances handed to handler and saga registration."""

from dataclasses import dataclass, field

from .interfaces import (
    AnalyticsService,
    FollowService,
    LyricsStore,
    NotificationService,
    RecommendationService,
    SearchService,
    TranslationService,
)
from .logging_adapters import (
    LoggingAnalyticsService,
    LoggingNotificationService,
    LoggingRecommendationService,
    LoggingSearchService,
)


@dataclass
class Collaborators:
    """External services wired into the core at startup.

    ``lyrics`` and ``translation`` are optional: without them the automatic
    translation workflow is not registered. Without ``follows`` a block does
    not remove follows and only refreshes recommendations.
    """

    search: SearchService = field(default_factory=LoggingSearchService)
    notifications: NotificationService = field(default_factory=LoggingNotificationService)
    analytics: AnalyticsService = field(default_factory=LoggingAnalyticsService)
    recommendations: RecommendationService = field(default_factory=LoggingRecommendationService)
    follows: FollowService | None = None
    translation: TranslationService | None = None
    lyrics: LyricsStore | None = None

    @property
    def supports_translation(self) -> bool:
        return self.translation is not None and self.lyrics is not None
