"""Sagas and the command side of the event relay."""

from collections.abc import Iterable

from event_relay.services import Collaborators

from .commands import REVIEW_AUTOMATIC_TRANSLATION, TRANSLATE_ADDITIONAL_LANGUAGES
from .core import (
    Command,
    CommandBus,
    CommandDispatchError,
    CommandHandler,
    CommandMetadata,
    Saga,
    SagaCoordinator,
    UnknownCommandError,
)
from .lyrics_translation import translation_quality_check_saga, verified_lyrics_translation_saga
from .translation_handlers import ReviewAutomaticTranslationHandler, TranslateAdditionalLanguagesHandler

__all__ = [
    "Command",
    "CommandBus",
    "CommandDispatchError",
    "CommandHandler",
    "CommandMetadata",
    "ReviewAutomaticTranslationHandler",
    "Saga",
    "SagaCoordinator",
    "TranslateAdditionalLanguagesHandler",
    "UnknownCommandError",
    "register_command_handlers",
    "translation_sagas",
    "translation_quality_check_saga",
    "verified_lyrics_translation_saga",
]


def translation_sagas(target_languages: Iterable[str]) -> list[Saga]:
    return [verified_lyrics_translation_saga(target_languages), translation_quality_check_saga()]


def register_command_handlers(command_bus: CommandBus, collaborators: Collaborators) -> None:
    """Register the translation command handlers.

    Requires ``collaborators.lyrics`` and ``collaborators.translation``.
    """
    if collaborators.lyrics is None or collaborators.translation is None:
        raise ValueError("Translation command handlers need a lyrics store and a translation service")

    command_bus.register(
        TRANSLATE_ADDITIONAL_LANGUAGES,
        TranslateAdditionalLanguagesHandler(collaborators.lyrics, collaborators.translation),
    )
    command_bus.register(REVIEW_AUTOMATIC_TRANSLATION, ReviewAutomaticTranslationHandler(collaborators.lyrics))
