"""Tests for the automatic lyrics translation workflow."""

import asyncio

import pytest

from event_relay.event_bus import EventBus, EventEnvelope
from event_relay.events.types import LYRICS_TRANSLATED, LYRICS_VERIFIED
from event_relay.exceptions import ResourceNotFoundError
from event_relay.outbox import InMemoryOutboxStore, OutboxPublisher
from event_relay.sagas import (
    Command,
    CommandBus,
    ReviewAutomaticTranslationHandler,
    SagaCoordinator,
    TranslateAdditionalLanguagesHandler,
    register_command_handlers,
    translation_quality_check_saga,
    verified_lyrics_translation_saga,
)
from event_relay.sagas.commands import REVIEW_AUTOMATIC_TRANSLATION, TRANSLATE_ADDITIONAL_LANGUAGES
from event_relay.services import Collaborators
from fakes import FakeLyricsStore, FakeTranslationService


def verified(lyrics_id: str = "L7", language: str = "en", **extra) -> EventEnvelope:
    payload = {"id": lyrics_id, "song_id": "S1", "language": language, "verified_by_id": "mod-1", **extra}
    return EventEnvelope.create(LYRICS_VERIFIED, payload, correlation_id="corr-7").enrich()


def translate_command(target_languages: list[str], lyrics_id: str = "L7") -> Command:
    return Command(
        name=TRANSLATE_ADDITIONAL_LANGUAGES,
        payload={
            "lyrics_id": lyrics_id,
            "song_id": "S1",
            "source_language": "en",
            "target_languages": target_languages,
        },
    )


class TestVerifiedLyricsTranslationSaga:
    def test_requests_default_languages(self):
        command = verified_lyrics_translation_saga()(verified())

        assert command.name == TRANSLATE_ADDITIONAL_LANGUAGES
        assert command.payload["target_languages"] == ["es", "fr", "de"]
        assert command.payload["source_language"] == "en"
        assert command.payload["initiated_by"] == "mod-1"
        assert command.metadata.correlation_id == "corr-7"

    def test_source_language_is_excluded(self):
        command = verified_lyrics_translation_saga(["es", "fr"])(verified(language="es"))

        assert command.payload["target_languages"] == ["fr"]

    def test_no_command_when_nothing_to_translate(self):
        assert verified_lyrics_translation_saga(["en"])(verified(language="en")) is None

    def test_missing_language_defaults_to_english(self):
        envelope = EventEnvelope.create(LYRICS_VERIFIED, {"id": "L7"})

        command = verified_lyrics_translation_saga()(envelope)

        assert command.payload["source_language"] == "en"


class TestTranslationQualityCheckSaga:
    def test_automatic_translation_is_reviewed(self):
        envelope = EventEnvelope.create(LYRICS_TRANSLATED, {"id": "T1", "original_lyrics_id": "L7", "language": "es"})

        command = translation_quality_check_saga()(envelope)

        assert command.name == REVIEW_AUTOMATIC_TRANSLATION
        assert command.payload == {"translation_id": "T1", "original_lyrics_id": "L7", "language": "es"}

    def test_human_translation_is_not_reviewed(self):
        envelope = EventEnvelope.create(
            LYRICS_TRANSLATED,
            {"id": "T1", "original_lyrics_id": "L7", "language": "es", "translator_id": "u9"},
        )

        assert translation_quality_check_saga()(envelope) is None


class TestTranslateAdditionalLanguagesHandler:
    @pytest.mark.asyncio
    async def test_creates_missing_translations_only(self):
        lyrics_store = FakeLyricsStore()
        lyrics_store.add_lyrics("L7", content="hello")
        lyrics_store.add_translation("L7", "es", translator_id="u9")
        translator = FakeTranslationService()
        handler = TranslateAdditionalLanguagesHandler(lyrics_store, translator)

        await handler.execute(translate_command(["es", "fr"]))

        assert translator.calls == [("en", "fr")]
        assert lyrics_store.translations[("L7", "fr")].content == "[fr] hello"
        assert lyrics_store.translations[("L7", "fr")].is_automatic is True

    @pytest.mark.asyncio
    async def test_is_idempotent(self):
        lyrics_store = FakeLyricsStore()
        lyrics_store.add_lyrics("L7")
        translator = FakeTranslationService()
        handler = TranslateAdditionalLanguagesHandler(lyrics_store, translator)

        await handler.execute(translate_command(["es"]))
        await handler.execute(translate_command(["es"]))

        assert translator.calls == [("en", "es")]
        assert len(lyrics_store.translations) == 1

    @pytest.mark.asyncio
    async def test_duplicate_languages_are_translated_once(self):
        lyrics_store = FakeLyricsStore()
        lyrics_store.add_lyrics("L7")
        translator = FakeTranslationService()

        await TranslateAdditionalLanguagesHandler(lyrics_store, translator).execute(
            translate_command(["es", "es", "en"])
        )

        assert translator.calls == [("en", "es")]

    @pytest.mark.asyncio
    async def test_failed_language_does_not_affect_others(self):
        lyrics_store = FakeLyricsStore()
        lyrics_store.add_lyrics("L7")
        translator = FakeTranslationService(failing={"fr"})

        await TranslateAdditionalLanguagesHandler(lyrics_store, translator).execute(
            translate_command(["es", "fr", "de"])
        )

        assert set(lyrics_store.translations) == {("L7", "es"), ("L7", "de")}

    @pytest.mark.asyncio
    async def test_unknown_lyrics(self):
        handler = TranslateAdditionalLanguagesHandler(FakeLyricsStore(), FakeTranslationService())

        with pytest.raises(ResourceNotFoundError):
            await handler.execute(translate_command(["es"], lyrics_id="missing"))


class TestReviewAutomaticTranslationHandler:
    @pytest.mark.asyncio
    async def test_creates_review_request_once(self):
        lyrics_store = FakeLyricsStore()
        handler = ReviewAutomaticTranslationHandler(lyrics_store)
        command = Command(
            name=REVIEW_AUTOMATIC_TRANSLATION,
            payload={"translation_id": "T1", "original_lyrics_id": "L7", "language": "es"},
        )

        await handler.execute(command)
        await handler.execute(command)

        assert list(lyrics_store.review_requests) == ["T1"]

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_open_one_review_request(self):
        class RacingLyricsStore(FakeLyricsStore):
            # Both deliveries pass the lookup before either one has written
            async def find_review_request(self, translation_id):
                return None

        lyrics_store = RacingLyricsStore()
        handler = ReviewAutomaticTranslationHandler(lyrics_store)
        command = Command(
            name=REVIEW_AUTOMATIC_TRANSLATION,
            payload={"translation_id": "T1", "original_lyrics_id": "L7", "language": "es"},
        )

        await asyncio.gather(handler.execute(command), handler.execute(command))

        assert len(lyrics_store.review_requests) == 1
        assert lyrics_store.review_requests["T1"].original_lyrics_id == "L7"


class TestTranslationWorkflow:
    @pytest.mark.asyncio
    async def test_verified_lyrics_end_up_translated_and_reviewed(self):
        """lyrics.verified -> translations -> lyrics.translated via outbox -> review requests."""
        outbox = InMemoryOutboxStore()
        lyrics_store = FakeLyricsStore(outbox=outbox)
        lyrics_store.add_lyrics("L7", content="hello")
        collaborators = Collaborators(lyrics=lyrics_store, translation=FakeTranslationService())

        bus = EventBus()
        command_bus = CommandBus()
        register_command_handlers(command_bus, collaborators)
        SagaCoordinator(
            command_bus,
            [verified_lyrics_translation_saga(["es", "fr"]), translation_quality_check_saga()],
        ).attach(bus)

        await bus.publish(verified())

        # Translations were recorded in the outbox, not published directly
        assert set(lyrics_store.translations) == {("L7", "es"), ("L7", "fr")}
        assert lyrics_store.review_requests == {}
        entries = outbox.all_entries()
        assert {e.event_type for e in entries} == {LYRICS_TRANSLATED}
        assert all(e.to_envelope().metadata.correlation_id == "corr-7" for e in entries)

        publisher = OutboxPublisher(outbox, bus, publisher_id="test")
        await publisher.tick()

        assert len(lyrics_store.review_requests) == 2

    @pytest.mark.asyncio
    async def test_redelivered_verification_changes_nothing(self):
        lyrics_store = FakeLyricsStore()
        lyrics_store.add_lyrics("L7")
        translator = FakeTranslationService()
        bus = EventBus()
        command_bus = CommandBus()
        register_command_handlers(command_bus, Collaborators(lyrics=lyrics_store, translation=translator))
        SagaCoordinator(command_bus, [verified_lyrics_translation_saga(["es"])]).attach(bus)

        envelope = verified()
        await bus.publish(envelope)
        await bus.publish(envelope)

        assert translator.calls == [("en", "es")]
        assert list(lyrics_store.translations) == [("L7", "es")]

    def test_register_requires_lyrics_and_translation(self):
        with pytest.raises(ValueError):
            register_command_handlers(CommandBus(), Collaborators())
