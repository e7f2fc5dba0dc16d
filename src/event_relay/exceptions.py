"""Common exceptions shared across the event relay.

Exceptions that belong to one subsystem (event bus, outbox, sagas) live next
to that subsystem; this module holds the ones raised by collaborators and
consumed by several components.
"""


class ResourceNotFoundError(Exception):
    """Raised when a resource doesn't exist.

    Generic exception for any resource that cannot be found by its identifier.
    """

    def __init__(self, resource_type: str, identifier: str | int):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")


class DuplicateTranslationError(Exception):
    """Raised by a lyrics store when a translation for the language already exists.

    Stores enforce uniqueness of (original lyrics, language); command handlers
    treat this as work that has already been done.
    """

    def __init__(self, lyrics_id: str, language: str):
        self.lyrics_id = lyrics_id
        self.language = language
        super().__init__(f"Translation already exists for lyrics {lyrics_id} in '{language}'")


class DuplicateReviewRequestError(Exception):
    """Raised by a lyrics store when a translation already has a review request."""

    def __init__(self, translation_id: str):
        self.translation_id = translation_id
        super().__init__(f"Review request already exists for translation {translation_id}")
