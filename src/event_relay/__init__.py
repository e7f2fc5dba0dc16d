"""Reliable event propagation core: outbox, event bus and sagas."""

from .settings import Settings, get_settings  # noqa: F401

__all__ = ["get_settings", "Settings"]
