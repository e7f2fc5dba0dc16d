"""Application configuration using Pydantic Settings.

This module centralizes runtime configuration for the event relay. Values can
be provided via environment variables (preferred) or fall back to the defaults
below. A ``Settings`` instance is intended to be retrieved via ``get_settings``
which caches the object for reuse across the process.

Environment variable prefix: ``EVENT_RELAY_`` (e.g. ``EVENT_RELAY_DATABASE_URL``).
"""

import os
import socket
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _default_publisher_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class Settings(BaseSettings):
    """Runtime settings.

    Attributes map directly to environment variables using the ``EVENT_RELAY_``
    prefix (case-insensitive). For example, ``outbox_batch_size`` <- ``EVENT_RELAY_OUTBOX_BATCH_SIZE``.
    """

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Application log level",
    )
    sql_log: bool = Field(
        default=False,
        description="Enable SQL query logging",
    )  # fmt: skip
    database_url: str | None = Field(
        default=None,
        description="Database connection string",
    )  # fmt: skip

    # Outbox publisher
    outbox_poll_interval: float = Field(
        default=10.0,
        gt=0,
        description="Seconds between two publisher ticks",
    )  # fmt: skip
    outbox_batch_size: int = Field(
        default=50,
        gt=0,
        description="Maximum number of outbox entries claimed per tick",
    )  # fmt: skip
    outbox_max_retries: int = Field(
        default=5,
        gt=0,
        description="Failed publish attempts before an entry is dead-lettered",
    )  # fmt: skip
    outbox_lease_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long a claimed entry stays reserved for one publisher",
    )  # fmt: skip
    publisher_id: str = Field(
        default_factory=_default_publisher_id,
        description="Identity of this publisher instance, used for entry leases",
    )  # fmt: skip

    # Sagas
    translation_target_languages: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["es", "fr", "de"],
        description="Languages verified lyrics are automatically translated into",
    )  # fmt: skip
    collaborators_factory: str | None = Field(
        default=None,
        description="Dotted 'module:callable' returning the external collaborators to wire",
    )  # fmt: skip

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str:
        """Normalize and validate log level."""
        if v is None:
            return "INFO"

        v_upper = str(v).upper()

        allowed = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR"}
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(sorted(allowed))}")

        return v_upper

    @field_validator("translation_target_languages", mode="before")
    @classmethod
    def split_languages(cls, v: str | list[str] | None) -> list[str]:
        """Accept a comma-separated string and normalize language codes."""
        if v is None:
            return []
        items = v.split(",") if isinstance(v, str) else v
        languages: list[str] = []
        for item in items:
            code = str(item).strip().lower()
            if code and code not in languages:
                languages.append(code)
        return languages

    model_config = SettingsConfigDict(
        env_prefix="EVENT_RELAY_",
        case_sensitive=False,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached ``Settings`` instance.

    The first invocation reads environment variables / .env file; subsequent
    calls reuse the same object to ensure consistent config.
    """

    return Settings()


__all__ = ["Settings", "get_settings"]
