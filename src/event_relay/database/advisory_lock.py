"""PostgreSQL advisory lock utilities for coordinating distributed operations.

Provides a context manager pattern for acquiring and releasing PostgreSQL advisory locks,
ensuring only one process can execute a critical section (like migrations).

Example:
    with advisory_lock(AdvisoryLock.MIGRATION):
        # Only one process enters here
        perform_migration()
"""

from contextlib import contextmanager
from enum import Enum

from loguru import logger
from sqlalchemy import text

from .connection import borrow_db_session


class AdvisoryLock(Enum):
    """Predefined advisory locks.

    Attributes:
        key: PostgreSQL advisory lock integer (must be unique across the application)
        name: Descriptive name for logging/debugging
    """

    MIGRATION = (7239847234, "migration")

    @property
    def key(self) -> int:
        return self.value[0]

    @property
    def lock_name(self) -> str:
        return self.value[1]


@contextmanager
def advisory_lock(lock: AdvisoryLock):
    """Context manager for PostgreSQL advisory locks.

    Ensures only one process can execute a critical section.
    Automatically releases lock on exit (even on exception).

    Args:
        lock: AdvisoryLock enum value (includes both key and name)

    Raises:
        SQLAlchemyError: If lock cannot be acquired or released
    """
    logger.debug(f"Acquiring advisory lock '{lock.lock_name}' (key={lock.key})...")
    with borrow_db_session() as session:
        try:
            session.exec(text(f"SELECT pg_advisory_lock({lock.key})"))
            logger.debug(f"Advisory lock '{lock.lock_name}' acquired")
            try:
                yield session
            finally:
                logger.debug(f"Releasing advisory lock '{lock.lock_name}'...")
                session.exec(text(f"SELECT pg_advisory_unlock({lock.key})"))
                logger.debug(f"Advisory lock '{lock.lock_name}' released")
        except Exception as e:
            logger.error(f"Error during advisory lock '{lock.lock_name}': {e}")
            raise


def supports_advisory_locks() -> bool:
    """Advisory locks exist only on PostgreSQL."""
    from .connection import get_engine

    return get_engine().dialect.name == "postgresql"
