"""Database package for the event relay.

This package provides database connection utilities and alembic management tools.
"""

from .alembic_utils import AlembicManager
from .connection import borrow_db_session, dispose_db, get_engine

__all__ = [
    "borrow_db_session",
    "get_engine",
    "dispose_db",
    "AlembicManager",
]
