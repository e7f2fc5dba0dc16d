"""Alembic utility functions for database schema management."""

import os
from typing import Any

import alembic.command
import alembic.config
from alembic.script import ScriptDirectory
from loguru import logger
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from .connection import borrow_db_session


class AlembicManager:
    """Centralized alembic operations manager.

    Provides schema validation, migration detection and migration execution
    for the CLI.
    """

    def __init__(self):
        """Initialize alembic configuration."""
        self.alembic_cfg = None
        self._init_alembic_config()

    def _init_alembic_config(self) -> None:
        """Initialize alembic configuration.

        Searches for alembic.ini in the current working directory first, then
        in the project root. The script location is made absolute so
        migrations work from any directory.
        """
        try:
            alembic_ini_path = os.path.join(os.getcwd(), "alembic.ini")
            project_root = os.getcwd()

            if not os.path.exists(alembic_ini_path):
                # database/ -> event_relay/ -> src/ -> project root
                project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
                alembic_ini_path = os.path.join(project_root, "alembic.ini")

            if not os.path.exists(alembic_ini_path):
                logger.error("Alembic configuration file not found in cwd or project root")
                self.alembic_cfg = None
                return

            logger.trace(f"Loading alembic configuration from: {alembic_ini_path}")
            self.alembic_cfg = alembic.config.Config(alembic_ini_path)

            migrations_path = os.path.join(project_root, "migrations")
            if os.path.exists(migrations_path):
                self.alembic_cfg.set_main_option("script_location", migrations_path)
                logger.trace(f"Set migrations path to: {migrations_path}")
        except (OSError, ValueError, RuntimeError) as e:
            logger.error(f"Failed to initialize alembic configuration: {str(e)}")
            self.alembic_cfg = None

    def get_current_revision(self) -> str | None:
        """Get current alembic revision from database."""
        if not self.alembic_cfg:
            logger.error("Alembic configuration not initialized")
            return None

        with borrow_db_session() as session:
            try:
                current_rev = session.exec(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
                logger.trace(f"Current database revision: {current_rev}")
                return current_rev
            except (SQLAlchemyError, ValueError, RuntimeError, AttributeError) as e:
                logger.error(f"Failed to get current revision: {str(e)}")
                return None

    def get_head_revision(self) -> str:
        """Get head revision from alembic scripts."""
        if not self.alembic_cfg:
            logger.error("Alembic configuration not initialized")
            return ""

        try:
            script_directory = ScriptDirectory.from_config(self.alembic_cfg)
            head_rev = script_directory.get_current_head()
            logger.trace(f"Head revision from scripts: {head_rev}")
            return head_rev or ""
        except (OSError, ValueError, RuntimeError, AttributeError) as e:
            logger.error(f"Failed to get head revision: {str(e)}")
            return ""

    def perform_migration(self, target: str = "head") -> bool:
        """Execute database migration to specified target.

        Args:
            target: Migration target (default: "head")

        Returns:
            True if migration successful, False otherwise
        """
        if not self.alembic_cfg:
            logger.error("Alembic configuration not initialized")
            return False

        try:
            logger.info(f"Starting database migration to '{target}'")
            alembic.command.upgrade(self.alembic_cfg, target)
            logger.info(f"Database migration to '{target}' completed successfully")
            return True
        except (OSError, ValueError, RuntimeError, SQLAlchemyError) as e:
            logger.error(f"Migration failed: {str(e)}")
            return False

    def validate_schema_state(self) -> tuple[str, dict[str, Any], bool]:
        """Validate schema state without performing migrations.

        Returns:
            Tuple of (message, details, is_success)
        """
        if not self.alembic_cfg:
            return ("Alembic configuration not available", {"error": "alembic_cfg is None"}, False)

        with borrow_db_session() as session:
            try:
                inspector = inspect(session.bind)
                if "alembic_version" not in inspector.get_table_names():
                    return ("Alembic version table not found", {"has_alembic_table": False}, False)

                current_rev = self.get_current_revision()
                head_rev = self.get_head_revision()
                details = {
                    "has_alembic_table": True,
                    "has_version": current_rev is not None,
                    "current_revision": current_rev,
                    "head_revision": head_rev,
                    "is_latest": bool(current_rev) and current_rev == head_rev,
                }

                if not current_rev:
                    return ("No alembic version record found", details, False)
                if details["is_latest"]:
                    return ("Database schema is at latest version", details, True)
                return (f"Database schema is out of date. Current: {current_rev}, Head: {head_rev}", details, False)

            except (OSError, ValueError, RuntimeError, AttributeError, SQLAlchemyError) as e:
                logger.error(f"Error checking database schema: {str(e)}")
                return (f"Error checking database schema: {str(e)}", {"error": str(e), "type": type(e).__name__}, False)
