#!/usr/bin/env python3
"""
Migration runner for deployment.
Upgrades the Ping database schema to the latest Alembic revision.
"""
import logging
import sys

from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

from app.core.logging_config import setup_logging

logger = logging.getLogger("run_migration")


def run_migrations(config_path: str = "alembic.ini") -> int:
    """Run `alembic upgrade head`; returns a process exit code."""
    logger.info("Running database migrations")

    try:
        command.upgrade(Config(config_path), "head")
    except SQLAlchemyError:
        logger.exception("Migration failed")
        return 1

    logger.info("Migrations completed")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(run_migrations())
