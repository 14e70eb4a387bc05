"""Schema migration at service startup, driven through Alembic."""

import logging
import time
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from userapi.config import LOCAL_ENVIRONMENT

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
ALEMBIC_INI = PROJECT_ROOT / "alembic.ini"
SCRIPT_LOCATION = PROJECT_ROOT / "alembic"

# pg advisory lock id shared by every instance migrating the same database
MIGRATION_LOCK_ID = 72_041_993
LOCK_ATTEMPTS = 5
LOCK_RETRY_DELAY_SECONDS = 60.0


class MigrationLockedError(Exception):
    """Raised when another instance holds the migration lock for too long."""


def alembic_config(connection: Connection) -> Config:
    """Alembic config that runs against an already open connection."""
    config = Config(str(ALEMBIC_INI)) if ALEMBIC_INI.exists() else Config()
    config.set_main_option("script_location", str(SCRIPT_LOCATION))
    config.attributes["connection"] = connection
    return config


def current_revision(connection: Connection) -> str | None:
    """Revision currently stamped in the database, None for an empty schema."""
    return MigrationContext.configure(connection).get_current_revision()


def _try_lock(connection: Connection) -> bool:
    if connection.dialect.name != "postgresql":
        return True
    return bool(
        connection.execute(
            text("SELECT pg_try_advisory_lock(:id)"), {"id": MIGRATION_LOCK_ID}
        ).scalar()
    )


def _unlock(connection: Connection) -> None:
    if connection.dialect.name == "postgresql":
        connection.execute(text("SELECT pg_advisory_unlock(:id)"), {"id": MIGRATION_LOCK_ID})
        connection.commit()


def run_migrations(
    engine: Engine,
    environment: str,
    attempts: int = LOCK_ATTEMPTS,
    delay: float = LOCK_RETRY_DELAY_SECONDS,
) -> str | None:
    """Bring the schema to the latest revision and return it.

    The Local environment drops every table first and re-applies all
    migrations, wiping the data.
    """
    with engine.connect() as connection:
        version = current_revision(connection)
        logger.info(f"Current schema version of database: {version}")
        config = alembic_config(connection)

        for attempt in range(1, attempts + 1):
            if _try_lock(connection):
                break
            connection.rollback()
            logger.warning(
                "Database locked. Assuming another instance working on it. "
                f"Will retry in a minute (attempt {attempt}/{attempts})"
            )
            time.sleep(delay)
        else:
            raise MigrationLockedError(f"Migration lock still held after {attempts} attempts")

        try:
            if environment == LOCAL_ENVIRONMENT:
                command.downgrade(config, "base")
                connection.commit()
                logger.warning("Dropped database")

            command.upgrade(config, "head")
            connection.commit()
        finally:
            _unlock(connection)

        new_version = current_revision(connection)

    if new_version == version:
        logger.info("No pending migrations in database")
    else:
        logger.info(f"Migration successful: old={version} new={new_version}")
    return new_version
