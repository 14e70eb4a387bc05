"""Database engine construction and session management."""

import logging
import time
from collections.abc import Generator
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from userapi.config import Settings

logger = logging.getLogger(__name__)

Base: Any = declarative_base()

DEFAULT_MAX_CONN = 25
PING_RETRIES = 10
PING_RETRY_DELAY_SECONDS = 1.0


class DatabaseUnavailableError(Exception):
    """Raised when the database cannot be reached at startup."""


def create_db_engine(settings: Settings) -> Engine:
    """Create the pooled engine described by the DB_* settings."""
    url = settings.database_url_resolved
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    max_conn = settings.db_max_conn or DEFAULT_MAX_CONN
    pool_size = max(min(settings.db_max_idle_conn, max_conn), 1)
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_conn - pool_size,
    )


def ping(engine: Engine) -> None:
    """Round-trip a trivial statement to prove the database is reachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def connect(
    settings: Settings,
    retries: int = PING_RETRIES,
    delay: float = PING_RETRY_DELAY_SECONDS,
) -> Engine:
    """Create the engine and wait until the database answers."""
    engine = create_db_engine(settings)

    for attempt in range(retries + 1):
        try:
            ping(engine)
            break
        except OperationalError as e:
            if attempt < retries:
                logger.warning(f"Unable to ping database. Retrying after {delay:g} second: {e}")
                time.sleep(delay)
                continue
            engine.dispose()
            raise DatabaseUnavailableError("Unable to ping database") from e

    logger.info(f"Connected to database {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency that provides a database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
