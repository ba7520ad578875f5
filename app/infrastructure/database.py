"""Database configuration and session management."""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import Settings, get_settings
from app.domain.errors import TransientIOError


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> Engine:
    """Create the SQLAlchemy engine for the configured message log."""

    connect_args: dict[str, object] = {}
    if settings.database_url.startswith("sqlite"):
        # Sessions are opened from FastAPI's threadpool and from the realtime
        # workers, so the same SQLite connection may cross threads.
        connect_args["check_same_thread"] = False
    return create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)


settings = get_settings()
engine = build_engine(settings)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def initialize_database() -> None:
    """Ensure all ORM models have corresponding database tables."""

    from app.infrastructure import models  # noqa: F401  # ensure models are imported

    Base.metadata.create_all(bind=engine, checkfirst=True)


def get_db() -> Generator:
    """Yield a database session and close it afterwards."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def translate_transient_errors(operation: str) -> Iterator[None]:
    """Re-raise connectivity failures from the driver as :class:`TransientIOError`."""

    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.warning("Message log unavailable during %s: %s", operation, exc)
        raise TransientIOError(f"Message log unavailable during {operation}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            logger.warning("Connection invalidated during %s: %s", operation, exc)
            raise TransientIOError(f"Message log unavailable during {operation}") from exc
        raise


initialize_database()
