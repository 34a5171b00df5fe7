# src/aegis/server/database.py
import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from ..core.errors import StorageError
from .config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """
    Create an engine for the vault database.

    SQLite needs check_same_thread=False because FastAPI serves sync routes
    from a thread pool, and foreign keys have to be switched on per
    connection for ON DELETE CASCADE to apply.
    """
    connect_args = kwargs.pop("connect_args", {})
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args.setdefault("check_same_thread", False)

    engine = create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)


# Called on startup to create the users and credential_records tables
def init_db(bind: Engine = engine) -> None:
    # the table models must be imported before create_all sees them
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind)
    logger.info("Database schema ready")


# One session per command, for FastAPI's Depends.
# The connection goes back to the pool when the request ends, even on errors.
def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@contextmanager
def storage_guard(session: Session, operation: str) -> Iterator[Session]:
    """Roll back and re-raise persistence failures as StorageError."""
    try:
        yield session
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Storage failure during %s: %s", operation, exc.__class__.__name__)
        raise StorageError(f"{operation} failed") from exc
