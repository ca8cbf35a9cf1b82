"""
Database layer for ContractLens.

One engine and session factory for the whole process. SQLite (the default)
runs on a single shared connection with foreign keys switched on, so the
cascades declared on analyses, annotations and conversations hold in the
database as well as in the ORM. Any other URL, typically PostgreSQL, gets a
pooled engine.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from contractlens.config import settings

# Configure logging
logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for a database URL.

    Args:
        database_url (str): SQLAlchemy URL
        echo (bool): Log emitted SQL

    Returns:
        Engine: Configured engine
    """
    if not database_url.startswith("sqlite"):
        logger.info("Using pooled database engine")
        return create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            echo=echo,
        )

    logger.info("Using SQLite database")
    sqlite_engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=echo,
    )

    @event.listens_for(sqlite_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


engine = build_engine(settings.database_url, echo=settings.database_echo)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency yielding a request-scoped session.

    Routes commit explicitly; anything raised while the request runs rolls
    the session back before it is closed.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Rolling back request session: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def session_scope(session_factory: Callable[[], Session] = SessionLocal) -> Iterator[Session]:
    """
    Run a unit of work outside a request and commit it as one transaction.

    Used where work outlives the request session, such as persisting a chat
    exchange after its stream ends.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db():
    """Create any missing tables for the registered models."""
    # Registers every model on Base.metadata
    import contractlens.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Could not create database tables: {e}")
        raise
    logger.info("Database tables are ready")


def check_db_connection() -> bool:
    """
    Probe the database with a trivial query.

    Returns:
        bool: False when the database cannot be reached
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
    return True


__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "build_engine",
    "get_db",
    "session_scope",
    "init_db",
    "check_db_connection",
]
