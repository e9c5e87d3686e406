"""
Database Persistence Layer - Core Engine.

============================================================
DATABASE PERSISTENCE
============================================================

Provides the SQLAlchemy engine, sessions and transaction scope
used by the SQL baseline store and the SQL assessment repository.

Requirements:
- SQLAlchemy ORM (PostgreSQL in production, SQLite for local runs)
- Explicit transaction management
- Hard failures on persistence errors

============================================================
"""

import os
import logging
from typing import Generator, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from dotenv import load_dotenv

from core.exceptions import DependencyError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///risk_assessments.db"

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(DependencyError):
    """Raised when database persistence fails."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("dependency", "database")
        super().__init__(message, **kwargs)


# =============================================================
# DATABASE ENGINE
# =============================================================

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL")
    if url and url.startswith("postgresql+asyncpg"):
        # sync driver only
        url = url.replace("postgresql+asyncpg", "postgresql")

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def create_database_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
) -> Engine:
    """
    Create SQLAlchemy engine.

    In-memory SQLite shares one connection across threads so that
    repositories running in worker threads see the same database.

    Args:
        database_url: SQLAlchemy URL (defaults to DATABASE_URL)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = database_url or get_database_url()
    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, future=True, **kwargs)
    else:
        engine = create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_timeout=30,
            pool_recycle=1800,
            echo=echo,
            future=True,
        )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def get_engine() -> Engine:
    """Get the process database engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get a session factory.

    With an explicit engine a new factory is returned; without one the
    process-wide factory is created on first use.
    """
    global _SessionFactory

    if engine is not None:
        return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionFactory


# =============================================================
# SESSION MANAGEMENT
# =============================================================


@contextmanager
def transaction_scope(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    Usage:
        with transaction_scope(factory) as session:
            session.add(record)
            # Commits automatically at end
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}", cause=e) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        DatabasePersistenceError if table creation fails
    """
    engine = engine or get_engine()

    # register models with Base
    import assessment.models  # noqa: F401
    import risk_analysis.models  # noqa: F401

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabasePersistenceError(f"Table creation failed: {e}", cause=e) from e


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "DatabasePersistenceError",
    "create_database_engine",
    "get_database_url",
    "get_engine",
    "get_session_factory",
    "transaction_scope",
    "create_all_tables",
]
