"""
Repository Database Plumbing.

============================================================
RESPONSIBILITY
============================================================
Creates the SQLAlchemy engine and hands out sessions.

- Engine built once from RepositoryConfig
- Session factory shared by all callers
- Context managers for cleanup and commit/rollback

Repositories never commit. Callers own the transaction and
use `transaction_scope()` or commit explicitly.

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from repository.config import RepositoryConfig


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


# =============================================================
# DATABASE ENGINE
# =============================================================


def create_database_engine(config: Optional[RepositoryConfig] = None) -> Engine:
    """
    Create SQLAlchemy engine and register it as the shared engine.

    Pool settings are only passed for server databases; SQLite
    uses the pool SQLAlchemy picks for it.

    Args:
        config: Connection settings (read from environment if omitted)

    Returns:
        SQLAlchemy Engine
    """
    global _engine, _SessionFactory

    config = config or RepositoryConfig.from_env()

    logger.info(f"Creating database engine for: {config.database_url.split('@')[-1]}")

    kwargs = {"echo": config.echo}
    if not config.is_sqlite:
        kwargs.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
        )

    engine = create_engine(config.database_url, **kwargs)

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    @event.listens_for(engine, "checkout")
    def on_checkout(dbapi_conn, connection_record, connection_proxy):
        logger.debug("Database connection checked out from pool")

    _engine = engine
    _SessionFactory = None
    return engine


def get_engine() -> Engine:
    """Get the database engine, creating if necessary."""
    if _engine is None:
        return create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Get session factory, creating if necessary."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionFactory


def dispose_engine() -> None:
    """Dispose the shared engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _SessionFactory = None


# =============================================================
# SESSION MANAGEMENT
# =============================================================


def get_session() -> Session:
    """
    Get a new database session.

    Caller is responsible for committing/closing.
    Prefer using get_db_session() context manager instead.
    """
    return get_session_factory()()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Usage:
        with get_db_session() as session:
            repo = UserRepository(session)
            repo.create({"name": "ada"})
            session.commit()

    On exception the session is rolled back and the exception
    re-raised.
    """
    session = get_session()
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Database error, rolling back: {e}")
        session.rollback()
        raise
    except Exception as e:
        logger.error(f"Unexpected error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope() -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs. Rolls back on ANY exception.
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except Exception as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()
