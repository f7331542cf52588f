"""
Database Connection Management

Synchronous SQLAlchemy 2.0 engine and session lifecycle for the warehouse.
The pipeline runs one statement sequence at a time, so a single engine with
scoped sessions is enough.
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import structlog
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from warehouse_analytics.config import get_settings
from warehouse_analytics.database.models import Base

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite only enforces foreign keys when asked to, per connection"""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_warehouse_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite shares one connection so that every session sees the
    same database.
    """
    engine_config: Dict[str, Any] = {
        "echo": echo,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        engine_config["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            engine_config["poolclass"] = StaticPool

    engine = create_engine(url, **engine_config)

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    return engine


def init_database(url: Optional[str] = None, create_schema: bool = True) -> Engine:
    """
    Initialize the database engine and, optionally, the warehouse schema.

    Args:
        url: Database URL; defaults to the configured one
        create_schema: Create tables and indexes that do not exist yet

    Returns:
        Engine: The initialized database engine
    """
    global _engine, _session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    _engine = create_warehouse_engine(
        url or settings.database.sync_url,
        echo=settings.database.echo,
    )

    _session_factory = sessionmaker(
        bind=_engine,
        expire_on_commit=False,
        autoflush=False,
    )

    try:
        with _engine.begin() as conn:
            conn.execute(text("SELECT 1"))
        if create_schema:
            Base.metadata.create_all(_engine)
        logger.info(
            "Database connection established",
            dialect=_engine.dialect.name,
            database=_engine.url.database,
        )
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        _engine.dispose()
        _engine = None
        _session_factory = None
        raise

    return _engine


def close_database() -> None:
    """Dispose of the engine and its pooled connections."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connection pool closed")


def get_engine() -> Engine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    Get a database session.

    Commits on success, rolls back on error, always closes.

    Example:
        with get_db() as db:
            rows = db.execute(query).all()
    """
    if _session_factory is None:
        logger.error("Database not initialized when get_db() called")
        raise RuntimeError("Database not initialized. Call init_database() first.")

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
        session.rollback()
        raise
    finally:
        session.close()
