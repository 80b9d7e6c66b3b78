# bvengine/core/db.py
"""
Database management for the BV compensation engine.
Single database, SQLite by default, PostgreSQL in production.
"""
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session

from config import Config
from models.base import Base

logger = logging.getLogger(__name__)

# Database engines
_engine = None
_SessionFactory = None

# Seconds a SQLite writer waits for the database lock
DEFAULT_SQLITE_BUSY_TIMEOUT = 30


def _configure_sqlite(engine: Engine) -> None:
    """
    Make pysqlite behave like a real transactional store.

    pysqlite issues its own BEGIN lazily and breaks SAVEPOINT handling,
    so BEGIN is emitted by SQLAlchemy instead. It is BEGIN IMMEDIATE:
    placement reads before it writes, and a deferred transaction would
    fail on the lock upgrade instead of waiting out the busy timeout.
    Foreign keys are off by default in SQLite and are switched on per
    connection.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured engine
    """
    connect_args = {}
    if make_url(database_url).get_backend_name() == "sqlite":
        connect_args["timeout"] = Config.get(
            Config.SQLITE_BUSY_TIMEOUT, DEFAULT_SQLITE_BUSY_TIMEOUT
        )

    engine = create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        connect_args=connect_args
    )
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine)
    return engine


def get_engine():
    """Get or create database engine."""
    global _engine
    if _engine is None:
        database_url = Config.get(Config.DATABASE_URL, "sqlite:///bvengine.db")
        _engine = create_db_engine(database_url)
        logger.info(f"Database engine created: {database_url}")
    return _engine


def get_session_factory():
    """Get or create session factory."""
    global _SessionFactory
    if _SessionFactory is None:
        engine = get_engine()
        _SessionFactory = sessionmaker(bind=engine)
        logger.info("Session factory created")
    return _SessionFactory


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        Session instance
    """
    factory = get_session_factory()
    return factory()


@contextmanager
def get_db_session_ctx():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session_ctx() as session:
            member = session.query(Member).first()
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database error: {e}")
        raise
    finally:
        session.close()


def setup_database():
    """Initialize database - create all tables."""
    logger.info("Setting up database...")
    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database setup completed")

