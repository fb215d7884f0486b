# ledger/core/db.py - SQLAlchemy database setup and units of work
from sqlalchemy import create_engine, text, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool, QueuePool
from typing import Generator, Iterator, Optional
import logging
import time
import threading
from contextlib import contextmanager

from ledger.core.config import settings

logger = logging.getLogger(__name__)

# Session.info key holding the nesting depth of unit_of_work scopes
_UOW_DEPTH_KEY = "ledger_uow_depth"


class DatabaseManager:
    """Database manager with connection pooling and health monitoring"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.DATABASE_URL
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def initialize(self):
        """Initialize database engine and session maker"""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.engine = self._create_engine()
                self.SessionLocal = sessionmaker(
                    autocommit=False,
                    autoflush=False,
                    expire_on_commit=False,
                    bind=self.engine,
                )
                self._setup_event_listeners()
                self._initialized = True
                logger.info("Database initialized successfully")

            except Exception as e:
                logger.error(f"Failed to initialize database: {e}")
                raise

    def _create_engine(self) -> Engine:
        """Create SQLAlchemy engine for the configured backend"""
        engine_args = {
            "url": self.url,
            "echo": settings.DATABASE_ECHO,
        }

        if self.is_sqlite:
            engine_args["connect_args"] = {
                "check_same_thread": False,
                "timeout": 30,  # seconds to wait on SQLite write locks
            }
            if ":memory:" in self.url or self.url.rstrip("/") == "sqlite:":
                # One shared connection, otherwise every checkout sees an empty database
                engine_args["poolclass"] = StaticPool
        else:
            engine_args.update({
                "poolclass": QueuePool,
                "pool_size": settings.DATABASE_POOL_SIZE,
                "max_overflow": settings.DATABASE_MAX_OVERFLOW,
                "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
                "pool_recycle": settings.DATABASE_POOL_RECYCLE,
                "pool_pre_ping": True,
                # Balance updates rely on row locks taken under read committed
                "isolation_level": "READ COMMITTED",
                "connect_args": {
                    "connect_timeout": 10,
                    "application_name": f"school_ledger_{settings.ENV}",
                    "options": "-c timezone=UTC",
                },
            })

        return create_engine(**engine_args)

    def _setup_event_listeners(self):
        """Set up SQLAlchemy event listeners for pragmas and slow query logging"""
        is_sqlite = self.is_sqlite

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            if is_sqlite:
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.close()

        @event.listens_for(self.engine, "before_cursor_execute")
        def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if settings.is_development:
                context._query_start_time = time.time()

        @event.listens_for(self.engine, "after_cursor_execute")
        def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if settings.is_development and hasattr(context, "_query_start_time"):
                total = time.time() - context._query_start_time
                if total > settings.SLOW_QUERY_SECONDS:
                    logger.warning(f"Slow query ({total:.3f}s): {statement[:100]}...")

    def create_all(self):
        """Create all ledger tables (development and tests; production uses alembic)"""
        from ledger.models import Base

        if not self._initialized:
            self.initialize()
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Generator[Session, None, None]:
        """
        Get database session with automatic cleanup and error handling.

        Yields:
            Session: SQLAlchemy database session
        """
        if not self._initialized:
            self.initialize()

        session = self.SessionLocal()
        try:
            yield session
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for a fresh session wrapped in one unit of work.

        Usage:
            with db_manager.transaction() as session:
                AccountStore(session).create(...)
                # Commits on success, rolls back on error
        """
        if not self._initialized:
            self.initialize()

        session = self.SessionLocal()
        try:
            with unit_of_work(session):
                yield session
        finally:
            session.close()

    def health_check(self) -> dict:
        """Perform database health check."""
        try:
            start_time = time.time()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            response_time = (time.time() - start_time) * 1000
            return {"status": "healthy", "response_time_ms": round(response_time, 2)}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

    def close(self):
        """Close database connections and cleanup"""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """
    Run a block as one atomic ledger operation.

    The outermost scope on a session commits when the block finishes and rolls
    back everything when it raises. Nested scopes (one service calling
    another) join the outer unit and leave commit/rollback to it, so a loan
    disbursement and the transaction row it writes land together or not at all.
    """
    depth = session.info.get(_UOW_DEPTH_KEY, 0)
    session.info[_UOW_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except Exception as e:
        if depth == 0:
            session.rollback()
            logger.error(f"Ledger unit of work rolled back: {e}")
        raise
    finally:
        session.info[_UOW_DEPTH_KEY] = depth


# Create global database manager instance
db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency to get database session.

    Yields:
        Session: SQLAlchemy database session
    """
    yield from db_manager.get_session()


def get_engine() -> Engine:
    """Get SQLAlchemy engine instance"""
    if not db_manager._initialized:
        db_manager.initialize()
    return db_manager.engine


def health_check() -> dict:
    """Get database health status (convenience function)"""
    if not db_manager._initialized:
        db_manager.initialize()
    return db_manager.health_check()


__all__ = [
    "DatabaseManager",
    "db_manager",
    "get_db",
    "get_engine",
    "health_check",
    "unit_of_work",
]
