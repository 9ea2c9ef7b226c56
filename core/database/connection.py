# SQL connection management for the ledger
import asyncio
import time
from contextlib import asynccontextmanager, nullcontext
from typing import AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from core.logging import get_database_logger_safe, get_error_logger_safe

db_logger = get_database_logger_safe("database_manager")
error_logger = get_error_logger_safe("database_manager")

# The base class for all SQLAlchemy models
Base = declarative_base()


def _is_memory_sqlite(url) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


class DatabaseManager:
    """Manages the connection to the ledger database.

    SQLite is the default backend. Write sessions (``get_session(write=True)``)
    open with ``BEGIN IMMEDIATE`` so a writer holds the database lock from its
    first read, which makes the read-check-write sequence of a trade
    serializable. Read sessions use a plain deferred ``BEGIN`` and never wait
    for writers under WAL.

    An in-memory database lives on one shared connection, which can only hold
    one transaction at a time, so sessions on it are taken one after another.
    A session must not open a second session while it is still open.
    PostgreSQL gets a regular connection pool and row locks via
    ``SELECT ... FOR UPDATE``.
    """

    def __init__(self, db_url: str, echo: bool = False, busy_timeout_seconds: float = 5.0):
        url = make_url(db_url)
        self._backend = url.get_backend_name()
        self._db_url = db_url

        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        single_connection = False
        if self._backend == "sqlite":
            engine_kwargs["connect_args"] = {"timeout": busy_timeout_seconds}
            if _is_memory_sqlite(url):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
                single_connection = True
        else:
            engine_kwargs.update(pool_size=20, max_overflow=30, pool_recycle=3600)

        self._engine = create_async_engine(db_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            class_=AsyncSession
        )
        self._write_session_factory = async_sessionmaker(
            self._engine.execution_options(ledger_write=True),
            expire_on_commit=False,
            class_=AsyncSession
        )
        self._session_gate: Optional[asyncio.Lock] = asyncio.Lock() if single_connection else None

        if self._backend == "sqlite":
            self._setup_sqlite_events()

    @property
    def engine(self):
        return self._engine

    @property
    def backend(self) -> str:
        return self._backend

    def _setup_sqlite_events(self) -> None:
        """Hand transaction control to SQLAlchemy and enforce foreign keys"""
        sync_engine = self._engine.sync_engine

        @event.listens_for(sync_engine, "connect")
        def on_connect(dbapi_connection, connection_record):
            # Disable the driver's implicit BEGIN so the "begin" hook below owns it
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(sync_engine, "begin")
        def on_begin(conn):
            if conn.get_execution_options().get("ledger_write"):
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

    async def init(self) -> None:
        """Create all tables that do not exist yet"""
        # Model registration happens on import
        from core.database import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        db_logger.info("Database initialized", backend=self._backend)

    async def drop_all(self) -> None:
        from core.database import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        db_logger.warning("All ledger tables dropped", backend=self._backend)

    async def verify_connection(self) -> bool:
        """Verify database connection is ready"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            error_logger.error("Database connection verification failed", error=str(e))
            return False

    async def shutdown(self) -> None:
        """Closes the database connection pool"""
        await self._engine.dispose()
        db_logger.info("Database connection pool closed")

    @asynccontextmanager
    async def get_session(self, write: bool = False) -> AsyncIterator[AsyncSession]:
        """Provides a new database session WITHOUT auto-commit.

        Callers own transaction boundaries (``async with session.begin()``).
        Any exception rolls the session back before it propagates. Pass
        ``write=True`` for sessions that read-check-write; on SQLite they take
        the database write lock when their transaction begins.
        """
        factory = self._write_session_factory if write else self._session_factory
        async with self._session_gate or nullcontext():
            session_start_time = time.monotonic()
            async with factory() as session:
                try:
                    yield session
                except Exception as session_error:
                    await session.rollback()
                    db_logger.debug("Database session rolled back",
                                    error_type=type(session_error).__name__,
                                    session_duration_ms=self._elapsed_ms(session_start_time))
                    raise
                finally:
                    duration_ms = self._elapsed_ms(session_start_time)
                    if duration_ms > 5000:
                        db_logger.warning("Long-running database session",
                                          session_duration_ms=duration_ms,
                                          threshold_ms=5000)

    @property
    def serializes_sessions(self) -> bool:
        """True when every session waits for the previous one (in-memory SQLite)"""
        return self._session_gate is not None

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.monotonic() - start) * 1000

    def describe(self) -> Optional[str]:
        """Connection URL with the password masked, for logs and health output"""
        return make_url(self._db_url).render_as_string(hide_password=True)
