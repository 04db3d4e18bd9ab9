"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - Base: Declarative base class that all ORM models inherit from
  - Database: Owns the async engine (connection pool) and session factory.
    One instance is created at application startup, handed to the services
    that need it, and disposed at shutdown. Nothing here is process-wide
    state, so tests can run any number of isolated databases side by side.

Transaction scope:
  Database.transaction() opens a session and a transaction together and
  guarantees both are closed on the way out: commit on success, rollback
  on any exception. Acquisition and cleanup live in one `async with`, so
  no failure path can skip the rollback.

SQLite note:
  SQLite has no row-level locks. Transactions are started with
  BEGIN IMMEDIATE, which takes the database write lock up front so two
  writers queue on the busy timeout instead of deadlocking on a lock
  upgrade. PostgreSQL (asyncpg) uses ordinary transactions plus
  SELECT ... FOR UPDATE in the services.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class, which provides:
      - Metadata tracking for create_all()
      - Common declarative mapping features
    """
    pass


class Database:
    """
    Explicitly owned data-access dependency.

    Usage:
        database = Database("sqlite+aiosqlite:///./data/bank.db")
        await database.create_all()
        async with database.transaction() as session:
            ...
        await database.dispose()
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        sqlite_busy_timeout: float = 5.0,
    ):
        self.url = make_url(url)
        connect_args = {}

        if self.is_sqlite:
            connect_args["timeout"] = sqlite_busy_timeout
            _ensure_sqlite_directory(self.url.database)

        # echo=True logs all SQL statements — invaluable for development.
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=echo,
            connect_args=connect_args,
        )

        if self.is_sqlite:
            _configure_sqlite(self.engine)

        # expire_on_commit=False keeps attributes readable after commit
        # without a lazy (synchronous) reload, which fails in async context.
        self.sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    @property
    def supports_row_locks(self) -> bool:
        """Whether SELECT ... FOR UPDATE actually locks rows."""
        return not self.is_sqlite

    async def create_all(self) -> None:
        """
        Create all tables that don't exist yet.

        Models must be imported before this runs so their tables are
        registered on Base.metadata.
        """
        import bank_ledger.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session bound to one database transaction.

        Commits when the block exits normally, rolls back when it raises.
        The exception is re-raised unchanged.
        """
        async with self.sessionmaker() as session:
            async with session.begin():
                yield session


def _ensure_sqlite_directory(database: str | None) -> None:
    """sqlite3 cannot create missing parent directories."""
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def _configure_sqlite(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Take over BEGIN from the driver so it can be made IMMEDIATE
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
