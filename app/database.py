"""
Database engine, session factory, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - Base: Declarative base class that all ORM models inherit from
  - build_engine(): Creates the async engine (and its connection pool)
  - build_session_factory(): Creates the AsyncSession factory
  - create_schema(): Creates all tables that don't exist yet
  - UTCDateTime, BIGINT_MIN/BIGINT_MAX: column type helpers shared by the models

Nothing here is created at import time. The application lifespan builds
the engine once at startup, passes the session factory to the AccountStore,
and disposes the engine at shutdown. Tests build their own engine the same
way against a temporary database file.

Row locking:
  On PostgreSQL, AccountStore serialises writers per account with
  SELECT ... FOR UPDATE. SQLite has no row locks and ignores FOR UPDATE,
  so for SQLite we take over transaction control from the driver and start
  every transaction with BEGIN IMMEDIATE. That grabs the database write
  lock up front, which serialises all read-check-write units. Coarser than
  a row lock, but it gives the same guarantee: no two units ever read the
  same stale balance.
"""

from datetime import timezone
from pathlib import Path

from sqlalchemy import DateTime, TypeDecorator, event
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

    Provides metadata tracking for create_schema() and common declarative
    mapping features.
    """
    pass


# Range of a signed 64-bit BIGINT column
BIGINT_MIN = -(2**63)
BIGINT_MAX = 2**63 - 1


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always comes back in UTC.

    SQLite has no timezone type and returns naive datetimes even for
    DateTime(timezone=True); values are stored in UTC and tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _install_sqlite_locking(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock at BEGIN."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop the driver from emitting its own deferred BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: float = 3.0,
    lock_timeout: float = 5.0,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create the async engine for the given URL.

    For server databases the pool is bounded: a request that can't get a
    connection within pool_timeout seconds fails instead of queueing forever.
    For SQLite the pool arguments don't apply; lock_timeout bounds how long
    a unit waits for the write lock.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": lock_timeout},
        )
        _install_sqlite_locking(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to the engine.

    expire_on_commit=False keeps loaded attributes readable after commit,
    so records returned from a closed session can still be serialised.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """
    Create all tables if they don't exist.

    Imports the models package so every table is registered on Base.metadata.
    """
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
