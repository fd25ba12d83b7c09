"""
Test fixtures for the Ledger API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh SQLite database file for each test
  - store: AccountStore over that database, with TEST_ACCOUNTS provisioned
  - processor: TransactionProcessor wrapping the store
  - client: Async HTTP test client wired to the processor

Key design decisions:
  - A temporary database FILE (not :memory:) is used. Every session then
    gets its own connection, so concurrent tests really contend for the
    write lock the way separate requests do in production.
  - The engine is built with the same build_engine() the app uses, so the
    BEGIN IMMEDIATE locking is under test too.
  - We override the get_transaction_processor dependency instead of running
    the lifespan, so no test ever touches the configured DATABASE_URL.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from app.database import build_engine, build_session_factory, create_schema
from app.dependencies import get_transaction_processor
from app.main import app
from app.models.account import Account
from app.models.transaction import Transaction
from app.provisioning import provision_accounts
from app.services.transaction_service import TransactionProcessor
from app.store import AccountStore

# (id, credit_limit), all starting at balance 0
TEST_ACCOUNTS = [
    (1, 1000),
    (2, 80_000),
    (3, 0),
]


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"


@pytest_asyncio.fixture
async def db_engine(db_url):
    """Create a fresh engine with all tables for each test."""
    engine = build_engine(db_url, lock_timeout=10.0)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def store(session_factory):
    """AccountStore with TEST_ACCOUNTS already provisioned."""
    await provision_accounts(session_factory, TEST_ACCOUNTS)
    return AccountStore(session_factory)


@pytest_asyncio.fixture
async def processor(store):
    return TransactionProcessor(store, statement_limit=10)


@pytest_asyncio.fixture
async def client(processor):
    """
    Async HTTP test client with the test processor injected.

    This overrides get_transaction_processor so all requests hit the
    temporary test database instead of the configured one.
    """
    app.dependency_overrides[get_transaction_processor] = lambda: processor

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def read_account(session_factory):
    """Read an account row directly, bypassing the store."""
    async def _read(account_id: int) -> Account:
        async with session_factory() as session:
            return await session.get(Account, account_id)
    return _read


@pytest_asyncio.fixture
async def count_transactions(session_factory):
    """Count log records for an account directly, bypassing the store."""
    async def _count(account_id: int) -> int:
        async with session_factory() as session:
            return await session.scalar(
                select(func.count())
                .select_from(Transaction)
                .where(Transaction.account_id == account_id)
            )
    return _count
