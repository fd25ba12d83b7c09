"""
AccountStore — durable account rows plus the append-only transaction log.

AccountStore is the only writer of both tables. It receives a session
factory when it is built (in the application lifespan, or in a test
fixture) and runs every public method as its own unit of work: one
session, one database transaction, committed or rolled back as a whole.

Atomicity:
  apply_delta changes the balance and appends the Transaction record in
  the SAME database transaction. If anything fails (limit check, constraint,
  lost connection, task cancellation) the context managers roll back both
  writes, so the balance always equals the signed sum of the log.

Row locking:
  The account row is read with SELECT ... FOR UPDATE, so a second
  apply_delta for the same account blocks until the first one commits or
  rolls back and then reads the committed balance. Different accounts lock
  different rows and never wait on each other. On SQLite the FOR UPDATE is
  a no-op and the BEGIN IMMEDIATE installed by app.database provides the
  serialisation instead.

Storage failures:
  SQLAlchemy errors never leave this module as-is. Pool timeouts and
  operational errors (lock timeouts, dropped connections, serialization
  failures) become TransientStorageError; anything else becomes
  InternalStorageError. Nothing is retried here.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

import structlog
from sqlalchemy import exc, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import BIGINT_MAX, BIGINT_MIN
from app.exceptions import (
    AccountNotFoundError,
    InternalStorageError,
    InvalidRequestError,
    LedgerError,
    LimitExceededError,
    TransientStorageError,
)
from app.models.account import Account
from app.models.transaction import Transaction

logger = structlog.get_logger(__name__)


class AccountStore:
    """Atomic balance updates and ordered log reads over an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session inside one database transaction.

        Commits when the block exits normally, rolls back on any exception,
        and translates storage exceptions into the ledger error taxonomy.
        Ledger errors raised inside the block pass through untouched (after
        the rollback).
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except LedgerError:
            raise
        except exc.TimeoutError as err:
            # Pool exhausted for longer than pool_timeout
            logger.warning("Connection pool timeout", error=str(err))
            raise TransientStorageError("Timed out waiting for a database connection") from err
        except exc.OperationalError as err:
            logger.warning("Storage operational error", error=str(err.orig))
            raise TransientStorageError() from err
        except exc.DBAPIError as err:
            if err.connection_invalidated:
                logger.warning("Storage connection lost", error=str(err.orig))
                raise TransientStorageError() from err
            logger.error("Storage failure", error=str(err.orig), exc_info=True)
            raise InternalStorageError() from err
        except exc.SQLAlchemyError as err:
            logger.error("Storage failure", error=str(err), exc_info=True)
            raise InternalStorageError() from err
        except OverflowError as err:
            # Driver refused an integer outside the column range
            logger.error("Storage value out of range", error=str(err))
            raise InternalStorageError() from err
        except OSError as err:
            # Raised by some drivers when the server can't be reached at all
            logger.warning("Storage unreachable", error=str(err))
            raise TransientStorageError() from err

    async def apply_delta(
        self,
        account_id: int,
        signed_delta: int,
        record: Transaction,
    ) -> tuple[int, int]:
        """
        Apply a signed balance change and append its record, atomically.

        Args:
            account_id: The account to change.
            signed_delta: Amount to add to the balance (negative for debits).
            record: The Transaction to append. account_id and inserted_at
                    are set here, inside the locked unit.

        Returns:
            (new_balance, credit_limit) as committed.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
            LimitExceededError: If the new balance would fall below -credit_limit.
                                Nothing is written.
            InvalidRequestError: If the new balance would not fit in BIGINT.
                                Nothing is written.
            TransientStorageError / InternalStorageError: On storage failure.
                                Nothing is written.
        """
        async with self._unit_of_work() as session:
            # Existence check before taking the row lock
            found = await session.scalar(
                select(Account.id).where(Account.id == account_id)
            )
            if found is None:
                raise AccountNotFoundError(account_id)

            result = await session.execute(
                select(Account)
                .where(Account.id == account_id)
                .with_for_update()  # Row lock on PostgreSQL; SQLite already holds the write lock
            )
            account = result.scalar_one()

            candidate = account.balance + signed_delta
            if candidate < -account.credit_limit:
                raise LimitExceededError(
                    account_id=account_id,
                    balance=account.balance,
                    credit_limit=account.credit_limit,
                    requested_delta=signed_delta,
                )
            if not BIGINT_MIN <= candidate <= BIGINT_MAX:
                raise InvalidRequestError(
                    "value",
                    f"Balance of account {account_id} would overflow a 64-bit integer",
                )

            account.balance = candidate
            record.account_id = account_id
            # Stamped while holding the lock, so timestamps follow commit order
            record.inserted_at = datetime.now(timezone.utc)
            session.add(record)
            await session.flush()

            new_balance = account.balance
            credit_limit = account.credit_limit

        return new_balance, credit_limit

    async def read_snapshot(self, account_id: int) -> tuple[int, int, datetime]:
        """
        Read the current balance and limit in a single query.

        Returns:
            (balance, credit_limit, as_of) where as_of is the read time (UTC).

        Raises:
            AccountNotFoundError: If the account doesn't exist.
        """
        async with self._unit_of_work() as session:
            result = await session.execute(
                select(Account.balance, Account.credit_limit)
                .where(Account.id == account_id)
            )
            row = result.one_or_none()
            as_of = datetime.now(timezone.utc)

        if row is None:
            raise AccountNotFoundError(account_id)

        return row.balance, row.credit_limit, as_of

    async def read_recent_log(self, account_id: int, limit: int = 10) -> list[Transaction]:
        """
        Most recent records for an account, newest first.

        Ties on inserted_at are broken by insertion order (id). The list is
        materialised before the session closes; an unknown account simply
        has an empty log.
        """
        async with self._unit_of_work() as session:
            result = await session.execute(
                select(Transaction)
                .where(Transaction.account_id == account_id)
                .order_by(Transaction.inserted_at.desc(), Transaction.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
