"""
Transaction service — the ledger's business logic.

TransactionProcessor validates incoming credits/debits, turns them into a
signed balance change and hands them to AccountStore.apply_delta, which
does the locked read-check-write. It also builds the statement view.

Validation:
  Every check runs before storage is touched. A request that fails
  validation raises InvalidRequestError and never opens a session:
    - value must be an int (not a bool) greater than zero that fits in BIGINT
    - kind must be TransactionKind, or exactly "c" / "d"
    - description must be a str of 1 to 10 characters

Statements:
  statement() reads the balance snapshot and then the recent log in two
  separate units of work. A transaction may commit between the two reads,
  so the log can be one entry ahead of the balance. Statements are
  advisory, so this is accepted rather than paid for with a longer lock.
"""

import structlog

from app.database import BIGINT_MAX
from app.exceptions import AccountNotFoundError, InvalidRequestError, LimitExceededError
from app.models.transaction import Transaction, TransactionKind
from app.store import AccountStore

logger = structlog.get_logger(__name__)

DESCRIPTION_MIN_LENGTH = 1
DESCRIPTION_MAX_LENGTH = 10


def parse_kind(kind: TransactionKind | str) -> TransactionKind:
    """Convert a raw tag to TransactionKind, rejecting anything but "c" and "d"."""
    if isinstance(kind, TransactionKind):
        return kind
    if isinstance(kind, str):
        try:
            return TransactionKind(kind)
        except ValueError:
            pass
    raise InvalidRequestError("kind", f"Invalid transaction kind: {kind!r}")


def validate_value(value: int) -> int:
    # bool is an int subclass; True must not mean 1
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidRequestError("value", "Transaction value must be an integer")
    if value <= 0:
        raise InvalidRequestError("value", "Transaction value must be positive")
    if value > BIGINT_MAX:
        raise InvalidRequestError("value", f"Transaction value must not exceed {BIGINT_MAX}")
    return value


def validate_description(description: str) -> str:
    if not isinstance(description, str):
        raise InvalidRequestError("description", "Description must be a string")
    if not DESCRIPTION_MIN_LENGTH <= len(description) <= DESCRIPTION_MAX_LENGTH:
        raise InvalidRequestError(
            "description",
            f"Description must be between {DESCRIPTION_MIN_LENGTH} and "
            f"{DESCRIPTION_MAX_LENGTH} characters",
        )
    return description


class TransactionProcessor:
    """Validates transactions and drives AccountStore's atomic update."""

    def __init__(self, store: AccountStore, statement_limit: int = 10):
        self.store = store
        self.statement_limit = statement_limit

    async def apply(
        self,
        account_id: int,
        value: int,
        kind: TransactionKind | str,
        description: str,
    ) -> dict:
        """
        Apply a single credit or debit to an account.

        Args:
            account_id: The account to credit/debit.
            value: Positive integer magnitude.
            kind: TransactionKind.CREDIT / DEBIT (or the raw "c" / "d" tag).
            description: Memo of 1 to 10 characters.

        Returns:
            {"balance": int, "credit_limit": int} after the commit.

        Raises:
            InvalidRequestError: If validation fails (storage untouched),
                or if the balance would overflow (nothing written).
            AccountNotFoundError: If the account doesn't exist.
            LimitExceededError: If the balance would fall below -credit_limit.
            TransientStorageError / InternalStorageError: On storage failure.
        """
        value = validate_value(value)
        kind = parse_kind(kind)
        description = validate_description(description)

        signed_delta = kind.signed(value)
        record = Transaction(value=value, kind=kind, description=description)

        try:
            balance, credit_limit = await self.store.apply_delta(
                account_id, signed_delta, record
            )
        except AccountNotFoundError:
            logger.info("Transaction rejected: unknown account", account_id=account_id)
            raise
        except LimitExceededError as err:
            logger.info(
                "Transaction rejected: credit limit",
                account_id=account_id,
                kind=kind.value,
                value=value,
                balance=err.balance,
                credit_limit=err.credit_limit,
            )
            raise

        logger.info(
            "Transaction applied",
            account_id=account_id,
            kind=kind.value,
            value=value,
            balance=balance,
        )
        return {"balance": balance, "credit_limit": credit_limit}

    async def statement(self, account_id: int) -> dict:
        """
        Current balance plus the most recent transactions, newest first.

        Returns:
            Dictionary matching the StatementResponse schema.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
        """
        balance, credit_limit, as_of = await self.store.read_snapshot(account_id)
        transactions = await self.store.read_recent_log(
            account_id, limit=self.statement_limit
        )

        return {
            "balance": balance,
            "credit_limit": credit_limit,
            "as_of": as_of,
            "last_transactions": transactions,
        }
