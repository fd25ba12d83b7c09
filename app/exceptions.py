"""
Custom exception classes and FastAPI exception handlers.

The ledger core (AccountStore and TransactionProcessor) raises these
domain errors without importing any HTTP concepts. The handlers registered
here translate them into HTTP responses with a consistent JSON body:
{"detail": "...", "error_type": "..."}.

Exception hierarchy:
    LedgerError (base)
    ├── InvalidRequestError    — malformed value/kind/description, no storage touched
    ├── AccountNotFoundError   — requested account doesn't exist
    ├── LimitExceededError     — transaction would push balance below -credit_limit
    ├── TransientStorageError  — pool timeout, lock contention, lost connection
    └── InternalStorageError   — any other storage failure

Every one of these is raised only after the unit of work has been rolled
back (or before it started), so the balance and the transaction log are
always exactly as they were before the failing call.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InvalidRequestError(LedgerError):
    """
    Raised when a transaction request fails validation.

    Attributes:
        field: Name of the offending field ("value", "kind", "description").
    """

    def __init__(self, field: str, detail: str):
        self.field = field
        super().__init__(detail)


class AccountNotFoundError(LedgerError):
    """Raised when a requested account does not exist."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class LimitExceededError(LedgerError):
    """
    Raised when applying a transaction would break balance >= -credit_limit.

    Attributes:
        account_id: The account that was left untouched.
        balance: The balance read inside the rolled-back unit.
        credit_limit: The account's credit limit.
        requested_delta: The signed change that was refused.
    """

    def __init__(
        self,
        account_id: int,
        balance: int,
        credit_limit: int,
        requested_delta: int,
    ):
        self.account_id = account_id
        self.balance = balance
        self.credit_limit = credit_limit
        self.requested_delta = requested_delta
        super().__init__(
            f"Credit limit exceeded: balance {balance} with change {requested_delta} "
            f"would fall below -{credit_limit}"
        )


class TransientStorageError(LedgerError):
    """Raised when storage is temporarily unavailable (pool timeout, lock wait, dropped connection)."""

    def __init__(self, detail: str = "Storage temporarily unavailable"):
        super().__init__(detail)


class InternalStorageError(LedgerError):
    """Raised on an unexpected storage failure."""

    def __init__(self, detail: str = "Internal storage error"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    This is the only place where the error taxonomy meets HTTP status codes.
    It is called once during app setup in main.py.
    """

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(
        request: Request, exc: InvalidRequestError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": exc.detail,
                "error_type": "invalid_request",
                "field": exc.field,
            },
        )

    @app.exception_handler(AccountNotFoundError)
    async def account_not_found_handler(
        request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": "account_not_found"},
        )

    @app.exception_handler(LimitExceededError)
    async def limit_exceeded_handler(
        request: Request, exc: LimitExceededError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,  # valid request, refused by the credit limit
            content={
                "detail": exc.detail,
                "error_type": "limit_exceeded",
                "balance": exc.balance,
                "creditLimit": exc.credit_limit,
            },
        )

    @app.exception_handler(TransientStorageError)
    async def transient_storage_handler(
        request: Request, exc: TransientStorageError
    ) -> JSONResponse:
        logger.warning("Storage unavailable", path=request.url.path, detail=exc.detail)
        return JSONResponse(
            status_code=503,
            content={"detail": exc.detail, "error_type": "storage_unavailable"},
        )

    @app.exception_handler(InternalStorageError)
    async def internal_storage_handler(
        request: Request, exc: InternalStorageError
    ) -> JSONResponse:
        logger.error("Storage failure", path=request.url.path, detail=exc.detail)
        return JSONResponse(
            status_code=500,
            content={"detail": exc.detail, "error_type": "internal_error"},
        )
