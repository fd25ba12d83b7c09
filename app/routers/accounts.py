"""
Accounts router — apply transactions and read statements.

Endpoints:
  POST /accounts/{account_id}/transactions  — Apply a credit or debit
  GET  /accounts/{account_id}/statement     — Balance plus last transactions

Domain errors raised by the processor are turned into responses by the
handlers in app/exceptions.py (404 unknown account, 422 invalid request or
credit limit, 503/500 storage failures).
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_transaction_processor
from app.schemas.statement import StatementResponse
from app.schemas.transaction import TransactionCreateRequest, TransactionResultResponse
from app.services.transaction_service import TransactionProcessor

router = APIRouter()


@router.post(
    "/{account_id}/transactions",
    response_model=TransactionResultResponse,
    summary="Apply a transaction (credit or debit)",
)
async def create_transaction(
    account_id: int,
    request: TransactionCreateRequest,
    processor: TransactionProcessor = Depends(get_transaction_processor),
):
    """
    Apply a credit (`"c"`) or debit (`"d"`) to an account.

    - **value**: positive integer
    - **description**: 1 to 10 characters

    A debit is refused with 422 if it would take the balance below the
    negative of the account's credit limit. Nothing is recorded in that case.
    """
    return await processor.apply(
        account_id=account_id,
        value=request.value,
        kind=request.kind,
        description=request.description,
    )


@router.get(
    "/{account_id}/statement",
    response_model=StatementResponse,
    summary="Get account statement",
)
async def get_statement(
    account_id: int,
    processor: TransactionProcessor = Depends(get_transaction_processor),
):
    """
    Current balance and credit limit, the time they were read, and the most
    recent transactions (newest first).
    """
    return await processor.statement(account_id)
