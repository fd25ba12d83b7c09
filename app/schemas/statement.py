"""
Pydantic schemas for the statement endpoint.

A statement is the account's current balance and limit, the time it was
read, and the most recent transactions (newest first).
"""

from datetime import datetime

from app.schemas.transaction import CamelModel, TransactionResponse


class StatementResponse(CamelModel):
    """Point-in-time account statement."""
    balance: int
    credit_limit: int
    as_of: datetime
    last_transactions: list[TransactionResponse]
