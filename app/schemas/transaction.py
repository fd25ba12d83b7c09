"""
Pydantic schemas for transaction endpoints.

Responses use camelCase keys on the wire (creditLimit, insertedAt) while
the Python side keeps snake_case names. Range checks on value and
description live in TransactionProcessor so that every caller, HTTP or
not, gets the same rules; the schema only fixes the JSON types.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from app.models.transaction import TransactionKind


class CamelModel(BaseModel):
    """Base for response models serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TransactionCreateRequest(BaseModel):
    """Request body for POST /accounts/{id}/transactions."""
    value: StrictInt
    kind: TransactionKind
    description: StrictStr


class TransactionResultResponse(CamelModel):
    """Balance after a successfully applied transaction."""
    balance: int
    credit_limit: int


class TransactionResponse(CamelModel):
    """One entry of a statement's lastTransactions."""
    value: int
    kind: TransactionKind
    description: str
    inserted_at: datetime
