"""
Pydantic schemas for the Portuguese-keyed compatibility routes.

These mirror the wire format the ledger was first deployed with
(valor/tipo/descricao, saldo/limite, extrato). They map onto the same
TransactionProcessor calls as the /accounts routes.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from app.models.transaction import TransactionKind


class TransacaoRequest(BaseModel):
    """Request body for POST /clientes/{id}/transacoes."""
    valor: StrictInt
    tipo: TransactionKind
    descricao: StrictStr


class TransacaoResponse(BaseModel):
    """Balance after a successfully applied transaction."""
    limite: int
    saldo: int


class SaldoResponse(BaseModel):
    total: int
    data_extrato: datetime
    limite: int


class TransacaoExtratoResponse(BaseModel):
    """One statement entry, read straight from a Transaction record."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    valor: int = Field(validation_alias="value")
    tipo: TransactionKind = Field(validation_alias="kind")
    descricao: str = Field(validation_alias="description")
    realizada_em: datetime = Field(validation_alias="inserted_at")


class ExtratoResponse(BaseModel):
    """Response body for GET /clientes/{id}/extrato."""
    # The balance block is keyed "extrato", not "saldo"
    extrato: SaldoResponse
    ultimas_transacoes: list[TransacaoExtratoResponse]
