"""
Compatibility router — the original Portuguese-keyed endpoints.

Endpoints:
  POST /clientes/{client_id}/transacoes  — {valor, tipo, descricao} -> {limite, saldo}
  GET  /clientes/{client_id}/extrato     — {extrato: {...}, ultimas_transacoes: [...]}

Same processor, same validation, same status codes as /accounts; only the
field names differ.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_transaction_processor
from app.schemas.clientes import (
    ExtratoResponse,
    SaldoResponse,
    TransacaoExtratoResponse,
    TransacaoRequest,
    TransacaoResponse,
)
from app.services.transaction_service import TransactionProcessor

router = APIRouter()


@router.post(
    "/{client_id}/transacoes",
    response_model=TransacaoResponse,
    summary="Apply a transaction (compatibility format)",
)
async def create_transacao(
    client_id: int,
    request: TransacaoRequest,
    processor: TransactionProcessor = Depends(get_transaction_processor),
):
    result = await processor.apply(
        account_id=client_id,
        value=request.valor,
        kind=request.tipo,
        description=request.descricao,
    )
    return TransacaoResponse(limite=result["credit_limit"], saldo=result["balance"])


@router.get(
    "/{client_id}/extrato",
    response_model=ExtratoResponse,
    summary="Get account statement (compatibility format)",
)
async def get_extrato(
    client_id: int,
    processor: TransactionProcessor = Depends(get_transaction_processor),
):
    statement = await processor.statement(client_id)
    return ExtratoResponse(
        extrato=SaldoResponse(
            total=statement["balance"],
            data_extrato=statement["as_of"],
            limite=statement["credit_limit"],
        ),
        ultimas_transacoes=[
            TransacaoExtratoResponse.model_validate(txn)
            for txn in statement["last_transactions"]
        ],
    )
