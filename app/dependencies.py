"""
FastAPI dependencies.

The TransactionProcessor (and the AccountStore and connection pool behind
it) is built once in the application lifespan and kept on app.state.
Route handlers receive it through get_transaction_processor, never by
importing a module-level instance. Tests swap it out with
app.dependency_overrides.
"""

from fastapi import Request

from app.services.transaction_service import TransactionProcessor


def get_transaction_processor(request: Request) -> TransactionProcessor:
    """Return the processor created at startup."""
    return request.app.state.processor
