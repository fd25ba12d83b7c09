"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. create_schema() can discover every table on Base.metadata
  2. Other modules can import from app.models directly
"""

from app.models.account import Account  # noqa: F401
from app.models.transaction import Transaction, TransactionKind  # noqa: F401
