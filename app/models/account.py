"""
Account model — one row per ledger account.

Each account has:
  - An integer id, assigned at provisioning time
  - A signed balance (may go negative)
  - A non-negative credit limit: how far below zero the balance may go

Balance management:
  The `balance` column is only ever changed by AccountStore.apply_delta,
  inside the same database transaction that appends the matching
  Transaction record. The balance therefore always equals the starting
  balance plus the signed sum of every record in the log.

  A CHECK constraint at the database level enforces balance >= -credit_limit.
  The application checks first and refuses the transaction with a clean
  LimitExceededError; the constraint is the final safety net against bugs.
"""

from sqlalchemy import BigInteger, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint("credit_limit >= 0", name="ck_accounts_non_negative_limit"),
        CheckConstraint(
            "balance >= -credit_limit",
            name="ck_accounts_balance_within_limit",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=False,
    )

    balance: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    credit_limit: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    # --- Relationships ---
    # Append-only log; never loaded implicitly (AccountStore queries it directly)
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="account",
        lazy="raise",
    )
