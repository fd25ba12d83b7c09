"""
Transaction model — the append-only log of applied credits and debits.

Every successful call to AccountStore.apply_delta appends exactly one
Transaction in the same database transaction that updates the account's
balance. Records are never updated or deleted afterwards.

Key fields:
  - kind: TransactionKind.CREDIT ("c") or TransactionKind.DEBIT ("d")
  - value: Always positive (the direction is given by kind)
  - description: Short memo, 1 to 10 characters
  - inserted_at: Stamped after the account row lock is held, so it never
    goes backwards within one account's commit order

Ordering:
  Statements read the log newest first: inserted_at descending, then id
  descending for records that share a timestamp.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, UTCDateTime


class TransactionKind(str, enum.Enum):
    """Direction of a transaction. Serialised as the one-letter tag."""

    CREDIT = "c"
    DEBIT = "d"

    def signed(self, value: int) -> int:
        """Balance change for a transaction of this kind and magnitude."""
        return value if self is TransactionKind.CREDIT else -value


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("value > 0", name="ck_transactions_positive_value"),
        CheckConstraint(
            "length(description) BETWEEN 1 AND 10",
            name="ck_transactions_description_length",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    # Magnitude, always positive
    value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Stored as the tag ("c"/"d"), not the enum member name
    kind: Mapped[TransactionKind] = mapped_column(
        Enum(
            TransactionKind,
            native_enum=False,
            length=1,
            values_callable=lambda kinds: [k.value for k in kinds],
            validate_strings=True,
        ),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    inserted_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    # --- Relationships ---
    account: Mapped["Account"] = relationship(
        back_populates="transactions",
        lazy="raise",
    )
