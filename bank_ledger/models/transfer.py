"""
TransferRecord model — the append-only audit trail of completed transfers.

A TransferRecord is written in the same database transaction as the debit
of the sender and the credit of the receiver. It therefore exists if and
only if both balance changes were committed; a failed or rejected transfer
leaves no record at all.

Key fields:
  - sender_id / receiver_id: The two accounts involved (never equal)
  - amount_cents: Always positive; direction is sender -> receiver
  - created_at: The transfer timestamp, set once by the engine

Immutability:
  Records are never updated or deleted. The ORM refuses both (see the
  mapper events at the bottom of this module), and no service exposes
  such an operation.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer, String, event
from sqlalchemy.orm import Mapped, mapped_column

from bank_ledger.database import Base
from bank_ledger.exceptions import ImmutableRecordError
from bank_ledger.money import from_cents


class TransferRecord(Base):
    __tablename__ = "transfers"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transfers_positive_amount"),
        CheckConstraint("sender_id <> receiver_id", name="ck_transfers_distinct_accounts"),
        {"sqlite_autoincrement": True},
    )

    # Autoincrement primary key — creation order
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    sender_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Optional description/memo
    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Transfer timestamp — indexed for chronological listing
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def timestamp(self) -> datetime:
        """created_at as an aware UTC datetime (SQLite returns naive values)."""
        if self.created_at.tzinfo is None:
            return self.created_at.replace(tzinfo=timezone.utc)
        return self.created_at

    def __repr__(self) -> str:
        return (
            f"<TransferRecord id={self.id} {self.sender_id} -> {self.receiver_id} "
            f"amount={self.amount}>"
        )


@event.listens_for(TransferRecord, "before_update")
def _refuse_update(mapper, connection, target: TransferRecord) -> None:
    raise ImmutableRecordError(target.id)


@event.listens_for(TransferRecord, "before_delete")
def _refuse_delete(mapper, connection, target: TransferRecord) -> None:
    raise ImmutableRecordError(target.id)
