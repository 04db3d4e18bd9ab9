"""
Account model — a named balance that transfers move money between.

Each account has:
  - An integer id assigned by the database (the stable reference)
  - A unique display name (also usable as a lookup key)
  - A balance in integer cents

Balance management:
  The `balance_cents` column stores the current balance as an integer
  (in cents, e.g., 10.50 = 1050). It is only changed inside a database
  transaction that holds the account's lock — by a transfer, or by an
  explicit balance correction.

  A CHECK constraint at the database level enforces that the balance can
  never go negative. The application checks before debiting; the constraint
  is the final safety net at the storage boundary.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bank_ledger.database import Base
from bank_ledger.money import from_cents


class Account(Base):
    __tablename__ = "accounts"

    # Database-level constraint: balance can never be negative
    __table_args__ = (
        CheckConstraint(
            "balance_cents >= 0",
            name="ck_accounts_non_negative_balance",
        ),
        # Ids of deleted accounts are never handed out again
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # Unique so that a name resolves to exactly one account
    name: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def balance(self) -> Decimal:
        return from_cents(self.balance_cents)

    def is_same_account(self, other: "Account") -> bool:
        """
        Same id and same creation time, i.e. the row was not deleted and
        replaced by another account under the same id in between.
        """
        return self.id == other.id and _as_utc(self.created_at) == _as_utc(other.created_at)

    def __repr__(self) -> str:
        return f"<Account id={self.id} name={self.name!r} balance={self.balance}>"


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive values for DateTime(timezone=True) columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
