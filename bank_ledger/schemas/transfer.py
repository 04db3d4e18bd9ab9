"""
Pydantic schemas for Transfer endpoints.

Account references may be ids (1) or names ("alice"). Amounts are decimals
with at most two fractional digits; responses carry them as strings.

Timestamps are returned twice: `timestamp` as ISO-8601 UTC for programs,
and `formatted_timestamp` ("10/18/2026 3:04:05 PM") for display.
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


def format_timestamp(value: datetime) -> str:
    """
    Display format for transfer timestamps: MM/DD/YYYY h:mm:ss AM/PM (UTC).

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    hour = value.hour % 12 or 12
    return f"{value:%m/%d/%Y} {hour}:{value:%M:%S %p}"


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    sender: int | str = Field(description="Sender account id or name")
    receiver: int | str = Field(description="Receiver account id or name")
    amount: Decimal = Field(gt=0, decimal_places=2, description="Amount to move (e.g. 40.00)")
    description: str | None = Field(None, max_length=255)

    @model_validator(mode="after")
    def accounts_must_differ(self):
        """Cannot transfer money to the same account."""
        if str(self.sender).strip() == str(self.receiver).strip():
            raise ValueError("self-transfer: sender and receiver must differ")
        return self


class TransferResponse(BaseModel):
    """Public representation of a recorded transfer."""
    id: int
    sender_id: int
    receiver_id: int
    amount: Decimal
    description: str | None
    timestamp: datetime

    model_config = {"from_attributes": True}

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @computed_field
    @property
    def formatted_timestamp(self) -> str:
        return format_timestamp(self.timestamp)
