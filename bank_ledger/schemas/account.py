"""
Pydantic schemas for Account endpoints.

These schemas define the API contract for account creation, retrieval and
update. Monetary amounts are decimals with two fractional digits and are
serialized as strings ("100.00") so no client ever parses them as floats.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    name: str = Field(min_length=1, max_length=255, description="Unique display name")
    balance: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        decimal_places=2,
        description="Opening balance (defaults to zero)",
    )


class AccountUpdateRequest(BaseModel):
    """Request body for PATCH /accounts/{id}. Omitted fields are unchanged."""
    name: str | None = Field(None, min_length=1, max_length=255)
    balance: Decimal | None = Field(None, ge=0, decimal_places=2)

    @model_validator(mode="after")
    def at_least_one_field(self):
        """An empty update is almost certainly a client bug."""
        if self.name is None and self.balance is None:
            raise ValueError("Provide at least one of: name, balance")
        return self


class AccountResponse(BaseModel):
    """Public representation of an account."""
    id: int
    name: str
    balance: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
