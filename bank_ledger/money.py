"""
Conversion between decimal amounts and integer cents.

Amounts cross the API as Decimal with two fractional digits ("40.00") and
are stored as integer cents (4000). Integer storage keeps all arithmetic
exact: 0.1 + 0.2 != 0.3 in floating point, but 10 + 20 == 30 in cents.
Floats are accepted on input through their shortest repr, so 40.1 means
Decimal("40.1") and not the binary approximation.
"""

from decimal import Decimal, InvalidOperation

from bank_ledger.exceptions import InvalidAmountError

CENT = Decimal("0.01")

# Keeps cents inside a signed 64-bit column with room for credits
MAX_AMOUNT = Decimal("1000000000000000")


def to_cents(amount, *, allow_zero: bool = False) -> int:
    """
    Parse an amount into integer cents.

    Args:
        amount: Decimal, int, float or numeric string.
        allow_zero: Accept 0 (opening balances); transfers must be positive.

    Raises:
        InvalidAmountError: For non-numeric, non-finite, negative, zero
                            (unless allowed) or sub-cent amounts.
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(amount, "not a number")

    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidAmountError(amount, "not a number") from None

    if not value.is_finite():
        raise InvalidAmountError(amount, "must be finite")
    if value < 0:
        raise InvalidAmountError(amount, "must not be negative")
    if value == 0 and not allow_zero:
        raise InvalidAmountError(amount, "must be greater than zero")
    if value >= MAX_AMOUNT:
        raise InvalidAmountError(amount, f"must be less than {MAX_AMOUNT}")
    if value != value.quantize(CENT):
        raise InvalidAmountError(amount, "at most two decimal places are allowed")

    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    """4000 -> Decimal("40.00")"""
    return (Decimal(cents) / 100).quantize(CENT)
