"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors without importing HTTP
concepts. The handlers registered here translate them into HTTP responses
with a consistent body: {"detail": "...", "error_type": "..."}.

Every error below is raised before any mutation becomes visible, or after
the mutations of the failed attempt have been rolled back. A caller never
has to inspect the ledger to learn whether a failed transfer moved money.

Exception hierarchy:
    LedgerError (base)
    ├── ValidationError            — malformed input (422)
    │   ├── InvalidAmountError
    │   ├── InvalidAccountNameError
    │   └── SelfTransferError
    ├── NotFoundError              — unknown account (404)
    │   └── AccountNotFoundError
    ├── ConflictError              — integrity constraint (409)
    │   ├── DuplicateAccountNameError
    │   ├── AccountInUseError
    │   └── ImmutableRecordError
    ├── InsufficientFundsError     — business-rule rejection (422)
    ├── LockTimeoutError           — lock wait exceeded, retryable (503)
    └── TransferAbortedError       — storage failure, rolled back, retryable (503)
"""

from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Error kinds
# ---------------------------------------------------------------------------

class ValidationError(LedgerError):
    """Malformed or invalid input. Nothing was changed."""


class NotFoundError(LedgerError):
    """A referenced record does not exist. Nothing was changed."""


class ConflictError(LedgerError):
    """The request would break an integrity constraint. Nothing was changed."""


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InvalidAmountError(ValidationError):
    """Raised for zero, negative, non-finite or over-precise amounts."""

    def __init__(self, amount, reason: str):
        self.amount = amount
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class InvalidAccountNameError(ValidationError):
    """Raised when an account name is empty, too long, or purely numeric."""

    def __init__(self, name, reason: str):
        self.name = name
        super().__init__(f"Invalid account name {name!r}: {reason}")


class SelfTransferError(ValidationError):
    """Raised when the sender and receiver resolve to the same account."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"self-transfer: account {account_id} cannot send funds to itself")


class AccountNotFoundError(NotFoundError):
    """Raised when a requested account does not exist."""

    def __init__(self, account_ref):
        self.account_ref = account_ref
        super().__init__(f"Account {account_ref} not found")


class DuplicateAccountNameError(ConflictError):
    """Raised when creating or renaming an account to a name already in use."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Account name {name!r} is already in use")


class AccountInUseError(ConflictError):
    """Raised when deleting an account that the transfer ledger references."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} is referenced by recorded transfers and cannot be deleted"
        )


class ImmutableRecordError(ConflictError):
    """Raised on any attempt to modify or remove a recorded transfer."""

    def __init__(self, transfer_id: int | None):
        self.transfer_id = transfer_id
        super().__init__(f"Transfer {transfer_id} is part of the audit trail and cannot be changed")


class InsufficientFundsError(LedgerError):
    """
    Raised when a transfer would cause a negative balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested: The amount the caller tried to send.
        available: The balance of the account, read under its lock.
    """

    def __init__(self, account_id: int, requested: Decimal, available: Decimal):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds: requested {requested}, available {available}"
        )


class LockTimeoutError(LedgerError, TimeoutError):
    """
    Raised when the account locks could not be acquired in time.

    Safe to retry: the operation never started mutating anything.
    """

    def __init__(self, account_ids: list[int], timeout: float):
        self.account_ids = account_ids
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:g}s waiting for account(s) "
            f"{', '.join(str(i) for i in account_ids)}"
        )


class TransferAbortedError(LedgerError):
    """
    Raised when storage failed mid-transfer.

    All effects of the attempt were rolled back; safe to retry.
    """

    def __init__(self, detail: str = "Transfer aborted by a storage failure; no funds were moved"):
        super().__init__(detail)


# Short aliases matching the error kinds of the public contract
AbortedError = TransferAbortedError


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

RETRY_AFTER_SECONDS = "1"


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Handlers are registered per error kind; FastAPI picks the closest
    handler along the exception's MRO, so subclasses share their kind's
    status code. The error_type field names the concrete error.
    """

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": exc.detail, "error_type": _error_type(exc)},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(
        request: Request, exc: NotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": _error_type(exc)},
        )

    @app.exception_handler(ConflictError)
    async def conflict_handler(
        request: Request, exc: ConflictError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,  # Conflict — violates an integrity rule
            content={"detail": exc.detail, "error_type": _error_type(exc)},
        )

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,  # Unprocessable Entity — valid request rejected by business rules
            content={
                "detail": exc.detail,
                "error_type": "insufficient_funds",
                "requested": str(exc.requested),
                "available": str(exc.available),
            },
        )

    @app.exception_handler(LockTimeoutError)
    async def lock_timeout_handler(
        request: Request, exc: LockTimeoutError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": exc.detail, "error_type": "lock_timeout"},
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )

    @app.exception_handler(TransferAbortedError)
    async def transfer_aborted_handler(
        request: Request, exc: TransferAbortedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": exc.detail, "error_type": "transfer_aborted"},
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )


def _error_type(exc: LedgerError) -> str:
    """CamelCase class name to snake_case, minus the Error suffix."""
    name = type(exc).__name__.removesuffix("Error")
    return "".join(
        f"_{char.lower()}" if char.isupper() and i else char.lower()
        for i, char in enumerate(name)
    )
