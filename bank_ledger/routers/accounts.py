"""
Accounts router — account management endpoints.

Endpoints:
    POST   /accounts           — Create an account with an opening balance
    GET    /accounts           — List all accounts (by id)
    GET    /accounts/{ref}     — Get one account by id or by name
    PATCH  /accounts/{id}      — Rename an account and/or correct its balance
    DELETE /accounts/{id}      — Delete an account no transfer references

Balance corrections go through the same per-account lock as transfers, so
they never race with a transfer in flight.
"""

from fastapi import APIRouter, Depends, Response, status

from bank_ledger.dependencies import get_account_store
from bank_ledger.schemas.account import (
    AccountCreateRequest,
    AccountResponse,
    AccountUpdateRequest,
)
from bank_ledger.services.account_store import AccountStore

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def create_account(
    request: AccountCreateRequest,
    accounts: AccountStore = Depends(get_account_store),
):
    """
    Create a new account.

    - **name**: Unique, non-empty, not purely numeric
    - **balance**: Opening balance, zero or positive (default 0.00)

    Returns 409 if the name is already in use.
    """
    return await accounts.create_account(request.name, request.balance)


@router.get(
    "",
    response_model=list[AccountResponse],
    summary="List accounts",
)
async def list_accounts(
    accounts: AccountStore = Depends(get_account_store),
):
    """List every account, ordered by id."""
    return await accounts.list_accounts()


@router.get(
    "/{ref}",
    response_model=AccountResponse,
    summary="Get an account by id or name",
)
async def get_account(
    ref: str,
    accounts: AccountStore = Depends(get_account_store),
):
    """
    Look up an account. A numeric reference is an id; anything else is
    matched against account names. Returns 404 if nothing matches.
    """
    return await accounts.resolve(ref)


@router.patch(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Update an account",
)
async def update_account(
    account_id: int,
    request: AccountUpdateRequest,
    accounts: AccountStore = Depends(get_account_store),
):
    """
    Partially update an account. Omitted fields stay as they are.

    Setting `balance` is a correction, not a transfer: it is not recorded
    in the transfer ledger.
    """
    return await accounts.update_account(
        account_id,
        name=request.name,
        balance=request.balance,
    )


@router.delete(
    "/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an account",
)
async def delete_account(
    account_id: int,
    accounts: AccountStore = Depends(get_account_store),
):
    """
    Delete an account. Returns 409 if any recorded transfer references it,
    since the audit trail must stay complete.
    """
    await accounts.delete_account(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
