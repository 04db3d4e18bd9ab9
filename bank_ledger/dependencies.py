"""
FastAPI dependencies that hand the ledger services to route handlers.

The Bank is created once in the application lifespan and stored on
app.state. Handlers never reach for module-level state; they declare what
they need and FastAPI injects it:

  get_bank (Request -> Bank)
      ├── get_account_store (Bank -> AccountStore)
      └── get_transfer_engine (Bank -> TransferEngine)

Tests swap in their own Bank by assigning app.state.bank.
"""

from fastapi import Depends, Request

from bank_ledger.bank import Bank
from bank_ledger.services.account_store import AccountStore
from bank_ledger.services.transfer_engine import TransferEngine


def get_bank(request: Request) -> Bank:
    """The Bank owned by the running application."""
    return request.app.state.bank


def get_account_store(bank: Bank = Depends(get_bank)) -> AccountStore:
    return bank.accounts


def get_transfer_engine(bank: Bank = Depends(get_bank)) -> TransferEngine:
    return bank.transfers
