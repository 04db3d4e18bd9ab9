"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from bank_ledger.models directly
"""

from bank_ledger.models.account import Account  # noqa: F401
from bank_ledger.models.transfer import TransferRecord  # noqa: F401
