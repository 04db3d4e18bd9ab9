"""
Account store — business logic for account records.

This module handles:
  - Account creation (with name validation and uniqueness)
  - Account retrieval by id, by name, or by a reference that may be either
  - Listing accounts
  - Partial updates (rename, balance correction)
  - Deletion of accounts that no transfer references

Reference resolution:
  Names may not be purely numeric. A reference that is an int, or a string
  of digits, is therefore always an id; any other string is a name. Both
  lookups are deterministic because names are unique.

Locking:
  update_account() and delete_account() take the account's lock from the
  shared AccountLockManager before opening their transaction — the same
  discipline the transfer engine follows — so a balance correction can
  never interleave with an in-flight transfer on that account.
"""

from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bank_ledger.database import Database
from bank_ledger.exceptions import (
    AccountInUseError,
    AccountNotFoundError,
    DuplicateAccountNameError,
    InvalidAccountNameError,
)
from bank_ledger.locking import AccountLockManager
from bank_ledger.models.account import Account
from bank_ledger.money import to_cents
from bank_ledger.services.transfer_ledger import TransferLedger

logger = structlog.get_logger(__name__)

MAX_NAME_LENGTH = 255

# Largest id a signed 64-bit INTEGER column can hold
MAX_ACCOUNT_ID = 2**63 - 1


def is_id_reference(ref: str) -> bool:
    """ASCII digits only; str.isdigit() also accepts "²" and other digits int() rejects."""
    return ref.isascii() and ref.isdigit()


def normalize_name(name) -> str:
    """
    Strip surrounding whitespace and validate an account name.

    Raises:
        InvalidAccountNameError: If the name is not a string, is empty,
                                 too long, or consists only of digits.
    """
    if not isinstance(name, str):
        raise InvalidAccountNameError(name, "must be a string")

    cleaned = name.strip()
    if not cleaned:
        raise InvalidAccountNameError(name, "must not be empty")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidAccountNameError(name, f"must be at most {MAX_NAME_LENGTH} characters")
    if is_id_reference(cleaned):
        # Reserved for account ids
        raise InvalidAccountNameError(name, "must not be purely numeric")
    return cleaned


class AccountStore:

    def __init__(
        self,
        database: Database,
        locks: AccountLockManager,
        *,
        lock_timeout: float,
    ):
        self.database = database
        self.locks = locks
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Session-level helpers (also used by the transfer engine)
    # ------------------------------------------------------------------

    async def fetch(
        self,
        session: AsyncSession,
        account_id: int,
        *,
        for_update: bool = False,
    ) -> Account:
        if not 0 < account_id <= MAX_ACCOUNT_ID:
            # Never assigned, and out of range for the driver
            raise AccountNotFoundError(account_id)

        query = select(Account).where(Account.id == account_id)
        if for_update and self.database.supports_row_locks:
            query = query.with_for_update()

        result = await session.execute(query)
        account = result.scalar_one_or_none()

        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def _load_by_name(self, session: AsyncSession, name: str) -> Account | None:
        result = await session.execute(select(Account).where(Account.name == name))
        return result.scalar_one_or_none()

    async def _ensure_name_free(
        self,
        session: AsyncSession,
        name: str,
        *,
        owner_id: int | None = None,
    ) -> None:
        existing = await self._load_by_name(session, name)
        if existing is not None and existing.id != owner_id:
            raise DuplicateAccountNameError(name)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def create_account(
        self,
        name: str,
        initial_balance: Decimal | int | str = Decimal("0"),
    ) -> Account:
        """
        Create a new account with an opening balance.

        Args:
            name: Display name; unique, non-empty, not purely numeric.
            initial_balance: Opening deposit, zero or positive, at most
                             two decimal places.

        Returns:
            The newly created Account, with its id assigned.

        Raises:
            InvalidAccountNameError: If the name is invalid.
            InvalidAmountError: If the balance is negative or malformed.
            DuplicateAccountNameError: If the name is already taken.
        """
        cleaned = normalize_name(name)
        balance_cents = to_cents(initial_balance, allow_zero=True)

        try:
            async with self.database.transaction() as session:
                await self._ensure_name_free(session, cleaned)
                account = Account(name=cleaned, balance_cents=balance_cents)
                session.add(account)
                await session.flush()
        except IntegrityError:
            # Lost a race with a concurrent create of the same name
            raise DuplicateAccountNameError(cleaned) from None

        logger.info(
            "account.created",
            account_id=account.id,
            name=account.name,
            balance=str(account.balance),
        )
        return account

    async def get_account(self, account_id: int) -> Account:
        """
        Get a single account by id.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
        """
        async with self.database.transaction() as session:
            return await self.fetch(session, account_id)

    async def get_account_by_name(self, name: str) -> Account:
        """
        Get a single account by its (unique) name.

        Raises:
            AccountNotFoundError: If no account has this name.
        """
        async with self.database.transaction() as session:
            account = await self._load_by_name(session, name.strip())

        if account is None:
            raise AccountNotFoundError(name)
        return account

    async def resolve(self, ref: int | str) -> Account:
        """
        Resolve an id or a name to an account.

        Ints and digit strings are ids; other strings are names.

        Raises:
            AccountNotFoundError: If nothing matches.
        """
        if isinstance(ref, bool):
            raise AccountNotFoundError(ref)
        if isinstance(ref, int):
            return await self.get_account(ref)

        cleaned = str(ref).strip()
        if is_id_reference(cleaned):
            return await self.get_account(int(cleaned))
        return await self.get_account_by_name(cleaned)

    async def list_accounts(self) -> list[Account]:
        """All accounts, ordered by id ascending."""
        async with self.database.transaction() as session:
            result = await session.execute(select(Account).order_by(Account.id.asc()))
            return list(result.scalars().all())

    async def update_account(
        self,
        account_id: int,
        *,
        name: str | None = None,
        balance: Decimal | int | str | None = None,
    ) -> Account:
        """
        Partially update an account: rename it and/or correct its balance.

        Fields left as None are unchanged. The account lock is held while
        the update runs, so the correction is serialized with transfers.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
            InvalidAccountNameError / InvalidAmountError: Invalid fields.
            DuplicateAccountNameError: If the new name is taken.
            LockTimeoutError: If the account stays locked too long.
        """
        cleaned = normalize_name(name) if name is not None else None
        balance_cents = to_cents(balance, allow_zero=True) if balance is not None else None

        async with self.locks.hold(account_id, timeout=self.lock_timeout):
            try:
                async with self.database.transaction() as session:
                    account = await self.fetch(session, account_id, for_update=True)
                    previous_cents = account.balance_cents

                    if cleaned is not None and cleaned != account.name:
                        await self._ensure_name_free(session, cleaned, owner_id=account.id)
                        account.name = cleaned
                    if balance_cents is not None:
                        account.balance_cents = balance_cents

                    await session.flush()
            except IntegrityError:
                raise DuplicateAccountNameError(cleaned) from None

        logger.info(
            "account.updated",
            account_id=account.id,
            name=account.name,
            previous_balance_cents=previous_cents,
            balance_cents=account.balance_cents,
        )
        return account

    async def delete_account(self, account_id: int) -> None:
        """
        Delete an account that no recorded transfer references.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
            AccountInUseError: If the transfer ledger references it.
            LockTimeoutError: If the account stays locked too long.
        """
        async with self.locks.hold(account_id, timeout=self.lock_timeout):
            async with self.database.transaction() as session:
                account = await self.fetch(session, account_id, for_update=True)

                if await TransferLedger(session).references(account_id):
                    raise AccountInUseError(account_id)

                await session.delete(account)

        self.locks.discard(account_id)
        logger.info("account.deleted", account_id=account_id)
