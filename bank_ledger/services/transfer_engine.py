"""
Transfer engine — the core financial business logic.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It moves funds between two
accounts and records the move in the transfer ledger, protecting three
invariants:
  - Conservation: a transfer never changes the sum of all balances
  - No negative balances, ever, for any reader
  - No lost updates when transfers run concurrently

Life of a transfer:
  Validated -> Locked -> FundsChecked -> Applied -> Recorded
  Failures exit to Rejected (validation, unknown account, insufficient
  funds, lock timeout — nothing was mutated) or Aborted (storage failure
  after the locks were taken — everything was rolled back).

Atomicity:
  The debit, the credit and the ledger append happen inside the SAME
  database transaction. Either the commit makes all three visible at once
  or the rollback discards all three.

Deadlock prevention:
  Both account locks are taken in ascending id order, whatever the
  direction of the transfer (see bank_ledger.locking). On PostgreSQL the
  rows are additionally locked with SELECT ... FOR UPDATE in the same
  order.

No stale reads:
  The sender's balance is checked on a row read AFTER the locks are held,
  never on the copy loaded while resolving references. The re-read row must
  also be the account that was resolved: a reference whose account was
  deleted while the transfer waited fails as not found.
"""

from decimal import Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError

from bank_ledger.database import Database
from bank_ledger.exceptions import (
    AccountNotFoundError,
    InsufficientFundsError,
    LedgerError,
    LockTimeoutError,
    SelfTransferError,
    TransferAbortedError,
)
from bank_ledger.locking import AccountLockManager
from bank_ledger.models.account import Account
from bank_ledger.models.transfer import TransferRecord
from bank_ledger.money import from_cents, to_cents
from bank_ledger.services.account_store import AccountStore
from bank_ledger.services.transfer_ledger import TransferLedger

logger = structlog.get_logger(__name__)


class TransferEngine:

    def __init__(
        self,
        database: Database,
        locks: AccountLockManager,
        accounts: AccountStore,
        *,
        lock_timeout: float,
    ):
        self.database = database
        self.locks = locks
        self.accounts = accounts
        self.lock_timeout = lock_timeout

    async def transfer(
        self,
        sender_ref: int | str,
        receiver_ref: int | str,
        amount: Decimal | int | str,
        description: str | None = None,
    ) -> TransferRecord:
        """
        Move `amount` from the sender to the receiver.

        Args:
            sender_ref: Sender account id or name.
            receiver_ref: Receiver account id or name.
            amount: Positive amount with at most two decimal places.
            description: Optional memo stored on the record.

        Returns:
            The committed TransferRecord.

        Raises:
            InvalidAmountError: Zero, negative or malformed amount.
            AccountNotFoundError: Either reference doesn't resolve.
            SelfTransferError: Both references name the same account.
            InsufficientFundsError: Sender balance below the amount.
            LockTimeoutError: Locks not acquired within lock_timeout.
            TransferAbortedError: Storage failure; all effects rolled back.
        """
        log = logger.bind(sender_ref=sender_ref, receiver_ref=receiver_ref, amount=str(amount))

        try:
            amount_cents = to_cents(amount)

            sender = await self.accounts.resolve(sender_ref)
            receiver = await self.accounts.resolve(receiver_ref)
            if sender.id == receiver.id:
                raise SelfTransferError(sender.id)

            log = log.bind(sender_id=sender.id, receiver_id=receiver.id)

            async with self.locks.hold(sender.id, receiver.id, timeout=self.lock_timeout):
                record = await self._apply(sender, receiver, amount_cents, description)
        except LockTimeoutError:
            log.warning("transfer.lock_timeout", timeout=self.lock_timeout)
            raise
        except LedgerError as exc:
            log.info("transfer.rejected", reason=type(exc).__name__, detail=exc.detail)
            raise
        except SQLAlchemyError as exc:
            log.error("transfer.aborted", error=str(exc), exc_info=True)
            raise TransferAbortedError() from exc

        log.info("transfer.completed", transfer_id=record.id)
        return record

    async def _apply(
        self,
        sender: Account,
        receiver: Account,
        amount_cents: int,
        description: str | None,
    ) -> TransferRecord:
        """
        The critical section. Must only run while both locks are held.

        Any exception leaves through the transaction scope, which rolls
        back whatever was written before it.
        """
        async with self.database.transaction() as session:
            # Re-read under the locks, in the same order the locks were taken
            rows = {}
            for resolved in sorted((sender, receiver), key=lambda a: a.id):
                row = await self.accounts.fetch(session, resolved.id, for_update=True)
                if not row.is_same_account(resolved):
                    # Deleted and replaced while this transfer waited
                    raise AccountNotFoundError(resolved.id)
                rows[row.id] = row
            source, dest = rows[sender.id], rows[receiver.id]

            if source.balance_cents < amount_cents:
                raise InsufficientFundsError(
                    account_id=sender.id,
                    requested=from_cents(amount_cents),
                    available=source.balance,
                )

            source.balance_cents -= amount_cents
            dest.balance_cents += amount_cents
            await session.flush()

            return await TransferLedger(session).append(
                sender_id=sender.id,
                receiver_id=receiver.id,
                amount_cents=amount_cents,
                description=description,
            )

    async def list_transfers(
        self,
        *,
        account_id: int | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TransferRecord]:
        """
        Completed transfers in chronological order.

        Raises:
            AccountNotFoundError: If account_id is given and doesn't exist.
        """
        if account_id is not None:
            await self.accounts.get_account(account_id)

        async with self.database.transaction() as session:
            return await TransferLedger(session).list(
                account_id=account_id,
                limit=limit,
                offset=offset,
            )
