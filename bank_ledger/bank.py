"""
Bank — the composition root of the ledger.

One Bank owns one Database, one AccountLockManager, and the services built
on them. The account store and the transfer engine share the lock manager,
which is what makes balance corrections and transfers serialize with each
other.

Lifecycle:
    bank = Bank.from_settings(settings)
    await bank.start()      # creates missing tables
    ...
    await bank.close()      # disposes of the connection pool

The FastAPI app creates its Bank in the lifespan handler and keeps it on
app.state; tests build one around a throwaway database.
"""

from bank_ledger.config import Settings
from bank_ledger.database import Database
from bank_ledger.locking import AccountLockManager
from bank_ledger.services.account_store import AccountStore
from bank_ledger.services.transfer_engine import TransferEngine


class Bank:

    def __init__(self, database: Database, *, lock_timeout: float = 5.0):
        self.database = database
        self.locks = AccountLockManager()
        self.accounts = AccountStore(database, self.locks, lock_timeout=lock_timeout)
        self.transfers = TransferEngine(
            database,
            self.locks,
            self.accounts,
            lock_timeout=lock_timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Bank":
        database = Database(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            sqlite_busy_timeout=settings.SQLITE_BUSY_TIMEOUT_SECONDS,
        )
        return cls(database, lock_timeout=settings.LOCK_TIMEOUT_SECONDS)

    async def start(self) -> None:
        await self.database.create_all()

    async def close(self) -> None:
        await self.database.dispose()
