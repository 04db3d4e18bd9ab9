"""
Transfer ledger — append-only access to the transfers table.

The ledger is bound to a session rather than to the Database, so that
append() runs inside the caller's transaction: the transfer engine debits,
credits and appends in one commit, and a rollback removes all three.

Only three operations exist: append, list, and a reference check used by
account deletion. There is deliberately no update or delete.
"""

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bank_ledger.models.transfer import TransferRecord


class TransferLedger:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        *,
        sender_id: int,
        receiver_id: int,
        amount_cents: int,
        description: str | None = None,
    ) -> TransferRecord:
        """
        Write one immutable record and flush it so id and timestamp are set.

        The record becomes visible to other sessions only when the
        surrounding transaction commits.
        """
        record = TransferRecord(
            sender_id=sender_id,
            receiver_id=receiver_id,
            amount_cents=amount_cents,
            description=description,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def list(
        self,
        *,
        account_id: int | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TransferRecord]:
        """
        Records in chronological (insertion) order.

        Args:
            account_id: Only records where this account sent or received.
            limit: Max number of results (None for all).
            offset: Number of results to skip (for pagination).
        """
        query = select(TransferRecord).order_by(
            TransferRecord.created_at.asc(),
            TransferRecord.id.asc(),
        )

        if account_id is not None:
            query = query.where(
                or_(
                    TransferRecord.sender_id == account_id,
                    TransferRecord.receiver_id == account_id,
                )
            )
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def references(self, account_id: int) -> bool:
        """Whether any record names the account as sender or receiver."""
        result = await self.session.execute(
            select(
                exists().where(
                    or_(
                        TransferRecord.sender_id == account_id,
                        TransferRecord.receiver_id == account_id,
                    )
                )
            )
        )
        return bool(result.scalar())
