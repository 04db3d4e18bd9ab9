"""
Concurrency tests for the transfer engine.

Transfers run as concurrent asyncio tasks against a file-backed SQLite
database, so sessions really interleave. These tests verify:
  - No lost updates: N concurrent drains of one account all land
  - No overdraft: concurrent drains beyond the balance are refused
  - Deadlock freedom: A->B and B->A running together both finish
  - Lock timeouts fail fast without mutating anything
  - Transfers on disjoint account pairs do not wait on each other
  - Balance corrections serialize with transfers
  - An account deleted while a transfer waits is never replaced by another
"""

import asyncio
from decimal import Decimal

import pytest

from bank_ledger.exceptions import (
    AccountNotFoundError,
    InsufficientFundsError,
    LockTimeoutError,
)


async def total_balance(bank) -> Decimal:
    return sum((a.balance for a in await bank.accounts.list_accounts()), Decimal("0"))


class TestNoLostUpdates:

    async def test_concurrent_drains_all_succeed(self, bank):
        """N transfers of m from an account holding exactly N*m all succeed,
        and the account ends at exactly zero."""
        n, m = 20, Decimal("5.00")
        source = await bank.accounts.create_account("source", n * m)
        receivers = [
            await bank.accounts.create_account(f"receiver-{i}") for i in range(n)
        ]

        results = await asyncio.gather(
            *(bank.transfers.transfer(source.id, r.id, m) for r in receivers)
        )

        assert len(results) == n
        assert (await bank.accounts.get_account(source.id)).balance == Decimal("0.00")
        for receiver in receivers:
            assert (await bank.accounts.get_account(receiver.id)).balance == m
        assert len(await bank.transfers.list_transfers()) == n
        assert await total_balance(bank) == n * m

    async def test_concurrent_overdraft_is_refused(self, bank):
        """With funds for only some of the transfers, exactly that many succeed
        and the balance never goes negative."""
        source = await bank.accounts.create_account("source", Decimal("30.00"))
        receivers = [
            await bank.accounts.create_account(f"receiver-{i}") for i in range(10)
        ]

        results = await asyncio.gather(
            *(bank.transfers.transfer(source.id, r.id, Decimal("10.00")) for r in receivers),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        refused = [r for r in results if isinstance(r, InsufficientFundsError)]
        assert len(succeeded) == 3
        assert len(refused) == 7
        assert (await bank.accounts.get_account(source.id)).balance == Decimal("0.00")
        assert len(await bank.transfers.list_transfers()) == 3
        assert await total_balance(bank) == Decimal("30.00")


class TestDeadlockFreedom:

    async def test_opposite_directions_complete(self, bank):
        """A->B and B->A, many times over, all finish."""
        a = await bank.accounts.create_account("a", Decimal("100.00"))
        b = await bank.accounts.create_account("b", Decimal("100.00"))

        transfers = []
        for _ in range(10):
            transfers.append(bank.transfers.transfer(a.id, b.id, Decimal("1.00")))
            transfers.append(bank.transfers.transfer(b.id, a.id, Decimal("2.00")))

        await asyncio.wait_for(asyncio.gather(*transfers), timeout=30)

        assert (await bank.accounts.get_account(a.id)).balance == Decimal("110.00")
        assert (await bank.accounts.get_account(b.id)).balance == Decimal("90.00")
        assert await total_balance(bank) == Decimal("200.00")


class TestLockTimeout:

    async def test_times_out_without_mutation(self, bank, alice, bob):
        """A transfer that can't get its locks fails as retryable and
        changes nothing."""
        bank.transfers.lock_timeout = 0.05

        async with bank.locks.hold(alice.id, timeout=1):
            with pytest.raises(LockTimeoutError) as excinfo:
                await bank.transfers.transfer(alice.id, bob.id, Decimal("10.00"))

        assert isinstance(excinfo.value, TimeoutError)
        assert excinfo.value.account_ids == sorted([alice.id, bob.id])
        assert (await bank.accounts.get_account(alice.id)).balance == Decimal("100.00")
        assert (await bank.accounts.get_account(bob.id)).balance == Decimal("0.00")
        assert await bank.transfers.list_transfers() == []

        # Once the lock is free the same transfer goes through
        await bank.transfers.transfer(alice.id, bob.id, Decimal("10.00"))
        assert (await bank.accounts.get_account(bob.id)).balance == Decimal("10.00")

    async def test_partial_acquisition_is_released(self, bank, alice, bob):
        """Timing out on the second lock gives the first one back."""
        bank.transfers.lock_timeout = 0.05
        higher = max(alice.id, bob.id)
        lower = min(alice.id, bob.id)

        async with bank.locks.hold(higher, timeout=1):
            with pytest.raises(LockTimeoutError):
                await bank.transfers.transfer(alice.id, bob.id, 1)
            assert not bank.locks.is_locked(lower)

    async def test_balance_correction_times_out(self, bank, alice):
        bank.accounts.lock_timeout = 0.05

        async with bank.locks.hold(alice.id, timeout=1):
            with pytest.raises(LockTimeoutError):
                await bank.accounts.update_account(alice.id, balance=0)

        assert (await bank.accounts.get_account(alice.id)).balance == Decimal("100.00")


class TestIndependence:

    async def test_disjoint_pairs_do_not_block(self, bank, alice, bob):
        """While alice and bob are locked, carol -> dave proceeds."""
        carol = await bank.accounts.create_account("carol", Decimal("50.00"))
        dave = await bank.accounts.create_account("dave")
        bank.transfers.lock_timeout = 0.5

        async with bank.locks.hold(alice.id, bob.id, timeout=1):
            await bank.transfers.transfer(carol.id, dave.id, Decimal("20.00"))

        assert (await bank.accounts.get_account(dave.id)).balance == Decimal("20.00")

    async def test_waiting_transfer_sees_completed_effect(self, bank, alice, bob):
        """A transfer queued behind a balance correction checks funds against
        the corrected balance, not the one it saw before waiting."""
        hold_released = asyncio.Event()

        async def hold_then_release():
            async with bank.locks.hold(alice.id, timeout=1):
                hold_released.set()
                await asyncio.sleep(0.05)

        holder = asyncio.create_task(hold_then_release())
        await hold_released.wait()

        # Queued behind the holder, then behind the correction below
        correction = asyncio.create_task(bank.accounts.update_account(alice.id, balance=5))
        await asyncio.sleep(0)
        transfer = asyncio.create_task(
            bank.transfers.transfer(alice.id, bob.id, Decimal("50.00"))
        )

        await holder
        await correction
        with pytest.raises(InsufficientFundsError) as excinfo:
            await transfer

        assert excinfo.value.available == Decimal("5.00")
        assert (await bank.accounts.get_account(alice.id)).balance == Decimal("5.00")


class TestDeletionWhileWaiting:

    async def test_waiting_transfer_never_debits_a_new_account(self, bank, monkeypatch):
        """A transfer that resolved "dave" and then waited on a lock must not
        touch the account created after dave was deleted."""
        carol = await bank.accounts.create_account("carol")
        dave = await bank.accounts.create_account("dave", Decimal("50.00"))

        resolve = bank.accounts.resolve
        resolved = asyncio.Event()
        calls = 0

        async def tracking_resolve(ref):
            nonlocal calls
            account = await resolve(ref)
            calls += 1
            if calls == 2:
                resolved.set()
            return account

        monkeypatch.setattr(bank.accounts, "resolve", tracking_resolve)

        async with bank.locks.hold(carol.id, timeout=1):
            transfer = asyncio.create_task(
                bank.transfers.transfer("dave", carol.id, Decimal("5.00"))
            )
            await resolved.wait()

            await bank.accounts.delete_account(dave.id)
            mallory = await bank.accounts.create_account("mallory", Decimal("100.00"))
            assert mallory.id != dave.id

        with pytest.raises(AccountNotFoundError):
            await transfer

        assert (await bank.accounts.get_account(mallory.id)).balance == Decimal("100.00")
        assert (await bank.accounts.get_account(carol.id)).balance == Decimal("0.00")
        assert await bank.transfers.list_transfers() == []
