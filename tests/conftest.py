"""
Test fixtures for the ledger test suite.

This module provides shared fixtures used across all test files:

  - database: Fresh file-backed SQLite database for each test
  - bank: Bank (account store + transfer engine) around that database
  - client: Async HTTP test client wired to the same Bank
  - alice / bob: The two accounts of the canonical example scenario

Key design decisions:
  - Each test gets its own SQLite file under tmp_path. A file (rather than
    :memory:) gives every session its own connection, which the
    concurrency tests need to exercise real interleaving.
  - httpx's ASGITransport does not run the lifespan handler, so the client
    fixture installs the test Bank on app.state directly. The application
    code paths are otherwise exactly those of production.
"""

from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from bank_ledger.bank import Bank
from bank_ledger.config import Settings
from bank_ledger.database import Database
from bank_ledger.main import create_app


# Generous, so only the tests that shorten it on purpose ever time out
TEST_LOCK_TIMEOUT = 10.0


@pytest_asyncio.fixture
async def database(tmp_path):
    """Create a fresh database with all tables for each test."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await database.create_all()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def bank(database):
    """A Bank sharing the per-test database."""
    return Bank(database, lock_timeout=TEST_LOCK_TIMEOUT)


@pytest_asyncio.fixture
async def client(bank, tmp_path):
    """
    Async HTTP test client with the test Bank injected.

    All requests hit the per-test database instead of the configured one.
    """
    app = create_app(Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'unused.db'}"))
    app.state.bank = bank

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def alice(bank):
    return await bank.accounts.create_account("alice", Decimal("100.00"))


@pytest_asyncio.fixture
async def bob(bank):
    return await bank.accounts.create_account("bob", Decimal("0.00"))
