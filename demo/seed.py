#!/usr/bin/env python3
"""
Demo seed script — populates the ledger with sample accounts and transfers.

!! NOT FOR PRODUCTION !!
This script creates accounts with made-up balances. It is intended ONLY for
local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

    # Also fire a burst of concurrent transfers to watch the locking work:
    python demo/seed.py --burst 50
"""

import argparse
import asyncio
import os
import random
import sys
from decimal import Decimal

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo accounts
# ---------------------------------------------------------------------------

ACCOUNTS = [
    {"name": "alice", "balance": "100.00"},
    {"name": "bob", "balance": "0.00"},
    {"name": "carol", "balance": "250.00"},
    {"name": "dave", "balance": "75.50"},
    {"name": "erin", "balance": "1200.00"},
]

TRANSFERS = [
    ("alice", "bob", "40.00", "Concert tickets"),
    ("carol", "alice", "12.75", "Lunch"),
    ("erin", "dave", "300.00", "Rent share"),
    ("dave", "carol", "19.99", None),
    ("bob", "erin", "5.00", "Coffee"),
    # Refused: bob cannot cover it
    ("bob", "carol", "1000.00", "Too much"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


async def create_account(client: httpx.AsyncClient, name: str, balance: str) -> dict:
    resp = await client.post("/accounts", json={"name": name, "balance": balance})
    if resp.status_code == 409:
        # Already seeded; reuse it
        resp = await client.get(f"/accounts/{name}")
    resp.raise_for_status()
    return resp.json()


async def do_transfer(client: httpx.AsyncClient, sender: str, receiver: str,
                      amount: str, description: str | None = None) -> dict:
    resp = await client.post(
        "/transfers",
        json={
            "sender": sender,
            "receiver": receiver,
            "amount": amount,
            "description": description,
        },
    )
    return resp.json()


async def total_balance(client: httpx.AsyncClient) -> Decimal:
    resp = await client.get("/accounts")
    resp.raise_for_status()
    return sum((Decimal(a["balance"]) for a in resp.json()), Decimal("0"))


async def burst(client: httpx.AsyncClient, names: list[str], count: int) -> None:
    """Send `count` random transfers at once and check nothing was lost."""
    before = await total_balance(client)

    async def one() -> dict:
        sender, receiver = random.sample(names, 2)
        amount = f"{random.randint(1, 2_000) / 100:.2f}"
        return await do_transfer(client, sender, receiver, amount, "burst")

    results = await asyncio.gather(*(one() for _ in range(count)))
    completed = sum(1 for r in results if "error_type" not in r)
    refused = {}
    for r in results:
        if "error_type" in r:
            refused[r["error_type"]] = refused.get(r["error_type"], 0) + 1

    after = await total_balance(client)
    log(f"{completed} completed, refused: {refused or 'none'}")
    log(f"Total before: {before}  after: {after}")
    if before != after:
        log("!! Total balance changed")


# ---------------------------------------------------------------------------
# Seed
# ---------------------------------------------------------------------------

async def seed(base_url: str, burst_count: int) -> None:
    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(base_url=base_url, timeout=30) as client:
        try:
            await client.get("/health")
        except httpx.ConnectError:
            print(f"  ERROR: Cannot connect to {base_url}")
            print("  Start the server first: uvicorn bank_ledger.main:app --reload\n")
            sys.exit(1)

        print("Creating accounts...")
        for account in ACCOUNTS:
            created = await create_account(client, account["name"], account["balance"])
            log(f"#{created['id']} {created['name']}: {created['balance']}")

        print("\nCreating transfers...")
        for sender, receiver, amount, description in TRANSFERS:
            result = await do_transfer(client, sender, receiver, amount, description)
            if "error_type" in result:
                log(f"{sender} -> {receiver}: {amount} REFUSED ({result['error_type']})")
            else:
                log(f"{sender} -> {receiver}: {result['amount']} at {result['formatted_timestamp']}")

        if burst_count:
            print(f"\nFiring {burst_count} concurrent transfers...")
            await burst(client, [a["name"] for a in ACCOUNTS], burst_count)

        print("\n========================================")
        print("  SEED COMPLETE — Balances")
        print("========================================")
        print(f"\n  {'Account':<20s} {'Balance':>15s}")
        print(f"  {'─' * 20} {'─' * 15}")
        for account in (await client.get("/accounts")).json():
            print(f"  {account['name']:<20s} {account['balance']:>15s}")
        print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "bank.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample accounts and transfers for demos.",
    )
    parser.add_argument(
        "--base-url", default=BASE_URL,
        help=f"Base URL of the running API (default: {BASE_URL})",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    parser.add_argument(
        "--burst", type=int, default=0, metavar="N",
        help="Also send N concurrent random transfers",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url, args.burst)


if __name__ == "__main__":
    asyncio.run(main())
