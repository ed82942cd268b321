"""Seed the opportunities collection from data/seed_opportunities.json and create indexes.

Replaces all existing opportunities. Safe to re-run since the data is mock/sample data.
Saved searches are left alone; only their indexes are (re)created.

Usage: .venv/bin/python scripts/seed_db.py
"""

import asyncio
import json
from pathlib import Path

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

from app.config import settings

SEED_FILE = Path(__file__).resolve().parent.parent / "data" / "seed_opportunities.json"


async def create_indexes(db) -> None:
    await db.opportunities.create_index("id", unique=True)
    await db.opportunities.create_index([("tenant_id", ASCENDING), ("pickup_date", ASCENDING)])
    await db.bids.create_index([("carrier_id", ASCENDING), ("opportunity_id", ASCENDING)])

    await db.saved_searches.create_index("id", unique=True)
    await db.saved_searches.create_index(
        [("user_id", ASCENDING), ("is_default", DESCENDING), ("last_used_at", DESCENDING)]
    )
    # At most one default per user. Clearing the old default and writing the
    # new one are separate writes, so this index is what catches the race.
    await db.saved_searches.create_index(
        "user_id",
        name="one_default_per_user",
        unique=True,
        partialFilterExpression={"is_default": True},
    )


async def seed():
    client = AsyncIOMotorClient(settings.MONGODB_URI)
    db = client[settings.DATABASE_NAME]

    with open(SEED_FILE) as f:
        opportunities = json.load(f)

    await db.opportunities.delete_many({})  # destructive: wipes all existing opportunities
    result = await db.opportunities.insert_many(opportunities)
    await create_indexes(db)
    print(f"Seeded {len(result.inserted_ids)} opportunities into '{settings.DATABASE_NAME}'")

    client.close()


if __name__ == "__main__":
    asyncio.run(seed())
