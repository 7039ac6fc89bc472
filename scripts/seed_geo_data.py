#!/usr/bin/env python3
"""
seed_geo_data.py — Populate MongoDB with synthetic marketplace geo data.

Usage (from the repo root):
    python scripts/seed_geo_data.py           # replace existing seed data
    python scripts/seed_geo_data.py --append  # add without clearing first

Prerequisites:
    • MONGO_URI env var set (or .env file present); collection names come from settings
    • `pip install -e .` (motor, certifi, python-dotenv, pygeohash)

What this script creates
────────────────────────
  geo_events  ← searches / empty searches / views / favorites spread over
                the last 48 h around a handful of city districts, so both
                hotspot windows have data
  ads         ← active + approved listings around the same districts
  indexes     ← 2dsphere on location, (type, createdAt) compound, geoHash,
                and a TTL index that expires events after 30 days
"""

import argparse
import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

# Loaded before geointel is imported so Settings sees the repo's .env from any cwd
load_dotenv(ROOT / ".env")

from motor.motor_asyncio import AsyncIOMotorClient  # noqa: E402

from geointel.core.config import settings  # noqa: E402
from geointel.core.database import client_options, ensure_geo_indexes  # noqa: E402
from geointel.core.geohash import encode  # noqa: E402

EVENTS = settings.events_collection
LISTINGS = settings.listings_collection

# ── Districts ─────────────────────────────────────────────────────────────────
# Columns: name, lat, lng, demand weight, supply weight, categories
_DISTRICTS = [
    ("Centre",       53.9023, 27.5619, 1.0, 0.9, ["vegetables", "berries", "dairy"]),
    ("Uruchye",      53.9450, 27.6880, 0.8, 0.2, ["berries", "honey"]),
    ("Kamennaya",    53.9060, 27.4380, 0.3, 0.8, ["vegetables", "meat"]),
    ("Serebryanka",  53.8580, 27.6270, 0.6, 0.4, ["dairy", "eggs"]),
    ("Malinovka",    53.8520, 27.4550, 0.4, 0.3, ["honey", "vegetables"]),
]

_QUERIES = {
    "vegetables": ["картофель", "морковь", "огурцы", "tomatoes"],
    "berries":    ["клубника", "малина", "голубика"],
    "dairy":      ["творог", "молоко", "сметана"],
    "honey":      ["мёд", "honeycomb"],
    "meat":       ["свинина", "chicken"],
    "eggs":       ["яйца", "quail eggs"],
}

_EVENT_TYPES = [("search", 0.45), ("empty_search", 0.15), ("view", 0.25),
                ("favorite", 0.10), ("category_open", 0.05)]


def _jitter(lat: float, lng: float, km: float = 0.8) -> tuple[float, float]:
    # ~111 km per degree of latitude; good enough for a demo spread
    d = km / 111.0
    return lat + random.uniform(-d, d), lng + random.uniform(-d, d)


def _make_event(district: tuple, hours_ago: float) -> dict:
    _, lat, lng, _, _, categories = district
    lat, lng = _jitter(lat, lng)
    kind = random.choices([t for t, _ in _EVENT_TYPES], weights=[w for _, w in _EVENT_TYPES])[0]
    category = random.choice(categories)
    payload = {"categoryId": category}
    if kind in ("search", "empty_search"):
        payload["query"] = random.choice(_QUERIES[category])
        payload["resultsCount"] = 0 if kind == "empty_search" else random.randint(1, 40)

    return {
        "type":      kind,
        "location":  {"type": "Point", "coordinates": [lng, lat]},  # GeoJSON: [lng, lat]
        "geoHash":   encode(lat, lng),
        "actorId":   random.randint(1000, 1200),
        "sessionId": f"seed-{random.randint(1, 400)}",
        "payload":   payload,
        "createdAt": datetime.now(tz=timezone.utc) - timedelta(hours=hours_ago),
    }


def _make_listing(district: tuple, n: int, hours_ago: float) -> dict:
    name, lat, lng, _, _, categories = district
    lat, lng = _jitter(lat, lng)
    category = random.choice(categories)
    return {
        "title":            f"{category.title()} from {name} #{n}",
        "location":         {"type": "Point", "coordinates": [lng, lat]},
        "geoHash":          encode(lat, lng),
        "categoryId":       category,
        "price":            round(random.uniform(2, 60), 2),
        "status":           "active",
        "moderationStatus": "approved",
        "views":            random.randint(0, 300),
        "photos":           [f"https://picsum.photos/seed/{name}-{n}/400"],
        "createdAt":        datetime.now(tz=timezone.utc) - timedelta(hours=hours_ago),
    }


async def seed(append: bool = False, events: int = 1500, listings: int = 250) -> None:
    client = AsyncIOMotorClient(settings.mongo_uri, **client_options(settings.mongo_uri))
    db = client[settings.mongo_db_name]

    try:
        await client.admin.command("ping")
        print(f"Connected to MongoDB ({settings.mongo_db_name})")
    except Exception as exc:
        print(f"ERROR: Cannot connect to MongoDB: {exc}")
        return

    if not append:
        print("\nClearing existing seed data…")
        deleted_events = await db[EVENTS].delete_many({"sessionId": {"$regex": "^seed-"}})
        deleted_ads = await db[LISTINGS].delete_many({"title": {"$regex": " #\\d+$"}})
        print(f"  Deleted {deleted_events.deleted_count} events, {deleted_ads.deleted_count} listings")

    demand_weights = [d[3] for d in _DISTRICTS]
    supply_weights = [d[4] for d in _DISTRICTS]

    print("\nInserting events…")
    event_docs = [
        _make_event(random.choices(_DISTRICTS, weights=demand_weights)[0], random.uniform(0, 48))
        for _ in range(events)
    ]
    result = await db[EVENTS].insert_many(event_docs)
    print(f"  Inserted {len(result.inserted_ids)} events across {len(_DISTRICTS)} districts")

    print("\nInserting listings…")
    listing_docs = [
        _make_listing(random.choices(_DISTRICTS, weights=supply_weights)[0], n, random.uniform(0, 24 * 14))
        for n in range(listings)
    ]
    result = await db[LISTINGS].insert_many(listing_docs)
    print(f"  Inserted {len(result.inserted_ids)} listings")

    print("\nEnsuring indexes…")
    await ensure_geo_indexes(db)

    print("\n✓ Done")
    print(f"  {EVENTS} total : {await db[EVENTS].count_documents({})}")
    print(f"  {LISTINGS} total : {await db[LISTINGS].count_documents({})}")
    print(f"  Event types    : {sorted(await db[EVENTS].distinct('type'))}")

    client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed synthetic geo events and listings into MongoDB")
    parser.add_argument(
        "--append",
        action="store_true",
        help="Add documents without clearing previous seed data first",
    )
    parser.add_argument("--events", type=int, default=1500)
    parser.add_argument("--listings", type=int, default=250)
    args = parser.parse_args()

    print(f"GeoIntel Seeder  (db: {settings.mongo_db_name})")
    print(f"Mode: {'append' if args.append else 'replace'}\n")

    asyncio.run(seed(append=args.append, events=args.events, listings=args.listings))
