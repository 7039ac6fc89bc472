"""
MongoDB connection management using Motor (async driver).

Two collections matter here, both owned by the marketplace:

  geo_events  ← interaction log (searches, views, favorites, ...)
  ads         ← listings; only active + approved ones are ever read

The connection is opened in the app lifespan. When MongoDB cannot be reached
the holder stays empty, get_db() returns None and the geo engine falls back
to in-memory stores.
"""

import logging
import re

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from geointel.core.config import settings

logger = logging.getLogger(__name__)


class DatabaseClient:
    """Shared Motor client + database. Tests overwrite both attributes."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None


db_client = DatabaseClient()


def client_options(uri: str) -> dict:
    """Driver options for a URI. Atlas (SRV or tls=true) needs certifi's CA bundle."""
    options = {"serverSelectionTimeoutMS": 5000}
    if uri.startswith("mongodb+srv://") or "tls=true" in uri or "ssl=true" in uri:
        options["tlsCAFile"] = certifi.where()
    return options


async def ensure_geo_indexes(db: AsyncIOMotorDatabase) -> None:
    """
    Create the indexes the geo queries rely on. create_index is a no-op for an
    index that already exists, so this runs on every startup.
    """
    events = db[settings.events_collection]
    listings = db[settings.listings_collection]

    await events.create_index([("location", "2dsphere")], name="location_2dsphere")
    await events.create_index([("type", 1), ("createdAt", -1)], name="type_asc_created_desc")
    await events.create_index([("geoHash", 1)], name="geohash_asc")
    await events.create_index(
        [("createdAt", 1)],
        name="created_ttl",
        expireAfterSeconds=settings.event_retention_days * 24 * 3600,
    )

    await listings.create_index([("location", "2dsphere")], name="location_2dsphere")
    await listings.create_index(
        [("status", 1), ("moderationStatus", 1), ("createdAt", -1)],
        name="visible_created_desc",
    )
    await listings.create_index([("categoryId", 1)], name="category_asc")


async def connect_to_mongo() -> None:
    """Connect, ping, and make sure the geo indexes exist."""
    if settings.store_backend == "memory":
        logger.info("STORE_BACKEND=memory, skipping MongoDB connection")
        return

    logger.info("Connecting to MongoDB at %s", _redact_uri(settings.mongo_uri))
    try:
        db_client.client = AsyncIOMotorClient(settings.mongo_uri, **client_options(settings.mongo_uri))
        db_client.db = db_client.client[settings.mongo_db_name]
        await db_client.client.admin.command("ping")
        logger.info("MongoDB connection established (db: %s)", settings.mongo_db_name)
    except Exception as exc:
        logger.warning(
            "MongoDB unavailable at startup: %s. Geo queries will use in-memory stores.", exc
        )
        db_client.client = None
        db_client.db = None
        return

    try:
        await ensure_geo_indexes(db_client.db)
    except Exception as exc:
        # Marketplace owns the collections; missing index rights is not fatal.
        logger.warning("Could not ensure geo indexes: %s", exc)


async def close_mongo_connection() -> None:
    if db_client.client is not None:
        db_client.client.close()
        logger.info("MongoDB connection closed")


def get_db() -> AsyncIOMotorDatabase | None:
    """The selected database, or None when running without MongoDB."""
    return db_client.db


def _redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", uri)
