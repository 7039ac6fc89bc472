"""
pytest configuration and shared fixtures for the GeoIntel API tests.

Tests never need a live MongoDB:
  1. connect_to_mongo / close_mongo_connection are patched to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. db_client.client / db_client.db are set to None (disconnected), so the
     health check reports "disconnected" — a valid test-mode state.
  3. Engines run on InMemoryEventStore / InMemoryListingStore, filled per
     test through the make_event / make_listing factories.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STORE_BACKEND", "memory")

from geointel.core.cache import ResultCache  # noqa: E402
from geointel.core.geohash import encode  # noqa: E402
from geointel.models.geo import EventPayload, GeoPoint, InteractionEvent, Listing  # noqa: E402
from geointel.stores.memory import InMemoryEventStore, InMemoryListingStore  # noqa: E402

# Minsk city centre; every factory defaults to it.
CENTER_LAT = 53.9023
CENTER_LNG = 27.5619


@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    Tests that need a real db should override this fixture locally.
    """
    with (
        patch("geointel.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("geointel.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import geointel.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


# ── Row factories ─────────────────────────────────────────────────────────────

@pytest.fixture()
def center():
    return GeoPoint(lat=CENTER_LAT, lng=CENTER_LNG)


@pytest.fixture()
def make_event():
    """
    Build an InteractionEvent with a real precision-9 geohash.

        make_event("search", query="клубника", hours_ago=0.5)
    """
    def _make(
        type="search",
        lat=CENTER_LAT,
        lng=CENTER_LNG,
        hours_ago=0.5,
        query=None,
        category_id=None,
        actor_id=None,
        geohash=...,
    ):
        return InteractionEvent(
            type=type,
            lat=lat,
            lng=lng,
            geohash=encode(lat, lng) if geohash is ... else geohash,
            actor_id=actor_id,
            payload=EventPayload(query=query, category_id=category_id),
            created_at=datetime.now(tz=timezone.utc) - timedelta(hours=hours_ago),
        )

    return _make


@pytest.fixture()
def make_listing():
    counter = iter(range(1, 10_000))

    def _make(
        lat=CENTER_LAT,
        lng=CENTER_LNG,
        hours_ago=1.0,
        category_id="vegetables",
        price=10.0,
        views=0,
        status="active",
        moderation_status="approved",
        title=None,
    ):
        n = next(counter)
        return Listing(
            id=f"ad-{n}",
            title=title or f"Listing {n}",
            lat=lat,
            lng=lng,
            geohash=encode(lat, lng),
            category_id=category_id,
            price=price,
            views=views,
            status=status,
            moderation_status=moderation_status,
            photos=[f"https://img.example/{n}.jpg"],
            created_at=datetime.now(tz=timezone.utc) - timedelta(hours=hours_ago),
        )

    return _make


# ── Stores, caches, engine ────────────────────────────────────────────────────

@pytest.fixture()
def event_store():
    return InMemoryEventStore()


@pytest.fixture()
def listing_store():
    return InMemoryListingStore()


@pytest.fixture()
def heatmap_cache():
    return ResultCache(ttl_seconds=30)


@pytest.fixture()
def hotspot_cache():
    return ResultCache(ttl_seconds=300)


@pytest.fixture()
def engine(event_store, listing_store, heatmap_cache, hotspot_cache):
    from geointel.services.geo_engine import GeoEngine

    return GeoEngine(event_store, listing_store, heatmap_cache, hotspot_cache)


@pytest.fixture()
async def client(mock_db, engine):  # noqa: ARG001 — mock_db must run first
    """
    HTTPX async test client wired to the FastAPI app, with the geo engine
    replaced by one over the test's in-memory stores.

    Usage:
        async def test_something(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from geointel.main import app
    from geointel.services.geo_engine import get_geo_engine

    app.dependency_overrides[get_geo_engine] = lambda: engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
