"""
geo_engine.py — Wiring for the geo intelligence engines.

GeoEngine owns the two result caches and one instance of every engine, and
exposes one method per HTTP operation. Routes get it through the
`get_geo_engine` dependency, which builds it lazily on first use from the
current database handle:

    MongoDB reachable            → Motor-backed stores
    STORE_BACKEND=memory or
    MongoDB down (degraded mode) → empty in-process stores

Tests swap the whole engine with app.dependency_overrides[get_geo_engine].
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request

from geointel.core import database as db_module
from geointel.core.cache import ResultCache
from geointel.core.config import settings
from geointel.models.geo import EventLogged, GeoEventIn, GeoPoint, Result
from geointel.services.aggregator import SpatialAggregator
from geointel.services.demand import DemandEngine
from geointel.services.hotspots import HotspotDetector
from geointel.services.opportunity import OpportunityMatcher
from geointel.services.recommendations import RecommendationComposer
from geointel.services.supply import SupplyEngine
from geointel.stores.base import EventStore, ListingFilter, ListingStore
from geointel.stores.memory import InMemoryEventStore, InMemoryListingStore
from geointel.stores.mongo import MongoEventStore, MongoListingStore

logger = logging.getLogger(__name__)


class GeoEngine:
    def __init__(
        self,
        events: EventStore,
        listings: ListingStore,
        heatmap_cache: Optional[ResultCache] = None,
        hotspot_cache: Optional[ResultCache] = None,
    ):
        self.events = events
        self.listings = listings
        self.backend = "mongo" if isinstance(events, MongoEventStore) else "memory"
        if heatmap_cache is None:
            heatmap_cache = ResultCache(settings.heatmap_cache_ttl_seconds, settings.cache_max_entries)
        if hotspot_cache is None:
            hotspot_cache = ResultCache(settings.hotspot_cache_ttl_seconds, settings.cache_max_entries)
        self.heatmap_cache = heatmap_cache
        self.hotspot_cache = hotspot_cache

        aggregator = SpatialAggregator()
        self.demand = DemandEngine(events, listings, self.heatmap_cache, aggregator)
        self.supply = SupplyEngine(listings, self.heatmap_cache, aggregator)
        self.hotspots = HotspotDetector(events, listings, self.hotspot_cache, aggregator)
        self.opportunities = OpportunityMatcher(self.hotspots)
        self.recommender = RecommendationComposer(self.demand, self.supply)

    # ── Demand ────────────────────────────────────────────────────────────────

    async def demand_heatmap(self, center: GeoPoint, radius_km: float = 10.0, hours: int = 24):
        return await self.demand.heatmap(center, radius_km, hours)

    async def trending_searches(
        self, center: GeoPoint, radius_km: float = 10.0, hours: int = 24, limit: int = 10
    ):
        return await self.demand.trending(center, radius_km, hours, limit)

    async def category_demand(
        self, category_id: str, center: Optional[GeoPoint] = None, radius_km: float = 20.0
    ):
        return await self.demand.category_demand(category_id, center, radius_km)

    # ── Supply ────────────────────────────────────────────────────────────────

    async def supply_heatmap(
        self, center: GeoPoint, radius_km: float = 10.0, category_id: Optional[str] = None
    ):
        return await self.supply.heatmap(center, radius_km, category_id)

    async def trending_supply(
        self,
        center: Optional[GeoPoint] = None,
        radius_km: float = 10.0,
        hours: int = 24,
        limit: int = 10,
    ):
        return await self.supply.trending_supply(center, radius_km, hours, limit)

    async def feed(self, flt: ListingFilter, sort: str = "distance", limit: int = 20, skip: int = 0):
        return await self.supply.feed(flt, sort, limit, skip)

    async def clusters(
        self,
        center: GeoPoint,
        radius_km: float = 10.0,
        zoom: int = 12,
        category_id: Optional[str] = None,
    ):
        return await self.supply.clusters(center, radius_km, zoom, category_id)

    # ── Hotspots ──────────────────────────────────────────────────────────────

    async def demand_hotspots(self, center: GeoPoint, radius_km: float = 10.0, hours: int = 24,
                              threshold: float = 0.3):
        return await self.hotspots.demand_hotspots(center, radius_km, hours, threshold)

    async def supply_hotspots(self, center: GeoPoint, radius_km: float = 10.0, hours: int = 24,
                              threshold: float = 0.3):
        return await self.hotspots.supply_hotspots(center, radius_km, hours, threshold)

    async def opportunity_zones(self, center: GeoPoint, radius_km: float = 10.0):
        return await self.opportunities.zones(center, radius_km)

    # ── Hints & events ────────────────────────────────────────────────────────

    async def recommendations(self, actor_id: Optional[Any], center: GeoPoint, role: str = "buyer"):
        return await self.recommender.recommend(actor_id, center, role)

    async def log_event(self, event: GeoEventIn) -> Result[EventLogged]:
        try:
            event_id = await self.events.insert(event.model_dump())
        except Exception as exc:
            logger.warning("Failed to log %s event: %s", event.type, exc)
            return Result[EventLogged](success=False, error=str(exc), data=EventLogged())
        return Result[EventLogged](data=EventLogged(event_id=event_id))

    def clear_caches(self) -> None:
        self.heatmap_cache.clear()
        self.hotspot_cache.clear()


def create_geo_engine(db: Any = None) -> GeoEngine:
    """Build an engine over MongoDB, or over in-process stores when that is unavailable."""
    if settings.store_backend == "memory" or db is None:
        if settings.store_backend != "memory":
            logger.warning("No database handle — geo engine serving from in-memory stores")
        return GeoEngine(InMemoryEventStore(), InMemoryListingStore())

    return GeoEngine(
        MongoEventStore(db, settings.events_collection),
        MongoListingStore(db, settings.listings_collection),
    )


def get_geo_engine(request: Request) -> GeoEngine:
    """FastAPI dependency — the app-wide engine, created on first request."""
    engine = getattr(request.app.state, "geo_engine", None)
    if engine is None:
        engine = create_geo_engine(db_module.get_db())
        request.app.state.geo_engine = engine
    return engine
