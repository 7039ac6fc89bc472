"""
demand.py — Buyer-interest signals from the interaction event log.

Operations
──────────
  heatmap()          weighted demand heatmap (fixed-scale intensity)
  trending()         most demanded free-text queries in an area
  category_demand()  demand vs supply ratio for one category
  unmet_queries()    queries that recently returned nothing

Every public method returns a Result envelope and never raises.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional

from geointel.core.cache import ResultCache, make_key
from geointel.models.geo import GeoPoint, Result
from geointel.models.heatmap import (
    CategoryDemand,
    DemandHeatmap,
    DemandPoint,
    DemandStats,
    TrendingQuery,
    TrendingSearches,
)
from geointel.services.aggregator import SpatialAggregator
from geointel.stores.base import DEMAND_EVENT_TYPES, EventFilter, EventStore, ListingFilter, ListingStore

logger = logging.getLogger(__name__)

# ── Weights ───────────────────────────────────────────────────────────────────

_EMPTY_SEARCH_WEIGHT    = 2.0    # heatmap score = count + 2 × empty searches
_HEATMAP_SCALE          = 10.0   # score / scale → intensity, clamped to 1
_HEATMAP_POINT_LIMIT    = 500

_TREND_EMPTY_WEIGHT     = 1.5    # demand score = count + 1.5 × empty count

_CATEGORY_WINDOW_DAYS   = 7
_CATEGORY_EVENT_TYPES   = ("search", "empty_search", "category_open", "view")
_HIGH_DEMAND_RATIO      = 2.0
_OVERSUPPLY_RATIO       = 0.5


def heatmap_intensity(count: int, empty_searches: int) -> float:
    """Fixed-scale demand intensity in [0, 1]."""
    score = count + _EMPTY_SEARCH_WEIGHT * empty_searches
    return max(0.0, min(score / _HEATMAP_SCALE, 1.0))


def normalize_query(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def classify_ratio(ratio: float) -> str:
    if ratio > _HIGH_DEMAND_RATIO:
        return "high_demand"
    if ratio < _OVERSUPPLY_RATIO:
        return "oversupply"
    return "neutral"


class DemandEngine:
    def __init__(
        self,
        events: EventStore,
        listings: ListingStore,
        cache: ResultCache,
        aggregator: Optional[SpatialAggregator] = None,
    ):
        self.events = events
        self.listings = listings
        self.cache = cache
        self.aggregator = aggregator or SpatialAggregator()

    async def heatmap(
        self, center: GeoPoint, radius_km: float = 10.0, hours: int = 24
    ) -> Result[DemandHeatmap]:
        key = make_key("demand", center.lat, center.lng, radius_km=radius_km, hours=hours)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            since = datetime.now(tz=timezone.utc) - timedelta(hours=hours)
            buckets = await self.aggregator.aggregate(
                self.events,
                EventFilter(center=center, radius_km=radius_km, types=DEMAND_EVENT_TYPES, since=since),
            )
            points = []
            for bucket in buckets:
                if not bucket.has_centroid:
                    continue
                empty = bucket.type_count("empty_search")
                points.append(DemandPoint(
                    lat=bucket.lat,
                    lng=bucket.lng,
                    intensity=heatmap_intensity(bucket.count, empty),
                    score=bucket.count + _EMPTY_SEARCH_WEIGHT * empty,
                    count=bucket.count,
                    searches=bucket.type_count("search"),
                    empty_searches=empty,
                    views=bucket.type_count("view"),
                    geohash=bucket.geohash,
                ))
            points.sort(key=lambda p: p.score, reverse=True)
            points = points[:_HEATMAP_POINT_LIMIT]
        except Exception as exc:
            logger.warning("Demand heatmap query failed: %s", exc)
            return Result[DemandHeatmap](success=False, error=str(exc), data=DemandHeatmap())

        result = Result[DemandHeatmap](
            data=DemandHeatmap(points=points, total_events=sum(p.count for p in points))
        )
        self.cache.set(key, result)
        return result

    async def trending(
        self, center: GeoPoint, radius_km: float = 10.0, hours: int = 24, limit: int = 10
    ) -> Result[TrendingSearches]:
        key = make_key("trending", center.lat, center.lng, radius_km=radius_km, hours=hours, limit=limit)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            since = datetime.now(tz=timezone.utc) - timedelta(hours=hours)
            events = await self.events.find_within(EventFilter(
                center=center,
                radius_km=radius_km,
                types=("search", "empty_search"),
                since=since,
                with_query=True,
            ))

            groups: dict[str, dict] = {}
            for event in events:
                query = normalize_query(event.payload.query)
                if not query:
                    continue
                group = groups.setdefault(query, {"count": 0, "empty": 0, "last": event.created_at})
                # count holds searches that found something; empty ones are tallied apart
                if event.type == "empty_search":
                    group["empty"] += 1
                else:
                    group["count"] += 1
                if event.created_at > group["last"]:
                    group["last"] = event.created_at

            trends = [
                TrendingQuery(
                    query=query,
                    count=g["count"],
                    empty_count=g["empty"],
                    demand_score=g["count"] + _TREND_EMPTY_WEIGHT * g["empty"],
                    last_searched=g["last"],
                )
                for query, g in groups.items()
            ]
            # Highest demand first; ties go to the most recently searched query.
            trends.sort(key=lambda t: (t.demand_score, t.last_searched), reverse=True)
        except Exception as exc:
            logger.warning("Trending searches query failed: %s", exc)
            return Result[TrendingSearches](success=False, error=str(exc), data=TrendingSearches())

        result = Result[TrendingSearches](data=TrendingSearches(trends=trends[:limit]))
        self.cache.set(key, result)
        return result

    async def category_demand(
        self, category_id: str, center: Optional[GeoPoint] = None, radius_km: float = 20.0
    ) -> Result[CategoryDemand]:
        try:
            since = datetime.now(tz=timezone.utc) - timedelta(days=_CATEGORY_WINDOW_DAYS)
            events = await self.events.find_within(EventFilter(
                center=center,
                radius_km=radius_km,
                types=_CATEGORY_EVENT_TYPES,
                since=since,
                category_id=category_id,
            ))
            supply = await self.listings.count(
                ListingFilter(center=center, radius_km=radius_km, category_id=category_id)
            )

            types = Counter(e.type for e in events)
            actors = {e.actor_id for e in events if e.actor_id is not None}
            stats = DemandStats(
                total_events=len(events),
                searches=types["search"],
                empty_searches=types["empty_search"],
                views=types["view"],
                unique_actors=len(actors),
                demand_score=types["search"] + 2 * types["empty_search"] + 0.5 * types["view"],
            )
            ratio = stats.demand_score / supply if supply > 0 else stats.demand_score
        except Exception as exc:
            logger.warning("Category demand query failed for %s: %s", category_id, exc)
            return Result[CategoryDemand](
                success=False, error=str(exc), data=CategoryDemand(category_id=category_id)
            )

        return Result[CategoryDemand](data=CategoryDemand(
            category_id=category_id,
            demand=stats,
            supply=supply,
            demand_supply_ratio=round(ratio, 2),
            recommendation=classify_ratio(ratio),
        ))

    async def unmet_queries(self, center: GeoPoint, radius_km: float = 3.0, hours: int = 24) -> list[str]:
        """Distinct normalized queries of recent empty searches, first seen first. May raise."""
        since = datetime.now(tz=timezone.utc) - timedelta(hours=hours)
        events = await self.events.find_within(EventFilter(
            center=center,
            radius_km=radius_km,
            types=("empty_search",),
            since=since,
            with_query=True,
        ))
        seen: dict[str, None] = {}
        for event in events:
            query = normalize_query(event.payload.query)
            if query:
                seen.setdefault(query, None)
        return list(seen)
