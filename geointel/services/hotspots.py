"""
hotspots.py — Dual-window hotspot detection for demand and supply.

HOW IT WORKS
────────────
Demand: two aggregations run concurrently over the same radius and event
types, one for the current window [now − h, now) and one for the preceding
window [now − 2h, now − h). For each current bucket:

    intensity    = count / max count among current buckets     (relative!)
    growth_rate  = (cur − prev) / prev            if prev > 0
                 = 1.0 if cur > 5 else 0.0        otherwise
    demand_score = (searches + 2·empty + 0.5·views + 3·favorites) / count
    is_hotspot   = intensity ≥ threshold  or  growth_rate > 0.3

Supply: "new in window" vs "all visible" listings per bucket:

    new_ratio    = new / total
    intensity    = new / max new
    is_hotspot   = intensity ≥ threshold  or  new_ratio > 0.5

Because intensity is normalised against the largest bucket of the same
request, one location can report different intensities for different
radii or windows.

Results are cached for a few minutes; the key covers center (quantized),
radius, window and threshold.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from geointel.core.cache import ResultCache, make_key
from geointel.models.geo import GeoPoint, Result
from geointel.models.hotspot import (
    DemandHotspot,
    DemandHotspots,
    DemandHotspotSummary,
    DemandMetrics,
    SupplyHotspot,
    SupplyHotspots,
    SupplyHotspotSummary,
)
from geointel.services.aggregator import SpatialAggregator
from geointel.stores.base import DEMAND_EVENT_TYPES, EventFilter, EventStore, ListingFilter, ListingStore

logger = logging.getLogger(__name__)

# ── Thresholds ────────────────────────────────────────────────────────────────

DEFAULT_THRESHOLD      = 0.3
_GROWTH_HOTSPOT        = 0.3    # growth above this marks a hotspot on its own
_NEW_BUCKET_FLOOR      = 5      # events needed before a brand-new bucket counts as growing
_NEW_RATIO_HOTSPOT     = 0.5
_HIGH_INTENSITY        = 0.7
_BUCKET_LIMIT          = 100

_DEMAND_WEIGHTS = {"search": 1.0, "empty_search": 2.0, "view": 0.5, "favorite": 3.0}


# ── Pure scoring functions ────────────────────────────────────────────────────

def growth_rate(current: int, previous: int) -> float:
    if previous > 0:
        return (current - previous) / previous
    return 1.0 if current > _NEW_BUCKET_FLOOR else 0.0


def relative_intensity(count: int, max_count: int) -> float:
    return count / max_count if max_count > 0 else 0.0


def demand_score(metrics: DemandMetrics, count: int) -> float:
    """Weighted per-event average; not comparable with the heatmap score."""
    if count <= 0:
        return 0.0
    weighted = (
        metrics.searches * _DEMAND_WEIGHTS["search"]
        + metrics.empty_searches * _DEMAND_WEIGHTS["empty_search"]
        + metrics.views * _DEMAND_WEIGHTS["view"]
        + metrics.favorites * _DEMAND_WEIGHTS["favorite"]
    )
    return weighted / count


def summarize_demand(hotspots: list[DemandHotspot]) -> DemandHotspotSummary:
    return DemandHotspotSummary(
        total_hotspots=len(hotspots),
        high_intensity=sum(1 for h in hotspots if h.intensity > _HIGH_INTENSITY),
        growing_areas=sum(1 for h in hotspots if h.growth_rate > _GROWTH_HOTSPOT),
        average_intensity=(
            sum(h.intensity for h in hotspots) / len(hotspots) if hotspots else 0.0
        ),
    )


# ── Detector ──────────────────────────────────────────────────────────────────

class HotspotDetector:
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

    async def demand_hotspots(
        self,
        center: GeoPoint,
        radius_km: float = 10.0,
        hours: int = 24,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> Result[DemandHotspots]:
        key = make_key(
            "demand-hotspots", center.lat, center.lng,
            radius_km=radius_km, hours=hours, threshold=threshold,
        )
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            now = datetime.now(tz=timezone.utc)
            since = now - timedelta(hours=hours)
            previous_start = now - timedelta(hours=2 * hours)

            current, previous = await asyncio.gather(
                self.aggregator.aggregate(
                    self.events,
                    EventFilter(center=center, radius_km=radius_km, types=DEMAND_EVENT_TYPES,
                                since=since, until=now),
                    limit=_BUCKET_LIMIT,
                ),
                self.aggregator.aggregate(
                    self.events,
                    EventFilter(center=center, radius_km=radius_km, types=DEMAND_EVENT_TYPES,
                                since=previous_start, until=since),
                ),
            )
            previous_counts = {b.geohash: b.count for b in previous}
            max_count = max((b.count for b in current), default=0)

            hotspots = []
            for bucket in current:
                if not bucket.has_centroid:
                    continue
                metrics = DemandMetrics(
                    searches=bucket.type_count("search"),
                    empty_searches=bucket.type_count("empty_search"),
                    views=bucket.type_count("view"),
                    favorites=bucket.type_count("favorite"),
                )
                intensity = relative_intensity(bucket.count, max_count)
                growth = growth_rate(bucket.count, previous_counts.get(bucket.geohash, 0))
                hotspot = DemandHotspot(
                    lat=bucket.lat,
                    lng=bucket.lng,
                    geohash=bucket.geohash,
                    intensity=intensity,
                    demand_score=demand_score(metrics, bucket.count),
                    growth_rate=growth,
                    is_hotspot=intensity >= threshold or growth > _GROWTH_HOTSPOT,
                    event_count=bucket.count,
                    category_hints=bucket.category_hints(),
                    query_hints=bucket.query_hints(),
                    metrics=metrics,
                )
                if hotspot.is_hotspot:
                    hotspots.append(hotspot)
            hotspots.sort(key=lambda h: h.intensity, reverse=True)
        except Exception as exc:
            logger.warning("Demand hotspot detection failed: %s", exc)
            return Result[DemandHotspots](success=False, error=str(exc), data=DemandHotspots())

        result = Result[DemandHotspots](
            data=DemandHotspots(hotspots=hotspots, summary=summarize_demand(hotspots))
        )
        self.cache.set(key, result)
        return result

    async def supply_hotspots(
        self,
        center: GeoPoint,
        radius_km: float = 10.0,
        hours: int = 24,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> Result[SupplyHotspots]:
        key = make_key(
            "supply-hotspots", center.lat, center.lng,
            radius_km=radius_km, hours=hours, threshold=threshold,
        )
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            since = datetime.now(tz=timezone.utc) - timedelta(hours=hours)
            recent, everything = await asyncio.gather(
                self.aggregator.aggregate(
                    self.listings,
                    ListingFilter(center=center, radius_km=radius_km, since=since),
                ),
                self.aggregator.aggregate(
                    self.listings,
                    ListingFilter(center=center, radius_km=radius_km),
                ),
            )
            totals = {b.geohash: b.count for b in everything}
            max_new = max((b.count for b in recent), default=0)

            hotspots = []
            for bucket in recent:
                if not bucket.has_centroid:
                    continue
                total = totals.get(bucket.geohash) or bucket.count
                new_ratio = bucket.count / total
                intensity = relative_intensity(bucket.count, max_new)
                if intensity >= threshold or new_ratio > _NEW_RATIO_HOTSPOT:
                    hotspots.append(SupplyHotspot(
                        lat=bucket.lat,
                        lng=bucket.lng,
                        geohash=bucket.geohash,
                        intensity=intensity,
                        new_count=bucket.count,
                        total_count=total,
                        new_ratio=new_ratio,
                        avg_price=bucket.avg_price,
                        is_hotspot=True,
                        category_hints=bucket.category_hints(),
                    ))
            hotspots.sort(key=lambda h: h.intensity, reverse=True)
        except Exception as exc:
            logger.warning("Supply hotspot detection failed: %s", exc)
            return Result[SupplyHotspots](success=False, error=str(exc), data=SupplyHotspots())

        result = Result[SupplyHotspots](data=SupplyHotspots(
            hotspots=hotspots,
            summary=SupplyHotspotSummary(
                total_hotspots=len(hotspots),
                total_new_listings=sum(b.count for b in recent),
                high_activity_areas=sum(1 for h in hotspots if h.intensity > _HIGH_INTENSITY),
            ),
        ))
        self.cache.set(key, result)
        return result
