"""
supply.py — Seller-side signals from visible listings.

Operations
──────────
  heatmap()          listing density per cell with average price
  clusters()         zoom-adaptive map markers
  feed()             distance-ranked listing feed with a non-spatial fallback
  trending_supply()  categories gaining the most new listings
  new_nearby()       freshest listings around a point
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from geointel.core.cache import ResultCache, make_key
from geointel.core.geohash import precision_for_zoom
from geointel.models.geo import GeoPoint, Listing, ListingSummary, Result
from geointel.models.heatmap import (
    CategorySupplyTrend,
    Cluster,
    ClusterMap,
    FeedItem,
    GeoFeed,
    SupplyHeatmap,
    SupplyPoint,
    TrendingSupply,
)
from geointel.services.aggregator import SpatialAggregator
from geointel.stores.base import ListingFilter, ListingStore

logger = logging.getLogger(__name__)

_SUPPLY_SCALE        = 20.0   # count / scale → intensity, clamped to 1
_HEATMAP_POINT_LIMIT = 500
_CLUSTER_LIMIT       = 200
_TREND_SAMPLE_SIZE   = 3


def supply_intensity(count: int) -> float:
    return max(0.0, min(count / _SUPPLY_SCALE, 1.0))


def _feed_item(listing: Listing, distance_m: Optional[float] = None) -> FeedItem:
    item = FeedItem(**listing.model_dump())
    if distance_m is not None:
        item.distance_m = round(distance_m)
        item.distance_km = round(distance_m / 1000, 1)
    return item


class SupplyEngine:
    def __init__(
        self,
        listings: ListingStore,
        cache: ResultCache,
        aggregator: Optional[SpatialAggregator] = None,
    ):
        self.listings = listings
        self.cache = cache
        self.aggregator = aggregator or SpatialAggregator()

    async def heatmap(
        self, center: GeoPoint, radius_km: float = 10.0, category_id: Optional[str] = None
    ) -> Result[SupplyHeatmap]:
        key = make_key("supply", center.lat, center.lng, radius_km=radius_km, category_id=category_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            buckets = await self.aggregator.aggregate(
                self.listings,
                ListingFilter(center=center, radius_km=radius_km, category_id=category_id),
                limit=_HEATMAP_POINT_LIMIT,
            )
            points = [
                SupplyPoint(
                    lat=bucket.lat,
                    lng=bucket.lng,
                    intensity=supply_intensity(bucket.count),
                    count=bucket.count,
                    avg_price=bucket.avg_price,
                    dominant_category=next(iter(bucket.category_hints(1)), None),
                    geohash=bucket.geohash,
                )
                for bucket in buckets
                if bucket.has_centroid
            ]
        except Exception as exc:
            logger.warning("Supply heatmap query failed: %s", exc)
            return Result[SupplyHeatmap](success=False, error=str(exc), data=SupplyHeatmap())

        result = Result[SupplyHeatmap](
            data=SupplyHeatmap(points=points, total_listings=sum(p.count for p in points))
        )
        self.cache.set(key, result)
        return result

    async def clusters(
        self,
        center: GeoPoint,
        radius_km: float = 10.0,
        zoom: int = 12,
        category_id: Optional[str] = None,
    ) -> Result[ClusterMap]:
        precision = precision_for_zoom(zoom)
        try:
            buckets = await self.aggregator.aggregate(
                self.listings,
                ListingFilter(center=center, radius_km=radius_km, category_id=category_id),
                precision=precision,
                limit=_CLUSTER_LIMIT,
            )
            clusters = [
                Cluster(
                    geohash=bucket.geohash,
                    lat=bucket.lat,
                    lng=bucket.lng,
                    count=bucket.count,
                    avg_price=bucket.avg_price,
                    min_price=bucket.min_price,
                    max_price=bucket.max_price,
                    categories=sorted(bucket.categories),
                    sample=ListingSummary.of(bucket.representative),
                    is_cluster=bucket.count > 1,
                )
                for bucket in buckets
                if bucket.has_centroid
            ]
        except Exception as exc:
            logger.warning("Cluster query failed: %s", exc)
            return Result[ClusterMap](
                success=False, error=str(exc), data=ClusterMap(precision=precision)
            )

        return Result[ClusterMap](data=ClusterMap(clusters=clusters, precision=precision))

    async def feed(
        self,
        flt: ListingFilter,
        sort: str = "distance",
        limit: int = 20,
        skip: int = 0,
    ) -> Result[GeoFeed]:
        try:
            if flt.center is not None:
                try:
                    hits = await self.listings.geo_near(flt, sort=sort, skip=skip, limit=limit)
                    items = [_feed_item(listing, distance) for listing, distance in hits]
                except Exception as exc:
                    # Keep the feed available: drop distance ranking, newest first.
                    logger.warning("Spatial feed query failed, serving recency page: %s", exc)
                    plain = replace(flt, center=None)
                    listings = await self.listings.find(plain, sort="newest", skip=skip, limit=limit)
                    items = [_feed_item(listing) for listing in listings]
            else:
                order = "newest" if sort == "distance" else sort
                listings = await self.listings.find(flt, sort=order, skip=skip, limit=limit)
                items = [_feed_item(listing) for listing in listings]
        except Exception as exc:
            logger.warning("Geo feed query failed: %s", exc)
            return Result[GeoFeed](success=False, error=str(exc), data=GeoFeed())

        return Result[GeoFeed](
            data=GeoFeed(items=items, count=len(items), has_more=len(items) == limit)
        )

    async def trending_supply(
        self,
        center: Optional[GeoPoint] = None,
        radius_km: float = 10.0,
        hours: int = 24,
        limit: int = 10,
    ) -> Result[TrendingSupply]:
        lat, lng = (center.lat, center.lng) if center else (None, None)
        key = make_key("trending-supply", lat, lng, radius_km=radius_km, hours=hours, limit=limit)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            since = datetime.now(tz=timezone.utc) - timedelta(hours=hours)
            listings = await self.listings.find_within(
                ListingFilter(center=center, radius_km=radius_km, since=since)
            )
            by_category: dict[Optional[str], list[Listing]] = defaultdict(list)
            for listing in listings:
                by_category[listing.category_id].append(listing)

            trends = []
            for category_id, members in by_category.items():
                prices = [m.price for m in members if m.price is not None]
                trends.append(CategorySupplyTrend(
                    category_id=category_id,
                    new_listings=len(members),
                    avg_price=round(sum(prices) / len(prices), 2) if prices else None,
                    sample_listings=[ListingSummary.of(m) for m in members[:_TREND_SAMPLE_SIZE]],
                ))
            trends.sort(key=lambda t: t.new_listings, reverse=True)
        except Exception as exc:
            logger.warning("Trending supply query failed: %s", exc)
            return Result[TrendingSupply](success=False, error=str(exc), data=TrendingSupply())

        result = Result[TrendingSupply](data=TrendingSupply(trends=trends[:limit]))
        self.cache.set(key, result)
        return result

    async def new_nearby(
        self, center: GeoPoint, radius_km: float = 2.0, hours: int = 2, limit: int = 5
    ) -> list[Listing]:
        """Newest listings created in the window. May raise."""
        since = datetime.now(tz=timezone.utc) - timedelta(hours=hours)
        return await self.listings.find(
            ListingFilter(center=center, radius_km=radius_km, since=since),
            sort="newest",
            limit=limit,
        )
