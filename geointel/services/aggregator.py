"""
aggregator.py — Spatial bucketing of events or listings by geohash prefix.

One radius (+ optional time window) query is issued against a store and the
returned rows are folded into buckets in a single pass: count, centroid,
type breakdown, category/query frequencies and price stats are all
accumulated together.

USAGE
─────
    aggregator = SpatialAggregator()
    buckets = await aggregator.aggregate(
        event_store,
        EventFilter(center=GeoPoint(lat=53.9, lng=27.56), radius_km=5,
                    types=DEMAND_EVENT_TYPES, since=since),
        precision=6,
    )
    buckets[0].geohash, buckets[0].count, buckets[0].lat, buckets[0].lng

Centroids are plain arithmetic means of member coordinates, which is fine
for cells of 7 characters or fewer.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol

from geointel.core.geohash import DEFAULT_BUCKET_PRECISION, bucket_key

HINT_LIMIT = 3


class Bucketable(Protocol):
    lat: Optional[float]
    lng: Optional[float]
    geohash: Optional[str]
    created_at: datetime

    @property
    def kind(self) -> str: ...

    @property
    def category_hint(self) -> Optional[str]: ...

    @property
    def query_hint(self) -> Optional[str]: ...

    @property
    def price_value(self) -> Optional[float]: ...


@dataclass
class SpatialBucket:
    geohash: str
    count: int = 0
    types: Counter = field(default_factory=Counter)
    categories: Counter = field(default_factory=Counter)
    queries: Counter = field(default_factory=Counter)
    representative: Any = None
    last_seen: Optional[datetime] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    _lat_sum: float = 0.0
    _lng_sum: float = 0.0
    _located: int = 0
    _price_sum: float = 0.0
    _priced: int = 0

    def add(self, row: Bucketable) -> None:
        self.count += 1
        if self.representative is None:
            self.representative = row
        self.types[row.kind] += 1
        if row.category_hint:
            self.categories[row.category_hint] += 1
        if row.query_hint:
            self.queries[row.query_hint] += 1
        if row.lat is not None and row.lng is not None:
            self._lat_sum += row.lat
            self._lng_sum += row.lng
            self._located += 1
        price = row.price_value
        if price is not None:
            self._price_sum += price
            self._priced += 1
            self.min_price = price if self.min_price is None else min(self.min_price, price)
            self.max_price = price if self.max_price is None else max(self.max_price, price)
        if self.last_seen is None or row.created_at > self.last_seen:
            self.last_seen = row.created_at

    @property
    def lat(self) -> Optional[float]:
        return self._lat_sum / self._located if self._located else None

    @property
    def lng(self) -> Optional[float]:
        return self._lng_sum / self._located if self._located else None

    @property
    def has_centroid(self) -> bool:
        return self._located > 0

    @property
    def avg_price(self) -> Optional[float]:
        return round(self._price_sum / self._priced, 2) if self._priced else None

    def type_count(self, kind: str) -> int:
        return self.types.get(kind, 0)

    def category_hints(self, limit: int = HINT_LIMIT) -> list[str]:
        return [name for name, _ in self.categories.most_common(limit)]

    def query_hints(self, limit: int = HINT_LIMIT) -> list[str]:
        return [name for name, _ in self.queries.most_common(limit)]


def bucketize(
    rows: Iterable[Bucketable],
    precision: int = DEFAULT_BUCKET_PRECISION,
    limit: Optional[int] = None,
) -> list[SpatialBucket]:
    """Group rows by geohash prefix, largest bucket first."""
    buckets: dict[str, SpatialBucket] = {}
    for row in rows:
        key = bucket_key(row.geohash, precision)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = SpatialBucket(geohash=key)
        bucket.add(row)

    ordered = sorted(buckets.values(), key=lambda b: b.count, reverse=True)
    return ordered[:limit] if limit is not None else ordered


class SpatialAggregator:
    def __init__(self, precision: int = DEFAULT_BUCKET_PRECISION):
        self.precision = precision

    async def aggregate(
        self,
        store: Any,
        flt: Any,
        precision: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[SpatialBucket]:
        """Run one `find_within` against `store` and bucket the rows."""
        rows = await store.find_within(flt)
        return bucketize(rows, precision or self.precision, limit)
