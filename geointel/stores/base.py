"""
base.py — Filters and interfaces for the two external signal stores.

The engines only read through these protocols, so the Motor-backed stores
(stores/mongo.py) and the in-process stores (stores/memory.py) are
interchangeable.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from geointel.models.geo import GeoPoint, InteractionEvent, Listing

# Event types that count as buyer interest for heatmaps and hotspots.
DEMAND_EVENT_TYPES = ("search", "empty_search", "view", "favorite", "category_open")


@dataclass
class EventFilter:
    """Spherical radius + time window over the interaction event log."""

    center: Optional[GeoPoint] = None
    radius_km: float = 10.0
    types: Optional[Sequence[str]] = None
    since: Optional[datetime] = None      # inclusive
    until: Optional[datetime] = None      # exclusive
    category_id: Optional[str] = None
    with_query: bool = False              # only events carrying a non-empty query


@dataclass
class ListingFilter:
    """Spherical radius + attribute filters over visible listings."""

    center: Optional[GeoPoint] = None
    radius_km: float = 10.0
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    since: Optional[datetime] = None      # created_at >= since
    until: Optional[datetime] = None      # created_at < until


class EventStore(Protocol):
    async def find_within(self, flt: EventFilter) -> list[InteractionEvent]: ...

    async def insert(self, payload: dict[str, Any]) -> str: ...


class ListingStore(Protocol):
    async def find_within(self, flt: ListingFilter) -> list[Listing]: ...

    async def find(
        self, flt: ListingFilter, sort: str = "newest", skip: int = 0, limit: int = 20
    ) -> list[Listing]: ...

    async def geo_near(
        self, flt: ListingFilter, sort: str = "distance", skip: int = 0, limit: int = 20
    ) -> list[tuple[Listing, float]]:
        """Listings inside the radius with their distance in metres."""
        ...

    async def count(self, flt: ListingFilter) -> int: ...
