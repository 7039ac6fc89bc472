"""
memory.py — In-process Event and Listing stores.

Same filtering semantics as the Motor stores, evaluated in Python with a
haversine radius check. Used when MongoDB is unavailable (local demos) and
throughout the test suite. `calls` counts every read so tests can assert how
many store round-trips an operation issued.
"""

import itertools
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from geointel.core.geohash import encode, haversine_km
from geointel.models.geo import EventPayload, InteractionEvent, Listing
from geointel.stores.base import EventFilter, ListingFilter

_ids = itertools.count(1)


def _in_window(ts: datetime, since: Optional[datetime], until: Optional[datetime]) -> bool:
    if since is not None and ts < since:
        return False
    if until is not None and ts >= until:
        return False
    return True


class InMemoryEventStore:
    def __init__(self, events: Iterable[InteractionEvent] = ()):
        self.events: list[InteractionEvent] = list(events)
        self.calls = 0

    def _matches(self, event: InteractionEvent, flt: EventFilter) -> bool:
        if flt.center is not None:
            if event.lat is None or event.lng is None:
                return False
            if haversine_km(flt.center.lat, flt.center.lng, event.lat, event.lng) > flt.radius_km:
                return False
        if flt.types and event.type not in flt.types:
            return False
        if not _in_window(event.created_at, flt.since, flt.until):
            return False
        if flt.category_id and event.payload.category_id != flt.category_id:
            return False
        if flt.with_query and not event.payload.query:
            return False
        return True

    async def find_within(self, flt: EventFilter) -> list[InteractionEvent]:
        self.calls += 1
        return [e for e in self.events if self._matches(e, flt)]

    async def insert(self, payload: dict[str, Any]) -> str:
        event_id = f"evt-{next(_ids)}"
        fields = dict(payload)
        lat, lng = fields.pop("lat"), fields.pop("lng")
        body = fields.pop("payload", None) or {}
        for assigned in ("id", "geohash", "created_at"):
            fields.pop(assigned, None)
        self.events.append(
            InteractionEvent(
                **fields,
                id=event_id,
                lat=lat,
                lng=lng,
                geohash=encode(lat, lng),
                payload=EventPayload(**body),
                created_at=datetime.now(tz=timezone.utc),
            )
        )
        return event_id


class InMemoryListingStore:
    def __init__(self, listings: Iterable[Listing] = ()):
        self.listings: list[Listing] = list(listings)
        self.calls = 0

    def _distance_km(self, listing: Listing, flt: ListingFilter) -> Optional[float]:
        if flt.center is None or listing.lat is None or listing.lng is None:
            return None
        return haversine_km(flt.center.lat, flt.center.lng, listing.lat, listing.lng)

    def _matches(self, listing: Listing, flt: ListingFilter, spatial: bool = True) -> bool:
        if listing.status != "active" or listing.moderation_status != "approved":
            return False
        if spatial and flt.center is not None:
            distance = self._distance_km(listing, flt)
            if distance is None or distance > flt.radius_km:
                return False
        if flt.category_id and listing.category_id != flt.category_id:
            return False
        if flt.subcategory_id and listing.subcategory_id != flt.subcategory_id:
            return False
        if flt.price_min is not None and (listing.price is None or listing.price < flt.price_min):
            return False
        if flt.price_max is not None and (listing.price is None or listing.price > flt.price_max):
            return False
        return _in_window(listing.created_at, flt.since, flt.until)

    @staticmethod
    def _sorted(listings: list[Listing], sort: str) -> list[Listing]:
        if sort == "price_asc":
            return sorted(listings, key=lambda item: (item.price is None, item.price or 0))
        if sort == "price_desc":
            return sorted(listings, key=lambda item: -(item.price or 0))
        if sort == "popular":
            return sorted(listings, key=lambda item: -item.views)
        return sorted(listings, key=lambda item: item.created_at, reverse=True)

    async def find_within(self, flt: ListingFilter) -> list[Listing]:
        self.calls += 1
        return [item for item in self.listings if self._matches(item, flt)]

    async def find(
        self, flt: ListingFilter, sort: str = "newest", skip: int = 0, limit: int = 20
    ) -> list[Listing]:
        self.calls += 1
        matched = [item for item in self.listings if self._matches(item, flt)]
        return self._sorted(matched, sort)[skip:skip + limit]

    async def geo_near(
        self, flt: ListingFilter, sort: str = "distance", skip: int = 0, limit: int = 20
    ) -> list[tuple[Listing, float]]:
        self.calls += 1
        if flt.center is None:
            raise ValueError("geo_near requires a center point")
        by_distance = sorted(
            (item for item in self.listings if self._matches(item, flt)),
            key=lambda item: self._distance_km(item, flt),
        )
        ordered = by_distance if sort == "distance" else self._sorted(by_distance, sort)
        return [
            (item, self._distance_km(item, flt) * 1000)
            for item in ordered[skip:skip + limit]
        ]

    async def count(self, flt: ListingFilter) -> int:
        self.calls += 1
        return sum(1 for item in self.listings if self._matches(item, flt))
