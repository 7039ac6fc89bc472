"""
mongo.py — Motor-backed Event and Listing stores.

Document shapes (owned by the marketplace, read here):

  geo_events:
    { "type": "search",
      "location": { "type": "Point", "coordinates": [lng, lat] },   ← 2dsphere
      "geoHash": "u9edk3y2m",
      "actorId": 123456, "sessionId": "...",
      "payload": { "query": "клубника", "categoryId": "berries", ... },
      "createdAt": ISODate(...) }                                     ← TTL 30 days

  ads:
    { "title": "...", "location": {...}, "geoHash": "...",
      "categoryId": "...", "subcategoryId": "...", "price": 12.5,
      "status": "active", "moderationStatus": "approved",
      "views": 40, "photos": [...], "createdAt": ISODate(...) }

Radius filters use $geoWithin/$centerSphere (radius in radians); the feed
uses a $geoNear stage so results carry a distance.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from geointel.core.geohash import EARTH_RADIUS_KM, encode
from geointel.models.geo import EventPayload, GeoPoint, InteractionEvent, Listing
from geointel.stores.base import EventFilter, ListingFilter

logger = logging.getLogger(__name__)

VISIBLE = {"status": "active", "moderationStatus": "approved"}

_SORTS: dict[str, dict[str, int]] = {
    "price_asc":  {"price": 1},
    "price_desc": {"price": -1},
    "newest":     {"createdAt": -1},
    "popular":    {"views": -1},
}

# EventPayload field → document field
_PAYLOAD_FIELDS = {
    "query":          "query",
    "category_id":    "categoryId",
    "subcategory_id": "subcategoryId",
    "listing_id":     "adId",
    "results_count":  "resultsCount",
}
_DOC_PAYLOAD_FIELDS = {doc: name for name, doc in _PAYLOAD_FIELDS.items()}

# GeoEventIn field → document field; anything else is stored under its own name
_EVENT_FIELDS = {
    "type":       "type",
    "actor_id":   "actorId",
    "session_id": "sessionId",
}
_DOC_EVENT_FIELDS = {"_id", "type", "location", "geoHash", "actorId", "telegramId",
                     "sessionId", "payload", "createdAt"}

# Only what the engines read; the payload can carry arbitrary producer context.
EVENT_PROJECTION = {
    "type": 1,
    "location": 1,
    "geoHash": 1,
    "actorId": 1,
    "telegramId": 1,
    "payload.query": 1,
    "payload.categoryId": 1,
    "createdAt": 1,
}


def _within(center: GeoPoint, radius_km: float) -> dict:
    return {
        "$geoWithin": {
            "$centerSphere": [[center.lng, center.lat], radius_km / EARTH_RADIUS_KM]
        }
    }


def _time_range(since: datetime | None, until: datetime | None) -> dict | None:
    bounds = {}
    if since is not None:
        bounds["$gte"] = since
    if until is not None:
        bounds["$lt"] = until
    return bounds or None


def _coords(doc: dict) -> tuple[float | None, float | None]:
    coords = (doc.get("location") or {}).get("coordinates") or []
    if len(coords) != 2:
        return None, None
    return coords[1], coords[0]


def _aware(ts: datetime | None) -> datetime:
    # Motor returns naive UTC datetimes unless tz_aware=True
    if ts is None:
        return datetime.now(tz=timezone.utc)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def event_from_doc(doc: dict) -> InteractionEvent:
    lat, lng = _coords(doc)
    payload = {
        _DOC_PAYLOAD_FIELDS.get(key, key): value
        for key, value in (doc.get("payload") or {}).items()
    }
    if payload.get("listing_id") is not None:
        payload["listing_id"] = str(payload["listing_id"])
    extra = {
        key: value for key, value in doc.items()
        if key not in _DOC_EVENT_FIELDS and not key.startswith("_")
    }
    return InteractionEvent(
        id=str(doc["_id"]) if "_id" in doc else None,
        type=doc.get("type", ""),
        lat=lat,
        lng=lng,
        geohash=doc.get("geoHash"),
        actor_id=doc.get("actorId", doc.get("telegramId")),
        session_id=doc.get("sessionId"),
        payload=EventPayload(**payload),
        created_at=_aware(doc.get("createdAt")),
        **extra,
    )


def listing_from_doc(doc: dict) -> Listing:
    lat, lng = _coords(doc)
    return Listing(
        id=str(doc["_id"]),
        title=doc.get("title") or "",
        lat=lat,
        lng=lng,
        geohash=doc.get("geoHash"),
        category_id=doc.get("categoryId"),
        subcategory_id=doc.get("subcategoryId"),
        price=doc.get("price"),
        status=doc.get("status", "active"),
        moderation_status=doc.get("moderationStatus", "approved"),
        views=doc.get("views") or 0,
        photos=doc.get("photos") or [],
        created_at=_aware(doc.get("createdAt")),
    )


class MongoEventStore:
    def __init__(self, db: AsyncIOMotorDatabase, collection: str = "geo_events"):
        self._col = db[collection]

    @staticmethod
    def build_query(flt: EventFilter) -> dict:
        query: dict[str, Any] = {}
        if flt.center is not None:
            query["location"] = _within(flt.center, flt.radius_km)
        if flt.types:
            query["type"] = {"$in": list(flt.types)}
        created = _time_range(flt.since, flt.until)
        if created:
            query["createdAt"] = created
        if flt.category_id:
            query["payload.categoryId"] = flt.category_id
        if flt.with_query:
            query["payload.query"] = {"$exists": True, "$nin": ["", None]}
        return query

    async def find_within(self, flt: EventFilter) -> list[InteractionEvent]:
        cursor = self._col.find(self.build_query(flt), EVENT_PROJECTION)
        return [event_from_doc(doc) async for doc in cursor]

    @staticmethod
    def build_document(payload: dict[str, Any]) -> dict:
        """
        Store the event as sent, renaming the known fields to the collection's
        camelCase. Only location, geoHash and createdAt are added.
        """
        lat, lng = payload["lat"], payload["lng"]
        event = {
            _EVENT_FIELDS.get(name, name): value
            for name, value in payload.items()
            if name not in ("lat", "lng", "payload") and value is not None
        }
        event["location"] = {"type": "Point", "coordinates": [lng, lat]}
        event["geoHash"] = encode(lat, lng)
        event["payload"] = {
            _PAYLOAD_FIELDS.get(name, name): value
            for name, value in (payload.get("payload") or {}).items()
            if value is not None
        }
        event["createdAt"] = datetime.now(tz=timezone.utc)
        return event

    async def insert(self, payload: dict[str, Any]) -> str:
        result = await self._col.insert_one(self.build_document(payload))
        return str(result.inserted_id)


class MongoListingStore:
    def __init__(self, db: AsyncIOMotorDatabase, collection: str = "ads"):
        self._col = db[collection]

    @staticmethod
    def build_query(flt: ListingFilter, spatial: bool = True) -> dict:
        query: dict[str, Any] = dict(VISIBLE)
        if spatial and flt.center is not None:
            query["location"] = _within(flt.center, flt.radius_km)
        if flt.category_id:
            query["categoryId"] = flt.category_id
        if flt.subcategory_id:
            query["subcategoryId"] = flt.subcategory_id
        if flt.price_min is not None or flt.price_max is not None:
            query["price"] = {}
            if flt.price_min is not None:
                query["price"]["$gte"] = flt.price_min
            if flt.price_max is not None:
                query["price"]["$lte"] = flt.price_max
        created = _time_range(flt.since, flt.until)
        if created:
            query["createdAt"] = created
        return query

    async def find_within(self, flt: ListingFilter) -> list[Listing]:
        cursor = self._col.find(self.build_query(flt))
        return [listing_from_doc(doc) async for doc in cursor]

    async def find(
        self, flt: ListingFilter, sort: str = "newest", skip: int = 0, limit: int = 20
    ) -> list[Listing]:
        order = _SORTS.get(sort, _SORTS["newest"])
        cursor = (
            self._col.find(self.build_query(flt))
            .sort(list(order.items()))
            .skip(skip)
            .limit(limit)
        )
        return [listing_from_doc(doc) async for doc in cursor]

    async def geo_near(
        self, flt: ListingFilter, sort: str = "distance", skip: int = 0, limit: int = 20
    ) -> list[tuple[Listing, float]]:
        if flt.center is None:
            raise ValueError("geo_near requires a center point")
        pipeline: list[dict] = [
            {
                "$geoNear": {
                    "near": {"type": "Point", "coordinates": [flt.center.lng, flt.center.lat]},
                    "distanceField": "distance",
                    "maxDistance": flt.radius_km * 1000,
                    "spherical": True,
                    "query": self.build_query(flt, spatial=False),
                }
            }
        ]
        if sort in _SORTS:
            pipeline.append({"$sort": _SORTS[sort]})
        pipeline += [{"$skip": skip}, {"$limit": limit}]

        out = []
        async for doc in self._col.aggregate(pipeline):
            out.append((listing_from_doc(doc), float(doc.get("distance") or 0.0)))
        return out

    async def count(self, flt: ListingFilter) -> int:
        return await self._col.count_documents(self.build_query(flt))
