"""
geo.py — Core geo types: points, the two raw signal rows, and the result
envelope every engine operation returns.

Raw rows
────────
InteractionEvent and Listing mirror the marketplace documents the stores
read (`geo_events` and `ads` collections). Both expose the same small
surface (`kind`, `category_hint`, `query_hint`, `price_value`) so the
spatial aggregator can bucket either stream in one pass.

Result envelope
───────────────
    Result[DemandHeatmap](data=DemandHeatmap(points=[...], total_events=12))
    Result[DemandHeatmap](success=False, error="...", data=DemandHeatmap())

`data` is always present; on failure it is the operation's empty default so
map clients can render "no data for this area" without branching.
"""

from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class GeoPoint(BaseModel):
    """Lat/lng coordinates in degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class EventPayload(BaseModel):
    # Producers attach extra context (priceRange, ...); it is stored as sent.
    model_config = ConfigDict(extra="allow")

    query:          Optional[str] = None
    category_id:    Optional[str] = None
    subcategory_id: Optional[str] = None
    listing_id:     Optional[str] = None
    results_count:  Optional[int] = None


class InteractionEvent(BaseModel):
    """A single buyer interaction (search, view, favorite, ...)."""

    model_config = ConfigDict(extra="allow")

    id:         Optional[str] = None
    type:       str    # search | empty_search | view | favorite | contact | category_open | click
    lat:        Optional[float] = None
    lng:        Optional[float] = None
    geohash:    Optional[str] = None
    actor_id:   Optional[int | str] = None
    session_id: Optional[str] = None
    payload:    EventPayload = Field(default_factory=EventPayload)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def kind(self) -> str:
        return self.type

    @property
    def category_hint(self) -> Optional[str]:
        return self.payload.category_id

    @property
    def query_hint(self) -> Optional[str]:
        return self.payload.query

    @property
    def price_value(self) -> Optional[float]:
        return None


class Listing(BaseModel):
    """A live marketplace listing (only active + approved rows reach here)."""

    id:                str
    title:             str = ""
    lat:               Optional[float] = None
    lng:               Optional[float] = None
    geohash:           Optional[str] = None
    category_id:       Optional[str] = None
    subcategory_id:    Optional[str] = None
    price:             Optional[float] = None
    status:            str = "active"
    moderation_status: str = "approved"
    views:             int = 0
    photos:            list[str] = Field(default_factory=list)
    created_at:        datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def kind(self) -> str:
        return "listing"

    @property
    def category_hint(self) -> Optional[str]:
        return self.category_id

    @property
    def query_hint(self) -> Optional[str]:
        return None

    @property
    def price_value(self) -> Optional[float]:
        return self.price


class ListingSummary(BaseModel):
    """Compact listing card used inside clusters, trends and hints."""

    id:    str
    title: str = ""
    price: Optional[float] = None
    photo: Optional[str] = None

    @classmethod
    def of(cls, listing: Listing) -> "ListingSummary":
        return cls(
            id=listing.id,
            title=listing.title,
            price=listing.price,
            photo=listing.photos[0] if listing.photos else None,
        )


class GeoEventIn(BaseModel):
    """Request body for POST /api/v1/geo/events."""

    model_config = ConfigDict(extra="allow")    # cityCode and other producer fields

    type:       str = Field(..., min_length=2, max_length=40)
    lat:        float = Field(..., ge=-90, le=90)
    lng:        float = Field(..., ge=-180, le=180)
    actor_id:   Optional[int | str] = None
    session_id: Optional[str] = None
    payload:    EventPayload = Field(default_factory=EventPayload)


class EventLogged(BaseModel):
    event_id: Optional[str] = None


class Result(BaseModel, Generic[T]):
    """Tagged success/failure envelope returned by every engine operation."""

    success: bool = True
    data:    T
    error:   Optional[str] = None
