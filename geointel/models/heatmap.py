"""
heatmap.py — Pydantic models for the demand/supply map endpoints.

Two notions of "intensity" live in this service:
  • heatmap intensity (here) — a fixed-scale value: demand score / 10 and
    listing count / 20, both clamped to 1. Comparable across requests.
  • hotspot intensity (models/hotspot.py) — relative to the largest bucket
    of the same request, so it is only comparable within one response.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from geointel.models.geo import Listing, ListingSummary


# ── Heatmaps ──────────────────────────────────────────────────────────────────

class DemandPoint(BaseModel):
    """One demand heatmap cell."""

    lat:            float
    lng:            float
    intensity:      float = Field(ge=0, le=1)
    score:          float    # count + 2 × empty searches
    count:          int
    searches:       int
    empty_searches: int
    views:          int
    geohash:        str


class DemandHeatmap(BaseModel):
    points:       list[DemandPoint] = Field(default_factory=list)
    total_events: int = 0


class SupplyPoint(BaseModel):
    """One supply heatmap cell."""

    lat:               float
    lng:               float
    intensity:         float = Field(ge=0, le=1)
    count:             int
    avg_price:         Optional[float] = None
    dominant_category: Optional[str] = None
    geohash:           str


class SupplyHeatmap(BaseModel):
    points:         list[SupplyPoint] = Field(default_factory=list)
    total_listings: int = 0


# ── Trends ────────────────────────────────────────────────────────────────────

class TrendingQuery(BaseModel):
    query:         str
    count:         int     # searches that returned results
    empty_count:   int
    demand_score:  float   # count + 1.5 × empty_count
    last_searched: datetime


class TrendingSearches(BaseModel):
    trends: list[TrendingQuery] = Field(default_factory=list)


class CategorySupplyTrend(BaseModel):
    category_id:     Optional[str] = None
    new_listings:    int
    avg_price:       Optional[float] = None
    sample_listings: list[ListingSummary] = Field(default_factory=list)


class TrendingSupply(BaseModel):
    trends: list[CategorySupplyTrend] = Field(default_factory=list)


# ── Feed + clusters ───────────────────────────────────────────────────────────

FEED_SORTS = ("distance", "price_asc", "price_desc", "newest", "popular")


class FeedItem(Listing):
    distance_m:  Optional[int] = None
    distance_km: Optional[float] = None


class GeoFeed(BaseModel):
    items:    list[FeedItem] = Field(default_factory=list)
    count:    int = 0
    has_more: bool = False


class Cluster(BaseModel):
    geohash:    str
    lat:        float
    lng:        float
    count:      int
    avg_price:  Optional[float] = None
    min_price:  Optional[float] = None
    max_price:  Optional[float] = None
    categories: list[str] = Field(default_factory=list)
    sample:     Optional[ListingSummary] = None
    is_cluster: bool


class ClusterMap(BaseModel):
    clusters:  list[Cluster] = Field(default_factory=list)
    precision: int = 6


# ── Category demand ───────────────────────────────────────────────────────────

class DemandStats(BaseModel):
    total_events:   int = 0
    searches:       int = 0
    empty_searches: int = 0
    views:          int = 0
    unique_actors:  int = 0
    demand_score:   float = 0.0   # searches + 2 × empty + 0.5 × views


class CategoryDemand(BaseModel):
    category_id:         str
    demand:              DemandStats = Field(default_factory=DemandStats)
    supply:              int = 0
    demand_supply_ratio: float = 0.0
    recommendation:      str = "neutral"   # high_demand | oversupply | neutral
