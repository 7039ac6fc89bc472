"""
hotspot.py — Pydantic models for hotspots, opportunity zones and the
role-aware recommendation hints.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


# ── Demand hotspots ───────────────────────────────────────────────────────────

class DemandMetrics(BaseModel):
    searches:       int = 0
    empty_searches: int = 0
    views:          int = 0
    favorites:      int = 0


class DemandHotspot(BaseModel):
    lat:            float
    lng:            float
    geohash:        str
    intensity:      float = Field(ge=0, le=1)   # count / max count in this response
    demand_score:   float                       # weighted per-event average
    growth_rate:    float                       # vs the preceding window
    is_hotspot:     bool
    event_count:    int
    category_hints: list[str] = Field(default_factory=list)
    query_hints:    list[str] = Field(default_factory=list)
    metrics:        DemandMetrics = Field(default_factory=DemandMetrics)


class DemandHotspotSummary(BaseModel):
    total_hotspots:    int = 0
    high_intensity:    int = 0
    growing_areas:     int = 0
    average_intensity: float = 0.0


class DemandHotspots(BaseModel):
    hotspots: list[DemandHotspot] = Field(default_factory=list)
    summary:  DemandHotspotSummary = Field(default_factory=DemandHotspotSummary)


# ── Supply hotspots ───────────────────────────────────────────────────────────

class SupplyHotspot(BaseModel):
    lat:            float
    lng:            float
    geohash:        str
    intensity:      float = Field(ge=0, le=1)   # new count / max new count
    new_count:      int
    total_count:    int
    new_ratio:      float
    avg_price:      Optional[float] = None
    is_hotspot:     bool
    category_hints: list[str] = Field(default_factory=list)


class SupplyHotspotSummary(BaseModel):
    total_hotspots:      int = 0
    total_new_listings:  int = 0
    high_activity_areas: int = 0


class SupplyHotspots(BaseModel):
    hotspots: list[SupplyHotspot] = Field(default_factory=list)
    summary:  SupplyHotspotSummary = Field(default_factory=SupplyHotspotSummary)


# ── Opportunity zones ─────────────────────────────────────────────────────────

ZoneType = Literal["high_demand_low_supply", "high_supply_low_demand"]


class OpportunityZone(BaseModel):
    lat:               float
    lng:               float
    geohash:           str
    type:              ZoneType
    opportunity_score: float
    demand_intensity:  float
    supply_intensity:  float
    category_hints:    list[str] = Field(default_factory=list)
    query_hints:       list[str] = Field(default_factory=list)
    recommendation:    str


class OpportunitySummary(BaseModel):
    high_opportunity: int = 0
    saturated_areas:  int = 0


class OpportunityZones(BaseModel):
    zones:   list[OpportunityZone] = Field(default_factory=list)
    summary: OpportunitySummary = Field(default_factory=OpportunitySummary)


# ── Recommendations ───────────────────────────────────────────────────────────

class Recommendation(BaseModel):
    type:     str   # demand_opportunity | unmet_demand | new_nearby
    priority: str   # high | medium
    message:  str
    details:  dict[str, Any] = Field(default_factory=dict)
    action:   str   # create_ad | view_feed


class Recommendations(BaseModel):
    recommendations: list[Recommendation] = Field(default_factory=list)
