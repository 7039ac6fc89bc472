"""
geo.py — Geo intelligence routes: heatmaps, trends, feed, clusters,
category demand, recommendations and event logging.

Routes (all under /api/v1/geo):
  GET  /heatmap/demand        — buyer-interest heatmap
  GET  /heatmap/supply        — listing density heatmap
  GET  /trending-searches     — most demanded queries nearby
  GET  /trending-supply       — categories gaining new listings
  GET  /feed                  — distance-ranked listing feed
  GET  /clusters              — zoom-adaptive map markers
  GET  /demand/{category_id}  — demand vs supply for one category
  GET  /recommendations       — role-aware hints
  POST /events                — log one interaction event (rate limited)

Every route returns the Result envelope ({success, data, error}) with HTTP
200; a failed store query shows up as success=false, never as a 5xx.

  curl "http://localhost:8000/api/v1/geo/heatmap/demand?lat=53.9&lng=27.56&radius_km=5"
  curl "http://localhost:8000/api/v1/geo/feed?lat=53.9&lng=27.56&sort=price_asc&limit=10"
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from geointel.core.config import settings
from geointel.core.rate_limit import limiter
from geointel.models.geo import EventLogged, GeoEventIn, GeoPoint, Result
from geointel.models.heatmap import (
    CategoryDemand,
    ClusterMap,
    DemandHeatmap,
    GeoFeed,
    SupplyHeatmap,
    TrendingSearches,
    TrendingSupply,
)
from geointel.models.hotspot import Recommendations
from geointel.services.geo_engine import GeoEngine, get_geo_engine
from geointel.stores.base import ListingFilter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/geo", tags=["geo"])

_SORT_PATTERN = "^(distance|price_asc|price_desc|newest|popular)$"


def _optional_center(lat: Optional[float], lng: Optional[float]) -> Optional[GeoPoint]:
    # Half a coordinate pair is treated as no location at all.
    if lat is None or lng is None:
        return None
    return GeoPoint(lat=lat, lng=lng)


# ── Heatmaps ──────────────────────────────────────────────────────────────────

@router.get("/heatmap/demand", response_model=Result[DemandHeatmap])
async def heatmap_demand(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    hours: int = Query(default=24, ge=1, le=720, description="Lookback window in hours"),
    engine: GeoEngine = Depends(get_geo_engine),
):
    """Weighted demand per geohash cell (intensity on a fixed 0–1 scale)."""
    return await engine.demand_heatmap(GeoPoint(lat=lat, lng=lng), radius_km, hours)


@router.get("/heatmap/supply", response_model=Result[SupplyHeatmap])
async def heatmap_supply(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    category_id: Optional[str] = Query(default=None),
    engine: GeoEngine = Depends(get_geo_engine),
):
    return await engine.supply_heatmap(GeoPoint(lat=lat, lng=lng), radius_km, category_id)


# ── Trends ────────────────────────────────────────────────────────────────────

@router.get("/trending-searches", response_model=Result[TrendingSearches])
async def trending_searches(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    hours: int = Query(default=24, ge=1, le=720),
    limit: int = Query(default=10, ge=1, le=50),
    engine: GeoEngine = Depends(get_geo_engine),
):
    return await engine.trending_searches(GeoPoint(lat=lat, lng=lng), radius_km, hours, limit)


@router.get("/trending-supply", response_model=Result[TrendingSupply])
async def trending_supply(
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lng: Optional[float] = Query(default=None, ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    hours: int = Query(default=24, ge=1, le=720),
    limit: int = Query(default=10, ge=1, le=50),
    engine: GeoEngine = Depends(get_geo_engine),
):
    """New listings per category; without lat/lng the whole marketplace is used."""
    return await engine.trending_supply(_optional_center(lat, lng), radius_km, hours, limit)


# ── Feed & map markers ────────────────────────────────────────────────────────

@router.get("/feed", response_model=Result[GeoFeed])
async def geo_feed(
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lng: Optional[float] = Query(default=None, ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    category_id: Optional[str] = Query(default=None),
    subcategory_id: Optional[str] = Query(default=None),
    price_min: Optional[float] = Query(default=None, ge=0),
    price_max: Optional[float] = Query(default=None, ge=0),
    sort: str = Query(default="distance", pattern=_SORT_PATTERN),
    limit: int = Query(default=20, ge=1, le=100),
    skip: int = Query(default=0, ge=0),
    engine: GeoEngine = Depends(get_geo_engine),
):
    """
    Listing feed around a point, nearest first by default.

    Without lat/lng the feed is a plain filtered page and `distance` sorting
    falls back to newest first.
    """
    flt = ListingFilter(
        center=_optional_center(lat, lng),
        radius_km=radius_km,
        category_id=category_id,
        subcategory_id=subcategory_id,
        price_min=price_min,
        price_max=price_max,
    )
    return await engine.feed(flt, sort=sort, limit=limit, skip=skip)


@router.get("/clusters", response_model=Result[ClusterMap])
async def clusters(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    zoom: int = Query(default=12, ge=1, le=22, description="Map zoom level"),
    category_id: Optional[str] = Query(default=None),
    engine: GeoEngine = Depends(get_geo_engine),
):
    return await engine.clusters(GeoPoint(lat=lat, lng=lng), radius_km, zoom, category_id)


# ── Category demand ───────────────────────────────────────────────────────────

@router.get("/demand/{category_id}", response_model=Result[CategoryDemand])
async def category_demand(
    category_id: str,
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lng: Optional[float] = Query(default=None, ge=-180, le=180),
    radius_km: float = Query(default=20.0, gt=0, le=200),
    engine: GeoEngine = Depends(get_geo_engine),
):
    """7-day demand vs current supply for a category, with a recommendation."""
    return await engine.category_demand(category_id, _optional_center(lat, lng), radius_km)


# ── Recommendations ───────────────────────────────────────────────────────────

@router.get("/recommendations", response_model=Result[Recommendations])
async def recommendations(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    role: str = Query(default="buyer", max_length=20),
    actor_id: Optional[str] = Query(default=None),
    engine: GeoEngine = Depends(get_geo_engine),
):
    return await engine.recommendations(actor_id, GeoPoint(lat=lat, lng=lng), role)


# ── Event logging ─────────────────────────────────────────────────────────────

@router.post("/events", response_model=Result[EventLogged])
@limiter.limit(settings.event_rate_limit)
async def log_event(
    request: Request,
    payload: GeoEventIn,
    engine: GeoEngine = Depends(get_geo_engine),
):
    """
    Record one interaction event.

    The store stamps the timestamp and derives the GeoJSON point and the
    precision-9 geohash from lat/lng.
    """
    return await engine.log_event(payload)
