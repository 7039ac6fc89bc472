"""
hotspots.py — Hotspot and opportunity zone routes.

Routes (all under /api/v1/geo):
  GET /hotspots/demand    — cells with concentrated or growing demand
  GET /hotspots/supply    — cells with a burst of new listings
  GET /opportunity-zones  — where demand and supply disagree

Hotspot intensities are relative to the strongest cell in the same
response, so they are only comparable within one request.
"""

from fastapi import APIRouter, Depends, Query

from geointel.models.geo import GeoPoint, Result
from geointel.models.hotspot import DemandHotspots, OpportunityZones, SupplyHotspots
from geointel.services.geo_engine import GeoEngine, get_geo_engine

router = APIRouter(prefix="/api/v1/geo", tags=["hotspots"])


@router.get("/hotspots/demand", response_model=Result[DemandHotspots])
async def demand_hotspots(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    hours: int = Query(default=24, ge=1, le=360),
    threshold: float = Query(default=0.3, ge=0, le=1),
    engine: GeoEngine = Depends(get_geo_engine),
):
    return await engine.demand_hotspots(GeoPoint(lat=lat, lng=lng), radius_km, hours, threshold)


@router.get("/hotspots/supply", response_model=Result[SupplyHotspots])
async def supply_hotspots(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    hours: int = Query(default=24, ge=1, le=360),
    threshold: float = Query(default=0.3, ge=0, le=1),
    engine: GeoEngine = Depends(get_geo_engine),
):
    return await engine.supply_hotspots(GeoPoint(lat=lat, lng=lng), radius_km, hours, threshold)


@router.get("/opportunity-zones", response_model=Result[OpportunityZones])
async def opportunity_zones(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=200),
    engine: GeoEngine = Depends(get_geo_engine),
):
    """Top 20 zones; summary counts cover every zone found."""
    return await engine.opportunity_zones(GeoPoint(lat=lat, lng=lng), radius_km)
