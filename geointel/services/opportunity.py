"""
opportunity.py — Opportunity zones: where demand and supply disagree.

Both hotspot detectors run concurrently over a 48 h window with a lowered
threshold, then their buckets are matched by geohash:

  high_demand_low_supply   demand > 0.4 and supply missing or < 0.3
                           score = demand × (1 − supply)
  high_supply_low_demand   supply > 0.5 and no demand hotspot in the cell
                           score = supply × 0.3
"""

from __future__ import annotations

import asyncio
import logging

from geointel.models.geo import GeoPoint, Result
from geointel.models.hotspot import OpportunitySummary, OpportunityZone, OpportunityZones
from geointel.services.hotspots import HotspotDetector

logger = logging.getLogger(__name__)

_WINDOW_HOURS      = 48
_THRESHOLD         = 0.2
_MIN_DEMAND        = 0.4
_MAX_SUPPLY        = 0.3
_SATURATED_SUPPLY  = 0.5
_SATURATED_WEIGHT  = 0.3
_ZONE_LIMIT        = 20

SELL_HERE   = "Good place to sell: strong demand and few competing listings"
PRICE_LOWER = "Many listings but little demand. Consider lowering the price."


class OpportunityMatcher:
    def __init__(self, detector: HotspotDetector):
        self.detector = detector

    async def zones(self, center: GeoPoint, radius_km: float = 10.0) -> Result[OpportunityZones]:
        try:
            demand, supply = await asyncio.gather(
                self.detector.demand_hotspots(center, radius_km, _WINDOW_HOURS, _THRESHOLD),
                self.detector.supply_hotspots(center, radius_km, _WINDOW_HOURS, _THRESHOLD),
            )
            if not demand.success or not supply.success:
                return Result[OpportunityZones](
                    success=False,
                    error=demand.error or supply.error or "Failed to fetch hotspot data",
                    data=OpportunityZones(),
                )

            demand_by_cell = {h.geohash: h for h in demand.data.hotspots}
            supply_by_cell = {h.geohash: h for h in supply.data.hotspots}

            zones = []
            for geohash, d in demand_by_cell.items():
                s = supply_by_cell.get(geohash)
                supply_intensity = s.intensity if s else 0.0
                if d.intensity > _MIN_DEMAND and supply_intensity < _MAX_SUPPLY:
                    zones.append(OpportunityZone(
                        lat=d.lat,
                        lng=d.lng,
                        geohash=geohash,
                        type="high_demand_low_supply",
                        opportunity_score=d.intensity * (1 - supply_intensity),
                        demand_intensity=d.intensity,
                        supply_intensity=supply_intensity,
                        category_hints=d.category_hints,
                        query_hints=d.query_hints,
                        recommendation=SELL_HERE,
                    ))

            for geohash, s in supply_by_cell.items():
                if geohash not in demand_by_cell and s.intensity > _SATURATED_SUPPLY:
                    zones.append(OpportunityZone(
                        lat=s.lat,
                        lng=s.lng,
                        geohash=geohash,
                        type="high_supply_low_demand",
                        opportunity_score=s.intensity * _SATURATED_WEIGHT,
                        demand_intensity=0.0,
                        supply_intensity=s.intensity,
                        category_hints=s.category_hints,
                        recommendation=PRICE_LOWER,
                    ))
        except Exception as exc:
            logger.warning("Opportunity zone matching failed: %s", exc)
            return Result[OpportunityZones](success=False, error=str(exc), data=OpportunityZones())

        zones.sort(key=lambda z: z.opportunity_score, reverse=True)
        summary = OpportunitySummary(
            high_opportunity=sum(1 for z in zones if z.type == "high_demand_low_supply"),
            saturated_areas=sum(1 for z in zones if z.type == "high_supply_low_demand"),
        )
        return Result[OpportunityZones](
            data=OpportunityZones(zones=zones[:_ZONE_LIMIT], summary=summary)
        )
