"""
recommendations.py — Role-aware hints built from the demand and supply
engines.

  seller / farmer   what people nearby are searching for, and which
                    searches found nothing
  buyer             listings that appeared nearby in the last two hours
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from geointel.models.geo import GeoPoint, Result
from geointel.models.hotspot import Recommendation, Recommendations
from geointel.services.demand import DemandEngine
from geointel.services.supply import SupplyEngine

logger = logging.getLogger(__name__)

SELLER_ROLES = ("seller", "farmer")

_TREND_RADIUS_KM   = 5.0
_TREND_LIMIT       = 5
_UNMET_RADIUS_KM   = 3.0
_UNMET_IN_MESSAGE  = 3
_UNMET_IN_DETAILS  = 5
_NEARBY_RADIUS_KM  = 2.0
_NEARBY_HOURS      = 2
_NEARBY_LIMIT      = 5


class RecommendationComposer:
    def __init__(self, demand: DemandEngine, supply: SupplyEngine):
        self.demand = demand
        self.supply = supply

    async def recommend(
        self,
        actor_id: Optional[int | str],
        center: GeoPoint,
        role: str = "buyer",
    ) -> Result[Recommendations]:
        try:
            if role in SELLER_ROLES:
                hints = await self._seller_hints(center)
            elif role == "buyer":
                hints = await self._buyer_hints(center)
            else:
                hints = []
        except Exception as exc:
            logger.warning("Recommendations failed for actor %s: %s", actor_id, exc)
            return Result[Recommendations](success=False, error=str(exc), data=Recommendations())

        return Result[Recommendations](data=Recommendations(recommendations=hints))

    async def _seller_hints(self, center: GeoPoint) -> list[Recommendation]:
        trending, unmet = await asyncio.gather(
            self.demand.trending(center, radius_km=_TREND_RADIUS_KM, hours=24, limit=_TREND_LIMIT),
            self.demand.unmet_queries(center, radius_km=_UNMET_RADIUS_KM, hours=24),
        )

        hints = []
        if trending.success and trending.data.trends:
            top = trending.data.trends[0]
            hints.append(Recommendation(
                type="demand_opportunity",
                priority="high",
                message=f"People nearby are searching for: {top.query}",
                details={"query": top.query, "count": top.count},
                action="create_ad",
            ))
        if unmet:
            hints.append(Recommendation(
                type="unmet_demand",
                priority="medium",
                message=f"No listings nearby for: {', '.join(unmet[:_UNMET_IN_MESSAGE])}",
                details={"queries": unmet[:_UNMET_IN_DETAILS]},
                action="create_ad",
            ))
        return hints

    async def _buyer_hints(self, center: GeoPoint) -> list[Recommendation]:
        fresh = await self.supply.new_nearby(
            center, radius_km=_NEARBY_RADIUS_KM, hours=_NEARBY_HOURS, limit=_NEARBY_LIMIT
        )
        if not fresh:
            return []
        return [Recommendation(
            type="new_nearby",
            priority="medium",
            message=f"{len(fresh)} new listings nearby",
            details={
                "listings": [{"id": item.id, "title": item.title, "price": item.price} for item in fresh]
            },
            action="view_feed",
        )]
