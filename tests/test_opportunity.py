"""
test_opportunity.py — Matching demand and supply hotspots into
opportunity zones.

Most tests stub the detector so zone rules can be checked against exact
intensities; one runs the real detector on in-memory stores.
"""

import pytest

from geointel.core.cache import ResultCache
from geointel.models.geo import Result
from geointel.models.hotspot import DemandHotspot, DemandHotspots, SupplyHotspot, SupplyHotspots
from geointel.services.hotspots import HotspotDetector
from geointel.services.opportunity import OpportunityMatcher


def demand_spot(geohash, intensity, **extra):
    return DemandHotspot(
        lat=53.9, lng=27.56, geohash=geohash, intensity=intensity, demand_score=1.0,
        growth_rate=0.0, is_hotspot=True, event_count=10, **extra,
    )


def supply_spot(geohash, intensity):
    return SupplyHotspot(
        lat=53.9, lng=27.56, geohash=geohash, intensity=intensity, new_count=5,
        total_count=10, new_ratio=0.5, is_hotspot=True,
    )


class StubDetector:
    def __init__(self, demand=(), supply=(), demand_ok=True, supply_ok=True):
        self.demand = list(demand)
        self.supply = list(supply)
        self.demand_ok = demand_ok
        self.supply_ok = supply_ok
        self.calls = []

    async def demand_hotspots(self, center, radius_km=10.0, hours=24, threshold=0.3):
        self.calls.append(("demand", hours, threshold))
        if not self.demand_ok:
            return Result[DemandHotspots](success=False, error="demand down", data=DemandHotspots())
        return Result[DemandHotspots](data=DemandHotspots(hotspots=self.demand))

    async def supply_hotspots(self, center, radius_km=10.0, hours=24, threshold=0.3):
        self.calls.append(("supply", hours, threshold))
        if not self.supply_ok:
            return Result[SupplyHotspots](success=False, error="supply down", data=SupplyHotspots())
        return Result[SupplyHotspots](data=SupplyHotspots(hotspots=self.supply))


class TestZoneRules:
    async def test_demand_without_supply_is_one_opportunity(self, center):
        matcher = OpportunityMatcher(StubDetector(demand=[demand_spot("u9edk3", 0.9)]))

        result = await matcher.zones(center)

        (zone,) = result.data.zones
        assert zone.type == "high_demand_low_supply"
        assert zone.opportunity_score == pytest.approx(0.9)
        assert zone.supply_intensity == 0.0
        assert result.data.summary.high_opportunity == 1

    async def test_uses_48h_window_and_lower_threshold(self, center):
        detector = StubDetector()
        await OpportunityMatcher(detector).zones(center)
        assert sorted(detector.calls) == [("demand", 48, 0.2), ("supply", 48, 0.2)]

    async def test_weak_supply_discounts_score(self, center):
        detector = StubDetector(
            demand=[demand_spot("u9edk3", 0.8, query_hints=["мёд"])],
            supply=[supply_spot("u9edk3", 0.25)],
        )
        (zone,) = (await OpportunityMatcher(detector).zones(center)).data.zones
        assert zone.opportunity_score == pytest.approx(0.8 * 0.75)
        assert zone.query_hints == ["мёд"]

    async def test_strong_supply_cancels_opportunity(self, center):
        detector = StubDetector(
            demand=[demand_spot("u9edk3", 0.9)],
            supply=[supply_spot("u9edk3", 0.6)],
        )
        result = await OpportunityMatcher(detector).zones(center)
        assert result.data.zones == []

    async def test_weak_demand_is_ignored(self, center):
        detector = StubDetector(demand=[demand_spot("u9edk3", 0.4)])
        assert (await OpportunityMatcher(detector).zones(center)).data.zones == []

    async def test_supply_without_demand_is_saturated(self, center):
        detector = StubDetector(supply=[supply_spot("u9edk7", 0.8), supply_spot("u9edk8", 0.5)])

        result = await OpportunityMatcher(detector).zones(center)

        (zone,) = result.data.zones
        assert zone.type == "high_supply_low_demand"
        assert zone.opportunity_score == pytest.approx(0.24)
        assert zone.demand_intensity == 0.0
        assert result.data.summary.saturated_areas == 1

    async def test_sorted_and_capped_with_full_summary(self, center):
        demand = [demand_spot(f"d{i:04d}", 0.5 + i * 0.01) for i in range(25)]
        supply = [supply_spot(f"s{i:04d}", 0.9) for i in range(5)]
        result = await OpportunityMatcher(StubDetector(demand, supply)).zones(center)

        zones = result.data.zones
        assert len(zones) == 20
        scores = [z.opportunity_score for z in zones]
        assert scores == sorted(scores, reverse=True)
        assert result.data.summary.high_opportunity == 25
        assert result.data.summary.saturated_areas == 5


class TestFailures:
    @pytest.mark.parametrize("demand_ok,supply_ok", [(False, True), (True, False)])
    async def test_either_side_failing_fails_the_call(self, center, demand_ok, supply_ok):
        detector = StubDetector(demand=[demand_spot("u9edk3", 0.9)], demand_ok=demand_ok, supply_ok=supply_ok)
        result = await OpportunityMatcher(detector).zones(center)
        assert result.success is False
        assert result.data.zones == []


class TestWithRealDetector:
    async def test_busy_cell_without_listings(self, event_store, listing_store, make_event, center):
        event_store.events.extend(make_event("empty_search", query="голубика") for _ in range(6))
        detector = HotspotDetector(event_store, listing_store, ResultCache(ttl_seconds=300))

        result = await OpportunityMatcher(detector).zones(center)

        (zone,) = result.data.zones
        assert zone.type == "high_demand_low_supply"
        assert zone.opportunity_score == 1.0
        assert zone.query_hints == ["голубика"]
