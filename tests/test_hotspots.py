"""
test_hotspots.py — Dual-window demand hotspots and new-listing supply
hotspots.

Cell A is the city centre, cell B a district ~9 km away; both sit inside
the default 10 km radius.
"""

import pytest

from geointel.core.cache import ResultCache
from geointel.models.hotspot import DemandMetrics
from geointel.services.hotspots import HotspotDetector, demand_score, growth_rate, relative_intensity

A = (53.9023, 27.5619)
B = (53.9450, 27.6880)


@pytest.fixture()
def detector(event_store, listing_store):
    return HotspotDetector(event_store, listing_store, ResultCache(ttl_seconds=300))


def _at(cell):
    return {"lat": cell[0], "lng": cell[1]}


class TestScoring:
    @pytest.mark.parametrize(
        "current,previous,expected",
        [(6, 0, 1.0), (3, 0, 0.0), (5, 0, 0.0), (10, 5, 1.0), (4, 8, -0.5), (0, 0, 0.0)],
    )
    def test_growth_rate(self, current, previous, expected):
        assert growth_rate(current, previous) == expected

    def test_relative_intensity(self):
        assert relative_intensity(5, 10) == 0.5
        assert relative_intensity(0, 0) == 0.0

    def test_demand_score_is_weighted_average(self):
        metrics = DemandMetrics(searches=2, empty_searches=1, views=2, favorites=1)
        # (2 + 2 + 1 + 3) / 6
        assert demand_score(metrics, 6) == pytest.approx(8 / 6)


class TestDemandHotspots:
    async def test_max_normalized_intensity(self, detector, event_store, make_event, center):
        event_store.events.extend(make_event("search", **_at(A)) for _ in range(8))
        event_store.events.extend(make_event("view", **_at(B)) for _ in range(4))

        result = await detector.demand_hotspots(center, radius_km=10, hours=24, threshold=0.3)

        top, other = result.data.hotspots
        assert top.intensity == 1.0
        assert top.event_count == 8
        assert other.intensity == 0.5
        assert all(0 <= h.intensity <= 1 for h in result.data.hotspots)

    async def test_ties_all_report_full_intensity(self, detector, event_store, make_event, center):
        event_store.events.extend(make_event(**_at(A)) for _ in range(3))
        event_store.events.extend(make_event(**_at(B)) for _ in range(3))
        result = await detector.demand_hotspots(center)
        assert [h.intensity for h in result.data.hotspots] == [1.0, 1.0]

    async def test_new_bucket_above_floor_counts_as_growing(self, detector, event_store, make_event, center):
        event_store.events.extend(make_event(**_at(A)) for _ in range(20))
        event_store.events.extend(make_event(**_at(B)) for _ in range(6))

        result = await detector.demand_hotspots(center, hours=24, threshold=0.9)

        by_cell = {h.event_count: h for h in result.data.hotspots}
        assert by_cell[6].growth_rate == 1.0
        assert by_cell[6].is_hotspot is True

    async def test_small_new_bucket_is_not_growing(self, detector, event_store, make_event, center):
        event_store.events.extend(make_event(**_at(A)) for _ in range(20))
        event_store.events.extend(make_event(**_at(B)) for _ in range(3))

        result = await detector.demand_hotspots(center, hours=24, threshold=0.9)

        assert [h.event_count for h in result.data.hotspots] == [20]

    async def test_growth_against_previous_window(self, detector, event_store, make_event, center):
        event_store.events.extend(make_event(**_at(A), hours_ago=1) for _ in range(4))
        event_store.events.extend(make_event(**_at(A), hours_ago=30) for _ in range(2))
        # Older than both windows.
        event_store.events.extend(make_event(**_at(A), hours_ago=60) for _ in range(9))

        result = await detector.demand_hotspots(center, hours=24)

        (hotspot,) = result.data.hotspots
        assert hotspot.event_count == 4
        assert hotspot.growth_rate == 1.0

    async def test_metrics_and_hints(self, detector, event_store, make_event, center):
        event_store.events.extend([
            make_event("search", query="мёд", category_id="honey"),
            make_event("empty_search", query="мёд", category_id="honey"),
            make_event("favorite", category_id="honey"),
            make_event("view", category_id="dairy"),
        ])

        result = await detector.demand_hotspots(center)

        (hotspot,) = result.data.hotspots
        assert hotspot.metrics == DemandMetrics(searches=1, empty_searches=1, views=1, favorites=1)
        assert hotspot.demand_score == pytest.approx((1 + 2 + 0.5 + 3) / 4)
        assert hotspot.category_hints == ["honey", "dairy"]
        assert hotspot.query_hints == ["мёд"]

    async def test_summary(self, detector, event_store, make_event, center):
        event_store.events.extend(make_event(**_at(A)) for _ in range(10))
        event_store.events.extend(make_event(**_at(B)) for _ in range(4))

        result = await detector.demand_hotspots(center, threshold=0.3)

        summary = result.data.summary
        assert summary.total_hotspots == 2
        assert summary.high_intensity == 1
        # Both cells are new and A has more than 5 events.
        assert summary.growing_areas == 1
        assert summary.average_intensity == pytest.approx(0.7)

    async def test_cached_per_threshold(self, detector, event_store, make_event, center):
        event_store.events.append(make_event(**_at(A)))
        await detector.demand_hotspots(center, threshold=0.3)
        await detector.demand_hotspots(center, threshold=0.3)
        await detector.demand_hotspots(center, threshold=0.2)
        # Two windows per computed result.
        assert event_store.calls == 4

    async def test_store_failure(self, listing_store, center):
        class BrokenStore:
            async def find_within(self, flt):
                raise RuntimeError("timeout")

        detector = HotspotDetector(BrokenStore(), listing_store, ResultCache(ttl_seconds=300))
        result = await detector.demand_hotspots(center)
        assert result.success is False
        assert result.data.hotspots == []


class TestSupplyHotspots:
    async def test_new_ratio_and_intensity(self, detector, listing_store, make_listing, center):
        listing_store.listings.extend(make_listing(**_at(A), hours_ago=2) for _ in range(4))
        listing_store.listings.extend(make_listing(**_at(A), hours_ago=24 * 10) for _ in range(4))
        listing_store.listings.extend(make_listing(**_at(B), hours_ago=2, price=30) for _ in range(2))

        result = await detector.supply_hotspots(center, hours=24, threshold=0.3)

        a, b = result.data.hotspots
        assert (a.new_count, a.total_count, a.new_ratio, a.intensity) == (4, 8, 0.5, 1.0)
        assert (b.new_count, b.total_count, b.new_ratio, b.intensity) == (2, 2, 1.0, 0.5)
        assert b.avg_price == 30.0

    async def test_high_new_ratio_marks_hotspot_below_threshold(
        self, detector, listing_store, make_listing, center
    ):
        listing_store.listings.extend(make_listing(**_at(A), hours_ago=2) for _ in range(10))
        listing_store.listings.append(make_listing(**_at(B), hours_ago=2))

        result = await detector.supply_hotspots(center, threshold=0.5)

        assert len(result.data.hotspots) == 2
        assert result.data.hotspots[1].intensity == pytest.approx(0.1)

    async def test_summary(self, detector, listing_store, make_listing, center):
        listing_store.listings.extend(make_listing(**_at(A), hours_ago=1) for _ in range(5))
        result = await detector.supply_hotspots(center)
        summary = result.data.summary
        assert (summary.total_hotspots, summary.total_new_listings, summary.high_activity_areas) == (1, 5, 1)
