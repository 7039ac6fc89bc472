"""
test_supply.py — Supply engine: heatmap, clusters, geo feed (including the
non-spatial fallback), trending supply and new nearby listings.
"""

import pytest

from geointel.core.cache import ResultCache
from geointel.services.supply import SupplyEngine, supply_intensity
from geointel.stores.base import ListingFilter
from geointel.stores.memory import InMemoryListingStore


@pytest.fixture()
def supply(listing_store):
    return SupplyEngine(listing_store, ResultCache(ttl_seconds=30))


class GeoNearDownStore(InMemoryListingStore):
    """Listing store whose spatial query always fails (e.g. missing 2dsphere index)."""

    async def geo_near(self, flt, sort="distance", skip=0, limit=20):
        raise RuntimeError("$geoNear requires a 2dsphere index")


class TestSupplyHeatmap:
    def test_intensity_scale(self):
        assert supply_intensity(10) == 0.5
        assert supply_intensity(40) == 1.0

    async def test_cell_stats(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend([
            make_listing(category_id="berries", price=10),
            make_listing(category_id="berries", price=20),
            make_listing(category_id="honey", price=None),
            make_listing(moderation_status="pending"),
        ])

        result = await supply.heatmap(center, radius_km=5)

        (point,) = result.data.points
        assert point.count == 3
        assert point.intensity == pytest.approx(0.15)
        assert point.avg_price == 15.0
        assert point.dominant_category == "berries"
        assert result.data.total_listings == 3

    async def test_category_filter(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend([make_listing(category_id="berries"), make_listing(category_id="meat")])
        result = await supply.heatmap(center, category_id="meat")
        assert result.data.total_listings == 1


class TestClusters:
    async def test_precision_follows_zoom(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend([
            make_listing(lat=53.9023, lng=27.5619, price=5),
            make_listing(lat=53.9024, lng=27.5620, price=9),
            make_listing(lat=53.9450, lng=27.6880, category_id="honey"),
        ])

        result = await supply.clusters(center, radius_km=15, zoom=13)

        assert result.data.precision == 6
        first, second = result.data.clusters
        assert first.count == 2
        assert first.is_cluster is True
        assert (first.min_price, first.max_price, first.avg_price) == (5, 9, 7.0)
        assert first.sample.id == listing_store.listings[0].id
        assert second.is_cluster is False
        assert second.categories == ["honey"]

    async def test_low_zoom_merges_cells(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend([
            make_listing(lat=53.9023, lng=27.5619),
            make_listing(lat=53.9060, lng=27.5700),
        ])
        result = await supply.clusters(center, zoom=5)
        assert result.data.precision == 4
        assert len(result.data.clusters) == 1


class TestGeoFeed:
    async def test_nearest_first_with_distances(self, supply, listing_store, make_listing, center):
        far = make_listing(lat=53.9300, lng=27.5619)
        near = make_listing(lat=53.9033, lng=27.5619)
        listing_store.listings.extend([far, near])

        result = await supply.feed(ListingFilter(center=center, radius_km=10))

        assert [item.id for item in result.data.items] == [near.id, far.id]
        first = result.data.items[0]
        assert 100 < first.distance_m < 120
        assert first.distance_km == 0.1

    async def test_sort_applies_before_paging(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend([
            make_listing(lat=53.9030, price=30),
            make_listing(lat=53.9100, price=5),
            make_listing(lat=53.9200, price=10),
        ])

        result = await supply.feed(ListingFilter(center=center, radius_km=10), sort="price_asc", limit=2)

        assert [item.price for item in result.data.items] == [5, 10]
        assert result.data.has_more is True

    async def test_skip(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend(make_listing(lat=53.9030 + i * 0.001) for i in range(3))
        result = await supply.feed(ListingFilter(center=center, radius_km=10), limit=2, skip=2)
        assert result.data.count == 1
        assert result.data.has_more is False

    async def test_without_center_distance_degrades_to_newest(self, supply, listing_store, make_listing):
        old = make_listing(hours_ago=10)
        new = make_listing(hours_ago=1)
        listing_store.listings.extend([old, new])

        result = await supply.feed(ListingFilter(), sort="distance")

        assert [item.id for item in result.data.items] == [new.id, old.id]
        assert result.data.items[0].distance_m is None

    async def test_spatial_failure_falls_back_to_recency_page(self, make_listing, center):
        store = GeoNearDownStore([
            make_listing(hours_ago=5, category_id="berries"),
            make_listing(hours_ago=1, category_id="berries"),
            make_listing(hours_ago=2, category_id="meat"),
        ])
        engine = SupplyEngine(store, ResultCache(ttl_seconds=30))

        result = await engine.feed(
            ListingFilter(center=center, radius_km=5, category_id="berries"), sort="price_desc"
        )

        assert result.success is True
        items = result.data.items
        assert len(items) == 2
        assert items[0].created_at > items[1].created_at
        assert all(item.distance_m is None for item in items)

    async def test_price_range(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend([make_listing(price=p) for p in (3, 12, 40)])
        result = await supply.feed(ListingFilter(center=center, price_min=5, price_max=20))
        assert [item.price for item in result.data.items] == [12]


class TestTrendingSupply:
    async def test_groups_new_listings_by_category(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend([
            make_listing(category_id="berries", price=10),
            make_listing(category_id="berries", price=20),
            make_listing(category_id="berries", price=30),
            make_listing(category_id="berries", price=40),
            make_listing(category_id="honey", price=15),
            make_listing(category_id="honey", hours_ago=48),
        ])

        result = await supply.trending_supply(center, hours=24)

        berries, honey = result.data.trends
        assert (berries.category_id, berries.new_listings, berries.avg_price) == ("berries", 4, 25.0)
        assert len(berries.sample_listings) == 3
        assert (honey.category_id, honey.new_listings) == ("honey", 1)

    async def test_without_center(self, supply, listing_store, make_listing):
        listing_store.listings.append(make_listing(lat=40.7, lng=-74.0))
        result = await supply.trending_supply()
        assert result.data.trends[0].new_listings == 1


class TestNewNearby:
    async def test_window_radius_and_limit(self, supply, listing_store, make_listing, center):
        listing_store.listings.extend(make_listing(hours_ago=0.1 * i) for i in range(1, 8))
        listing_store.listings.append(make_listing(hours_ago=3))
        listing_store.listings.append(make_listing(lat=53.99, hours_ago=0.5))

        fresh = await supply.new_nearby(center, radius_km=2, hours=2, limit=5)

        assert len(fresh) == 5
        assert fresh[0].created_at >= fresh[-1].created_at
