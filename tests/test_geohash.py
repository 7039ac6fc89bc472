"""
test_geohash.py — Geohash encoding, prefix bucketing and zoom mapping.
"""

import pytest

from geointel.core.geohash import (
    DEFAULT_BUCKET_PRECISION,
    UNKNOWN_BUCKET,
    bucket_key,
    encode,
    haversine_km,
    precision_for_zoom,
    truncate,
)


class TestEncode:
    def test_known_reference_point(self):
        assert encode(57.64911, 10.40744, 11) == "u4pruydqqvj"

    def test_is_deterministic(self):
        assert encode(53.9023, 27.5619) == encode(53.9023, 27.5619)

    @pytest.mark.parametrize("precision", [4, 5, 6, 7, 9])
    def test_length_matches_precision(self, precision):
        assert len(encode(53.9023, 27.5619, precision)) == precision

    @pytest.mark.parametrize("lat,lng", [(53.9023, 27.5619), (-33.9, 151.2), (0.0, 0.0), (40.7, -74.0)])
    def test_truncating_a_finer_hash_equals_coarser_encoding(self, lat, lng):
        assert truncate(encode(lat, lng, 7), 4) == encode(lat, lng, 4)

    def test_default_precision_is_storage_precision(self):
        assert len(encode(53.9, 27.56)) == 9


class TestBucketKey:
    def test_truncates_to_precision(self):
        assert bucket_key("u9edk3y2m", DEFAULT_BUCKET_PRECISION) == "u9edk3"

    @pytest.mark.parametrize("missing", [None, ""])
    def test_missing_hash_goes_to_sentinel(self, missing):
        assert bucket_key(missing, 6) == UNKNOWN_BUCKET


class TestZoomPrecision:
    @pytest.mark.parametrize(
        "zoom,precision",
        [(18, 7), (15, 7), (14, 6), (12, 6), (11, 5), (9, 5), (8, 4), (3, 4)],
    )
    def test_thresholds(self, zoom, precision):
        assert precision_for_zoom(zoom) == precision


class TestHaversine:
    def test_zero_distance(self):
        assert haversine_km(53.9, 27.56, 53.9, 27.56) == 0

    def test_one_degree_of_latitude_is_about_111_km(self):
        assert 110 < haversine_km(53.0, 27.56, 54.0, 27.56) < 112
