"""
geohash.py — Geohash helpers used for spatial bucketing.

Cell sizes at the precisions this service uses:
    4  ~39 km      5  ~4.9 km      6  ~1.2 km      7  ~153 m

Stored documents carry a precision-9 hash so every bucket prefix can be
derived by truncation.
"""

import math

import pygeohash as pgh

STORED_PRECISION = 9
DEFAULT_BUCKET_PRECISION = 6

# Rows without a usable geohash are grouped here instead of being dropped.
UNKNOWN_BUCKET = "unknown"

# Same sphere MongoDB's $centerSphere expects (radius in radians = km / R).
EARTH_RADIUS_KM = 6378.1


def encode(lat: float, lng: float, precision: int = STORED_PRECISION) -> str:
    """Encode coordinates to a geohash of exactly `precision` characters."""
    return pgh.encode(lat, lng, precision=precision)


def truncate(geohash: str, precision: int) -> str:
    """Coarsen a geohash to `precision` characters (prefix substring)."""
    return geohash[:precision]


def bucket_key(geohash: str | None, precision: int) -> str:
    if not geohash:
        return UNKNOWN_BUCKET
    return truncate(geohash, precision)


def precision_for_zoom(zoom: int) -> int:
    """Map a web-map zoom level to a cluster precision."""
    if zoom >= 15:
        return 7
    if zoom >= 12:
        return 6
    if zoom >= 9:
        return 5
    return 4


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in km on the EARTH_RADIUS_KM sphere."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
