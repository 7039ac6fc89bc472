"""
cache.py — Bounded TTL cache for computed geo results.

Entries expire after a fixed TTL (checked lazily on read) and the cache
holds at most `max_entries`. When the cap is exceeded the oldest *inserted*
entry is evicted; reads never refresh an entry's position, so a hot but old
entry goes exactly like a cold one.

Keys quantize the request center to a ~1.1 km grid (2 decimal places) so
nearby map requests share one entry.

Instances are owned by the GeoEngine and passed into each engine, which
lets tests pick the TTL, the capacity and the clock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

KEY_COORD_DECIMALS = 2


@dataclass
class CacheEntry:
    value: Any
    inserted_at: float


class ResultCache:
    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        # dicts keep insertion order; the first key is always the oldest insert
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.inserted_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        # Re-setting a key counts as a fresh insertion.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())
        if len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("Result cache full, evicted %s", oldest)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


def _quantize(value: float) -> float:
    # + 0.0 folds -0.0 into 0.0 so both sides of the equator share a key
    return round(value, KEY_COORD_DECIMALS) + 0.0


def make_key(kind: str, lat: Optional[float], lng: Optional[float], **params: Any) -> str:
    """
    Build a cache key from a quantized center plus every other parameter.

        make_key("demand", 53.9012, 27.5598, radius_km=10, hours=24)
        → "demand:53.9:27.56:hours=24:radius_km=10"
    """
    lat_part = "-" if lat is None else f"{_quantize(lat):g}"
    lng_part = "-" if lng is None else f"{_quantize(lng):g}"
    rest = ":".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{kind}:{lat_part}:{lng_part}:{rest}"
