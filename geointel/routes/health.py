"""
GET /health — liveness, MongoDB reachability, and what the geo engine is
actually serving from.

"database": "disconnected" with "store_backend": "memory" means the API is up
but answering from empty in-process stores.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from geointel.core import database as db_module
from geointel.core.config import settings
from geointel.services.geo_engine import GeoEngine, get_geo_engine

logger = logging.getLogger(__name__)
router = APIRouter()

API_VERSION = "0.1.0"


class CacheSizes(BaseModel):
    heatmap: int = 0
    hotspot: int = 0


class HealthResponse(BaseModel):
    status:        str          # "ok" whenever the process answers
    version:       str
    database:      str          # connected | disconnected
    store_backend: str          # mongo | memory
    environment:   str
    cached:        CacheSizes


async def _ping() -> str:
    client = db_module.db_client.client
    if client is None:
        return "disconnected"
    try:
        await client.admin.command("ping")
    except Exception as exc:
        logger.warning("DB ping failed: %s", exc)
        return "disconnected"
    return "connected"


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check(engine: GeoEngine = Depends(get_geo_engine)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        database=await _ping(),
        store_backend=engine.backend,
        environment=settings.environment,
        cached=CacheSizes(heatmap=len(engine.heatmap_cache), hotspot=len(engine.hotspot_cache)),
    )
