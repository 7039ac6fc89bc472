"""
GeoIntel API — Application entry point.

Run locally:
  uvicorn geointel.main:app --reload

Startup order: MongoDB (optional) → geo engine → routes. Without MongoDB, or
with STORE_BACKEND=memory, every route still answers from in-memory stores.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from geointel.core.config import settings
from geointel.core.database import close_mongo_connection, connect_to_mongo, get_db
from geointel.core.rate_limit import limiter
from geointel.routes.geo import router as geo_router
from geointel.routes.health import API_VERSION
from geointel.routes.health import router as health_router
from geointel.routes.hotspots import router as hotspots_router
from geointel.services.geo_engine import create_geo_engine

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

_DOCS_ENABLED = settings.environment != "production"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting GeoIntel API %s (env: %s)", API_VERSION, settings.environment)
    await connect_to_mongo()
    app.state.geo_engine = create_geo_engine(get_db())
    logger.info("Geo engine ready (stores: %s)", app.state.geo_engine.backend)
    yield
    app.state.geo_engine = None
    await close_mongo_connection()
    logger.info("GeoIntel API stopped")


app = FastAPI(
    title="GeoIntel API",
    description=(
        "Geo-aware demand and supply intelligence for a local marketplace: "
        "heatmaps, trends, hotspots, opportunity zones and recommendations."
    ),
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if _DOCS_ENABLED else None,
    redoc_url="/redoc" if _DOCS_ENABLED else None,
)

# Only POST /api/v1/geo/events is limited; reads are served from the result caches.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(geo_router)
app.include_router(hotspots_router)


@app.get("/", tags=["root"])
async def root():
    return {
        "name": "GeoIntel API",
        "version": API_VERSION,
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs" if _DOCS_ENABLED else None,
    }
