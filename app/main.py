"""
FastAPI Application - Market Aggregator API

Read-only HTTP access to the aggregator's canonical assets, plus an ingress
for exchange rate updates.

Endpoints:
    - GET /                    API information
    - GET /health              Liveness and cache status
    - GET /sources             Registered sources
    - GET /assets              Canonical assets (cached for CACHE_TTL seconds)
    - GET /assets/{asset_id}   One canonical asset by slug
    - GET /report              Fresh aggregation cycle with its warnings
    - GET /exchange-rates      Current rate table
    - PUT /exchange-rates      Merge rates (foreign units per USD)

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.aggregator import Aggregator, create_aggregator
from core.config import settings, validate_configuration
from core.logging import logger, set_log_level
from core.schemas import AggregationReport, CanonicalAsset
from core.utils.time import current_utc_datetime
from storage.cache import AssetCache


REPORT_CACHE_KEY = "report"


class AssetListResponse(BaseModel):
    """Payload of GET /assets."""

    data: List[CanonicalAsset]
    cached: bool
    degraded: bool
    timestamp: datetime


def create_app(
    aggregator: Optional[Aggregator] = None,
    cache: Optional[AssetCache] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        aggregator: Aggregator to serve (defaults to create_aggregator())
        cache: Result cache (defaults to AssetCache(settings.cache_ttl))

    Returns:
        FastAPI: Configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=== Application Starting ===")
        validate_configuration()
        set_log_level(settings.log_level)
        logger.info("=== Started Successfully ===")
        yield
        logger.info("=== Shutdown Complete ===")

    app = FastAPI(
        title="Market Aggregator API",
        description=(
            "Canonical multi-source asset prices.\n\n"
            "Records from every registered source are fuzzy-matched by name, "
            "converted to USD and averaged into one asset per match group."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    app.state.aggregator = aggregator if aggregator is not None else create_aggregator()
    app.state.cache = cache if cache is not None else AssetCache(ttl=settings.cache_ttl)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    aggregator: Aggregator = app.state.aggregator
    cache: AssetCache = app.state.cache

    async def load_report() -> AggregationReport:
        return await aggregator.aggregate_with_report()

    # ============================================
    # System Endpoints
    # ============================================

    @app.get("/", tags=["System"])
    async def root():
        """API information and registered sources."""
        return {
            "name": "Market Aggregator API",
            "version": "1.0.0",
            "status": "operational",
            "docs": "/docs",
            "sources": [s.name for s in aggregator.list_sources()]
        }

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness plus the state of the last cached cycle."""
        entry = cache.get_entry(REPORT_CACHE_KEY)
        last = entry.value if entry is not None else None
        return {
            "status": "degraded" if last is not None and last.degraded else "healthy",
            "sources": len(aggregator),
            "cached": entry is not None,
            "last_cycle": last.finished_at if last is not None else None,
            "failed_sources": [f.source for f in last.failures] if last is not None else []
        }

    @app.get("/sources", tags=["System"])
    async def list_sources():
        """List registered sources with category and advisory rate limit."""
        return {"sources": [s.describe() for s in aggregator.list_sources()]}

    # ============================================
    # Asset Endpoints
    # ============================================

    @app.get("/assets", response_model=AssetListResponse, tags=["Assets"])
    async def get_assets():
        """Canonical assets from the cached cycle, running a new cycle on a miss."""
        cached = cache.get_entry(REPORT_CACHE_KEY) is not None
        report = await cache.get_or_load(REPORT_CACHE_KEY, load_report)
        return AssetListResponse(
            data=report.assets,
            cached=cached,
            degraded=report.degraded,
            timestamp=current_utc_datetime()
        )

    @app.get("/assets/{asset_id}", response_model=CanonicalAsset, tags=["Assets"])
    async def get_asset(asset_id: str):
        """One canonical asset by slug id."""
        report = await cache.get_or_load(REPORT_CACHE_KEY, load_report)
        for asset in report.assets:
            if asset.id == asset_id:
                return asset
        raise HTTPException(status_code=404, detail=f"Asset '{asset_id}' not found")

    @app.get("/report", response_model=AggregationReport, tags=["Assets"])
    async def get_report():
        """Run a fresh cycle, refresh the cache and return the full report."""
        generation = cache.generation
        report = await load_report()
        cache.set(REPORT_CACHE_KEY, report, generation=generation)
        return report

    # ============================================
    # Exchange Rates
    # ============================================

    @app.get("/exchange-rates", tags=["Exchange Rates"])
    async def get_exchange_rates():
        """Current rate table (foreign currency units per 1 USD)."""
        return {"base": "USD", "rates": aggregator.exchange_rates()}

    @app.put("/exchange-rates", tags=["Exchange Rates"])
    async def put_exchange_rates(rates: Dict[str, float] = Body(..., examples=[{"EUR": 0.92}])):
        """
        Merge rates into the table and drop cached results.

        Returns 422 if any rate is not a finite number > 0; nothing is applied
        in that case.
        """
        try:
            aggregator.update_exchange_rates(rates)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

        cache.invalidate(REPORT_CACHE_KEY)
        return {"base": "USD", "rates": aggregator.exchange_rates()}

    # ============================================
    # Error Handlers
    # ============================================

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc):
        """Handle 500 errors."""
        logger.error(f"Internal error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app = create_app()
