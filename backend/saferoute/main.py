"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from saferoute.config import settings
from saferoute.api.v1.router import api_router
from saferoute.db.session import async_session_maker, create_tables, engine
from saferoute.middleware import RequestLoggingMiddleware, setup_logging
from saferoute.core.exceptions import register_exception_handlers
from saferoute.schemas.report import CommunityReport
from saferoute.services import report_store
from saferoute.services.directions import GoogleDirectionsProvider
from saferoute.services.grid_store import initialize_grids
from saferoute.services.places import PlacesClient
from saferoute.services.report_placement import PlacementRegistry
from saferoute.services.route_service import RouteService
from saferoute.services.safety_index import GridRegistry


# Setup logging early
setup_logging()
logger = logging.getLogger(__name__)


def validate_startup_settings() -> None:
    """
    Validate configuration at startup.
    Exits with error in production if requirements are not met.
    """
    errors = settings.validate_production_settings()

    if errors:
        logger.error("=" * 60)
        logger.error("CONFIGURATION ERRORS")
        logger.error("=" * 60)
        for error in errors:
            logger.error(f"  - {error}")
        logger.error("=" * 60)

        if settings.is_production():
            logger.critical("Refusing to start in production with invalid configuration!")
            sys.exit(1)

    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Debug Mode: {settings.debug}")
    logger.info(
        f"Scoring: crime_weight={settings.crime_weight} lighting_weight={settings.lighting_weight} "
        f"balanced_penalty={settings.balanced_distance_penalty}"
    )
    if not settings.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY is not set; route and place lookups will fail")


async def load_reports() -> List[CommunityReport]:
    """Report source for route scoring; validity is applied by the scorer."""
    async with async_session_maker() as session:
        return await report_store.list_reports(session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    # Startup
    logger.info(f"Starting {settings.app_name}...")

    validate_startup_settings()

    # Create database tables if they don't exist
    try:
        await create_tables()
        logger.info("Database connection established")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        if settings.is_production():
            sys.exit(1)

    registry = GridRegistry()
    snapshot = initialize_grids(registry, settings)
    if snapshot.degraded_reason():
        logger.warning(f"Route scoring degraded: {snapshot.degraded_reason()}")

    app.state.grid_registry = registry
    app.state.route_service = RouteService(
        registry,
        GoogleDirectionsProvider(),
        report_source=load_reports,
        settings=settings,
    )
    app.state.places_client = PlacesClient()
    app.state.placements = PlacementRegistry()

    logger.info(f"{settings.app_name} started successfully (grids {snapshot.version})")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.route_service.close()
    await app.state.places_client.close()
    await engine.dispose()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
Safety-aware pedestrian routing API.

Walking alternatives from the directions provider are scored against crime
density and street lighting grids plus community hazard reports, and the
shortest, safest and balanced routes are picked.

## Error Responses

All errors follow a consistent format:
```json
{
  "error": {
    "code": "ERROR_CODE",
    "message": "Human-readable message",
    "request_id": "abc123"
  }
}
```
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production() else None,
    redoc_url="/redoc" if not settings.is_production() else None,
    openapi_url="/openapi.json" if not settings.is_production() else None,
)

# ============================================================================
# Register Exception Handlers (before middleware)
# ============================================================================
register_exception_handlers(app)

# ============================================================================
# Middleware Stack (order matters - first added = last executed)
# ============================================================================

# 1. Request logging (outermost - captures everything)
app.add_middleware(RequestLoggingMiddleware)

# 2. CORS (innermost for preflight handling)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Session-ID", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
    max_age=600,  # Cache preflight for 10 minutes
)


# ============================================================================
# API Routes
# ============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint with API information.
    """
    response = {
        "name": settings.app_name,
        "version": "1.0.0",
        "health": "/health",
    }

    # Only include docs links in non-production
    if not settings.is_production():
        response["docs"] = "/docs"
        response["redoc"] = "/redoc"

    return response
