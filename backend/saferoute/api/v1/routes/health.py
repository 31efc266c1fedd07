"""Health check endpoints."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from saferoute.api.deps import get_grid_registry
from saferoute.db.session import get_db
from saferoute.services.safety_index import GridRegistry

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(
    response: Response,
    db: AsyncSession = Depends(get_db),
    registry: GridRegistry = Depends(get_grid_registry),
):
    """Readiness check for the report store and safety grids.

    Returns HTTP 503 if the database is unavailable. Missing or empty grids
    do not fail readiness (routes are still served, marked degraded) but
    are reported.
    """
    checks = {
        "database": False,
        "grids": False,
    }
    errors = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        errors["database"] = str(e)

    snapshot = registry.current()
    degraded = snapshot.degraded_reason()
    checks["grids"] = degraded is None
    if degraded:
        errors["grids"] = degraded

    if not checks["database"]:
        response.status_code = 503

    result = {
        "status": "ready" if checks["database"] else "not_ready",
        "checks": checks,
        "grid_version": snapshot.version,
    }

    if errors:
        result["errors"] = errors

    return result
