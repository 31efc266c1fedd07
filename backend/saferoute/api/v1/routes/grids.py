"""Safety grid endpoints."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Response

from saferoute.api.deps import get_grid_registry, get_route_service
from saferoute.config import settings
from saferoute.core.exceptions import ResourceNotFoundException
from saferoute.schemas.grid import GridKind
from saferoute.services.grid_store import refresh_grids
from saferoute.services.route_service import RouteService
from saferoute.services.safety_index import GridRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status")
async def grid_status(registry: GridRegistry = Depends(get_grid_registry)) -> dict:
    """Version, cell counts and warnings of the published grid snapshot."""
    return registry.current().status()


@router.get("/lookup")
async def lookup_point(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    registry: GridRegistry = Depends(get_grid_registry),
) -> dict:
    """Crime and lighting cells covering a point."""
    snapshot = registry.current()
    result = {"version": snapshot.version}
    for kind, index in ((GridKind.CRIME, snapshot.crime), (GridKind.LIGHTING, snapshot.lighting)):
        result[kind.value] = index.lookup(lat, lng).model_dump() if index else None
    return result


@router.post("/refresh")
async def refresh(
    registry: GridRegistry = Depends(get_grid_registry),
    route_service: RouteService = Depends(get_route_service),
) -> dict:
    """Rebuild both grids from the configured datasets and publish them.

    Requests already scoring keep the previous snapshot.
    """
    snapshot = await asyncio.to_thread(refresh_grids, registry, settings)
    # Comparisons are keyed by grid version, so old entries simply stop matching
    logger.info(f"Grid refresh published {snapshot.version}; route cache holds {len(route_service.cache)} entries")
    return snapshot.status()


@router.get("/{kind}")
async def get_grid(
    kind: GridKind,
    registry: GridRegistry = Depends(get_grid_registry),
) -> Response:
    """The serialized grid, in the same form used for the on-disk cache."""
    snapshot = registry.current()
    index = snapshot.crime if kind == GridKind.CRIME else snapshot.lighting
    if index is None:
        raise ResourceNotFoundException(resource=f"{kind.value.capitalize()} grid")
    return Response(content=index.grid.to_json(), media_type="application/json")
