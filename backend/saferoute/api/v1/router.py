"""API v1 router aggregation."""

from fastapi import APIRouter

from saferoute.api.v1.routes import grids, health, places, reports, routing

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(routing.router, prefix="/routes", tags=["Routing"])
api_router.include_router(grids.router, prefix="/grids", tags=["Safety Grids"])
api_router.include_router(reports.router, prefix="/reports", tags=["Community Reports"])
api_router.include_router(places.router, prefix="/places", tags=["Safe Places"])
