"""Request dependencies resolving the services held on app.state."""

from fastapi import Request

from saferoute.services.places import PlacesClient
from saferoute.services.report_placement import PlacementRegistry
from saferoute.services.route_service import RouteService
from saferoute.services.safety_index import GridRegistry


def get_request_id(request: Request) -> str:
    """Get request ID from request state."""
    return getattr(request.state, "request_id", "unknown")


def get_grid_registry(request: Request) -> GridRegistry:
    return request.app.state.grid_registry


def get_route_service(request: Request) -> RouteService:
    return request.app.state.route_service


def get_places_client(request: Request) -> PlacesClient:
    return request.app.state.places_client


def get_placements(request: Request) -> PlacementRegistry:
    return request.app.state.placements
