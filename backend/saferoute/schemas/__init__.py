# Pydantic schemas
from saferoute.schemas.common import Coordinate, GridBounds, LatLng
from saferoute.schemas.grid import CellLookup, GridCell, GridKind, RawPoint, SafetyGrid
from saferoute.schemas.routing import (
    Leg,
    RouteCompareRequest,
    RouteComparison,
    RouteComparisonResponse,
    RoutePath,
    RouteScore,
    Selection,
    Step,
)
from saferoute.schemas.report import CommunityReport, ReportCreate, ReportType, ReportView
from saferoute.schemas.places import SafePlace

__all__ = [
    "Coordinate",
    "GridBounds",
    "LatLng",
    "CellLookup",
    "GridCell",
    "GridKind",
    "RawPoint",
    "SafetyGrid",
    "Leg",
    "RouteCompareRequest",
    "RouteComparison",
    "RouteComparisonResponse",
    "RoutePath",
    "RouteScore",
    "Selection",
    "Step",
    "CommunityReport",
    "ReportCreate",
    "ReportType",
    "ReportView",
    "SafePlace",
]
