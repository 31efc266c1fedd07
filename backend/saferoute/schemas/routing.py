"""Routing request and response schemas."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from saferoute.schemas.common import Coordinate, LatLng


class Selection(str, Enum):
    """Which representative route the caller wants to display."""

    SHORTEST = "shortest"
    SAFEST = "safest"
    BALANCED = "balanced"


class Step(BaseModel):
    """A provider step, reduced to its geometry."""

    model_config = ConfigDict(frozen=True)

    points: List[LatLng] = Field(default_factory=list)


class Leg(BaseModel):
    """A route leg."""

    model_config = ConfigDict(frozen=True)

    steps: List[Step] = Field(default_factory=list)


class RoutePath(BaseModel):
    """Candidate route geometry as supplied by the directions provider."""

    model_config = ConfigDict(frozen=True)

    legs: List[Leg] = Field(default_factory=list)
    distance_meters: float = Field(..., ge=0, description="Provider-computed distance")
    duration_seconds: float = Field(..., ge=0, description="Provider-computed duration")
    summary: Optional[str] = Field(None, description="Provider route label, e.g. main street name")

    def flattened_points(self) -> List[LatLng]:
        """All points of all steps, in travel order."""
        return [point for leg in self.legs for step in leg.steps for point in step.points]


class RouteScore(BaseModel):
    """Safety evaluation of a single candidate route."""

    model_config = ConfigDict(frozen=True)

    route: RoutePath
    distance_meters: float = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)
    crime_safety_score: float = Field(..., ge=0, le=100)
    lighting_score: float = Field(..., ge=0, le=100)
    combined_safety_score: float = Field(..., ge=0, le=100)
    report_impact: float = Field(default=0.0, le=0, description="Sum of community report penalties")
    nearby_report_ids: List[str] = Field(default_factory=list)


class RouteComparison(BaseModel):
    """Scored alternatives plus the shortest/safest/balanced picks.

    ``shortest``, ``safest`` and ``balanced`` are the same objects as the
    corresponding entries in ``routes``.
    """

    routes: List[RouteScore] = Field(..., min_length=1)
    shortest: RouteScore
    safest: RouteScore
    balanced: RouteScore
    shortest_index: int = Field(..., ge=0)
    safest_index: int = Field(..., ge=0)
    balanced_index: int = Field(..., ge=0)
    degraded: bool = Field(default=False, description="Safety data missing; picks are distance-only")
    degraded_reason: Optional[str] = None
    stale: bool = Field(default=False, description="Served from cache after a provider failure")

    def pick(self, selection: Selection) -> RouteScore:
        if selection == Selection.SHORTEST:
            return self.shortest
        if selection == Selection.SAFEST:
            return self.safest
        return self.balanced


class RouteCompareRequest(BaseModel):
    """Request body for route comparison."""

    origin: Coordinate = Field(..., description="Starting point")
    destination: Coordinate = Field(..., description="Ending point")
    selection: Selection = Field(
        default=Selection.BALANCED,
        description="Route to highlight",
    )


class RouteComparisonResponse(BaseModel):
    """Response for route comparison."""

    comparison: RouteComparison
    selection: Selection
    selected: RouteScore
    cached: bool = False
