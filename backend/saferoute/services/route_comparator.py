"""Route comparator - picks shortest / safest / balanced from scored alternatives.

Selection rules (each tie broken independently, then by provider order):
- shortest: min distance, then min duration
- safest: max combined safety score, then min distance
- balanced: max ``combined - P * extra_distance_ratio``, then min distance

When either SafetyGrid is missing or empty the comparison is degraded:
safety scores are not trusted, so safest and balanced fall back to the
shortest route and the result carries ``degraded=True``.
"""

import logging
from typing import Iterable, Optional, Sequence, Union

from saferoute.schemas.common import GridBounds
from saferoute.schemas.grid import GridKind, SafetyGrid
from saferoute.schemas.report import CommunityReport
from saferoute.schemas.routing import RouteComparison, RoutePath, RouteScore
from saferoute.services.errors import EmptyCandidateError
from saferoute.services.grid_builder import compute_thresholds
from saferoute.services.report_adjuster import ReportAdjuster
from saferoute.services.route_scorer import (
    DEFAULT_CRIME_WEIGHT,
    DEFAULT_LIGHTING_WEIGHT,
    DEFAULT_SAMPLE_SPACING_M,
    RouteScorer,
)
from saferoute.services.safety_index import SafetyIndex, degraded_reason

logger = logging.getLogger(__name__)


DEFAULT_BALANCED_PENALTY = 40.0

GridSource = Optional[Union[SafetyGrid, SafetyIndex]]


def placeholder_index(kind: GridKind) -> SafetyIndex:
    """Cell-less index standing in for a missing grid; every lookup is neutral."""
    return SafetyIndex(SafetyGrid(
        kind=kind,
        cell_size_degrees=1.0,
        bounds=GridBounds(lat_min=-90, lat_max=90, lng_min=-180, lng_max=180),
        cells=(),
        percentile_thresholds=compute_thresholds([]),
    ))


def extra_distance_ratio(distance: float, shortest_distance: float) -> float:
    if shortest_distance <= 0:
        return 0.0
    return (distance - shortest_distance) / shortest_distance


def select_representatives(
    scores: Sequence[RouteScore],
    balanced_penalty: float = DEFAULT_BALANCED_PENALTY,
    degraded_reason: Optional[str] = None,
) -> RouteComparison:
    """Pick the three representative routes from already-scored alternatives.

    The picks are the very objects held in ``scores``.

    Raises:
        EmptyCandidateError: ``scores`` is empty
    """
    if not scores:
        raise EmptyCandidateError("compare_routes requires at least one candidate route")

    routes = list(scores)
    n = len(routes)

    shortest_index = min(
        range(n),
        key=lambda i: (routes[i].distance_meters, routes[i].duration_seconds, i),
    )

    if degraded_reason:
        safest_index = balanced_index = shortest_index
    else:
        safest_index = min(
            range(n),
            key=lambda i: (-routes[i].combined_safety_score, routes[i].distance_meters, i),
        )
        shortest_distance = routes[shortest_index].distance_meters

        def balanced_value(i: int) -> float:
            ratio = extra_distance_ratio(routes[i].distance_meters, shortest_distance)
            return routes[i].combined_safety_score - balanced_penalty * ratio

        balanced_index = min(
            range(n),
            key=lambda i: (-balanced_value(i), routes[i].distance_meters, i),
        )

    return RouteComparison(
        routes=routes,
        shortest=routes[shortest_index],
        safest=routes[safest_index],
        balanced=routes[balanced_index],
        shortest_index=shortest_index,
        safest_index=safest_index,
        balanced_index=balanced_index,
        degraded=degraded_reason is not None,
        degraded_reason=degraded_reason,
    )


def compare_routes(
    candidates: Sequence[RoutePath],
    crime_grid: GridSource,
    lighting_grid: GridSource,
    reports: Union[ReportAdjuster, Iterable[CommunityReport], None] = None,
    *,
    now_ms: Optional[int] = None,
    crime_weight: float = DEFAULT_CRIME_WEIGHT,
    lighting_weight: float = DEFAULT_LIGHTING_WEIGHT,
    balanced_penalty: float = DEFAULT_BALANCED_PENALTY,
    sample_spacing_meters: float = DEFAULT_SAMPLE_SPACING_M,
) -> RouteComparison:
    """Score every candidate and select shortest / safest / balanced.

    Args:
        candidates: Routes from the directions provider, in provider order
        crime_grid: Crime SafetyGrid (or its index); None if unavailable
        lighting_grid: Lighting SafetyGrid (or its index); None if unavailable
        reports: A ReportAdjuster, or raw reports to filter as of ``now_ms``
        now_ms: Clock used for report freshness when raw reports are given

    Raises:
        EmptyCandidateError: ``candidates`` is empty
    """
    if not candidates:
        raise EmptyCandidateError("compare_routes requires at least one candidate route")

    crime = SafetyIndex.of(crime_grid) if crime_grid is not None else None
    lighting = SafetyIndex.of(lighting_grid) if lighting_grid is not None else None

    if isinstance(reports, ReportAdjuster):
        adjuster = reports
    else:
        adjuster = ReportAdjuster(reports or [], now_ms=now_ms)

    scorer = RouteScorer(
        crime or placeholder_index(GridKind.CRIME),
        lighting or placeholder_index(GridKind.LIGHTING),
        adjuster,
        crime_weight=crime_weight,
        lighting_weight=lighting_weight,
        sample_spacing_meters=sample_spacing_meters,
    )
    scores = [scorer.score(route) for route in candidates]

    reason = degraded_reason(crime, lighting)
    if reason:
        logger.warning(f"Degraded route comparison: {reason}")

    return select_representatives(scores, balanced_penalty, reason)
