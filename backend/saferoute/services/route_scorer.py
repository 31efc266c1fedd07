"""Route scorer - samples a route's geometry against both SafetyGrids.

Every segment of the flattened polyline is cut into pieces no longer than
``sample_spacing_meters`` and each piece is scored at its midpoint, so long
segments that cross several cells are not judged by a single cell. Scores are
averaged weighted by piece length.
"""

import logging
import math
from typing import List, Optional, Tuple, Union

from saferoute.schemas.common import LatLng
from saferoute.schemas.grid import SafetyGrid
from saferoute.schemas.routing import RoutePath, RouteScore
from saferoute.services.geo import haversine_distance, interpolate
from saferoute.services.report_adjuster import ReportAdjuster
from saferoute.services.safety_index import SafetyIndex

logger = logging.getLogger(__name__)


DEFAULT_CRIME_WEIGHT = 0.6
DEFAULT_LIGHTING_WEIGHT = 0.4
DEFAULT_SAMPLE_SPACING_M = 50.0


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class RouteScorer:
    """Scores single routes against one grid snapshot and one report set.

    A scorer holds no mutable state, so one instance can score many routes
    concurrently and the same route always produces the same RouteScore.
    """

    def __init__(
        self,
        crime_grid: Union[SafetyGrid, SafetyIndex],
        lighting_grid: Union[SafetyGrid, SafetyIndex],
        reports: Optional[ReportAdjuster] = None,
        crime_weight: float = DEFAULT_CRIME_WEIGHT,
        lighting_weight: float = DEFAULT_LIGHTING_WEIGHT,
        sample_spacing_meters: float = DEFAULT_SAMPLE_SPACING_M,
    ):
        if sample_spacing_meters <= 0:
            raise ValueError("sample_spacing_meters must be positive")
        self.crime = SafetyIndex.of(crime_grid)
        self.lighting = SafetyIndex.of(lighting_grid)
        self.reports = reports or ReportAdjuster.empty()
        self.crime_weight = crime_weight
        self.lighting_weight = lighting_weight
        self.sample_spacing_meters = sample_spacing_meters

    def _samples(self, points: List[LatLng]) -> List[Tuple[float, float, float]]:
        """(lat, lng, weight) samples along the path.

        Weight is the length in meters the sample stands for. A path whose
        points all coincide falls back to its points with equal weight.
        """
        samples: List[Tuple[float, float, float]] = []
        for a, b in zip(points, points[1:]):
            length = haversine_distance(a.lat, a.lng, b.lat, b.lng)
            if length == 0:
                continue
            pieces = max(1, math.ceil(length / self.sample_spacing_meters))
            piece_length = length / pieces
            for i in range(pieces):
                lat, lng = interpolate(a.lat, a.lng, b.lat, b.lng, (i + 0.5) / pieces)
                samples.append((lat, lng, piece_length))

        if not samples:
            samples = [(p.lat, p.lng, 1.0) for p in points]
        return samples

    def _weighted_average(self, index: SafetyIndex, samples: List[Tuple[float, float, float]]) -> float:
        if not samples:
            return index.neutral_score
        total = math.fsum(w for _, _, w in samples)
        weighted = math.fsum(index.score_at(lat, lng) * w for lat, lng, w in samples)
        return clamp(weighted / total)

    def score(self, route: RoutePath) -> RouteScore:
        """Score one candidate route.

        Distance and duration are carried through from the provider unchanged.
        """
        points = route.flattened_points()
        samples = self._samples(points)

        crime_score = self._weighted_average(self.crime, samples)
        lighting_score = self._weighted_average(self.lighting, samples)
        impact, report_ids = self.reports.path_impact(points)

        combined = clamp(
            self.crime_weight * crime_score
            + self.lighting_weight * lighting_score
            + impact
        )

        logger.debug(
            f"Scored route ({route.distance_meters:.0f}m, {len(samples)} samples): "
            f"crime={crime_score:.1f} lighting={lighting_score:.1f} "
            f"reports={impact:.1f} combined={combined:.1f}"
        )

        return RouteScore(
            route=route,
            distance_meters=route.distance_meters,
            duration_seconds=route.duration_seconds,
            crime_safety_score=crime_score,
            lighting_score=lighting_score,
            combined_safety_score=combined,
            report_impact=min(0.0, impact),
            nearby_report_ids=report_ids,
        )
