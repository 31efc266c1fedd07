"""Tests for single-route scoring."""

import pytest

from conftest import make_route
from saferoute.schemas.common import GridBounds
from saferoute.schemas.grid import GridKind, RawPoint
from saferoute.schemas.report import CommunityReport, ReportType
from saferoute.services.grid_builder import build_grid
from saferoute.services.report_adjuster import ReportAdjuster
from saferoute.services.route_scorer import RouteScorer

NOW_MS = 1_700_000_000_000

# Coarse grid near the equator so cells are easy to reason about
UNIT_BOUNDS = GridBounds(lat_min=0.0, lat_max=1.0, lng_min=0.0, lng_max=1.0)


@pytest.fixture
def empty_lighting():
    return build_grid([], UNIT_BOUNDS, 0.1, kind=GridKind.LIGHTING)


@pytest.fixture
def crime_grid():
    # Equal counts: both populated cells resolve to percentile 100 (score 10)
    return build_grid(
        [RawPoint(lat=0.05, lng=0.05), RawPoint(lat=0.55, lng=0.55)],
        UNIT_BOUNDS, 0.1, kind=GridKind.CRIME,
    )


def blocked_path_report(lat: float, lng: float, report_id: str = "r1") -> CommunityReport:
    return CommunityReport(
        id=report_id, lat=lat, lng=lng, type=ReportType.BLOCKED_PATH,
        upvotes=5, downvotes=0, timestamp_millis=NOW_MS,
    )


# =============================================================================
# Sampling
# =============================================================================

class TestRouteSampling:
    """Tests for distance-weighted sampling against the grids."""

    def test_route_without_data_is_neutral(self, toronto_bounds):
        """No incidents and no lights: crime 100, lighting 50, combined 80."""
        scorer = RouteScorer(
            build_grid([], toronto_bounds, 0.005, kind=GridKind.CRIME),
            build_grid([], toronto_bounds, 0.005, kind=GridKind.LIGHTING),
        )
        score = scorer.score(make_route([(43.65, -79.38), (43.66, -79.38)]))

        assert score.crime_safety_score == 100
        assert score.lighting_score == 50
        assert score.combined_safety_score == pytest.approx(80)

    def test_scores_are_weighted_by_length(self, crime_grid, empty_lighting):
        """Half the route in a dangerous cell, half in an empty one."""
        route = make_route([(0.05, 0.01), (0.05, 0.09), (0.05, 0.19)])

        score = RouteScorer(crime_grid, empty_lighting).score(route)

        # 0.09 deg at score 10 and 0.09 deg at neutral 100
        assert score.crime_safety_score == pytest.approx(55, abs=0.5)

    def test_long_segment_is_not_judged_by_endpoints(self, crime_grid, empty_lighting):
        """Both vertices sit in unpopulated cells; the middle crosses a dangerous one."""
        route = make_route([(0.05, -0.05), (0.05, 0.15)])

        score = RouteScorer(crime_grid, empty_lighting).score(route)

        # Quarter outside the grid, half in the dangerous cell, quarter in an empty cell
        assert score.crime_safety_score == pytest.approx(55, abs=1)

    def test_degenerate_route_uses_its_points(self, crime_grid, empty_lighting):
        """A route whose points coincide is scored at that point."""
        route = make_route([(0.05, 0.05), (0.05, 0.05)], distance=0, duration=0)
        score = RouteScorer(crime_grid, empty_lighting).score(route)

        assert score.crime_safety_score == 10

    def test_empty_geometry_is_neutral(self, crime_grid, empty_lighting):
        route = make_route([], distance=0, duration=0)
        score = RouteScorer(crime_grid, empty_lighting).score(route)

        assert score.crime_safety_score == 100
        assert score.lighting_score == 50


# =============================================================================
# Combination
# =============================================================================

class TestScoreCombination:
    """Tests for the weighted blend and report penalties."""

    def test_provider_distance_and_duration_pass_through(self, crime_grid, empty_lighting):
        route = make_route([(0.05, 0.01), (0.05, 0.02)], distance=1234.5, duration=987.0)
        score = RouteScorer(crime_grid, empty_lighting).score(route)

        assert score.distance_meters == 1234.5
        assert score.duration_seconds == 987.0
        assert score.route is route

    def test_report_penalty_is_additive(self, toronto_bounds):
        crime = build_grid([], toronto_bounds, 0.005, kind=GridKind.CRIME)
        lighting = build_grid([], toronto_bounds, 0.005, kind=GridKind.LIGHTING)
        route = make_route([(43.650, -79.380), (43.652, -79.380)])
        reports = ReportAdjuster([blocked_path_report(43.651, -79.380)], now_ms=NOW_MS)

        score = RouteScorer(crime, lighting, reports).score(route)

        assert score.report_impact == pytest.approx(-30)
        assert score.combined_safety_score == pytest.approx(50)
        assert score.nearby_report_ids == ["r1"]

    def test_combined_score_clamped_at_zero(self, toronto_bounds):
        crime = build_grid([], toronto_bounds, 0.005, kind=GridKind.CRIME)
        lighting = build_grid([], toronto_bounds, 0.005, kind=GridKind.LIGHTING)
        route = make_route([(43.650, -79.380), (43.652, -79.380)])
        reports = ReportAdjuster(
            [blocked_path_report(43.651, -79.380, f"r{i}") for i in range(4)],
            now_ms=NOW_MS,
        )

        score = RouteScorer(crime, lighting, reports).score(route)

        assert score.report_impact == pytest.approx(-120)
        assert score.combined_safety_score == 0

    def test_custom_weights(self, toronto_bounds):
        crime = build_grid([], toronto_bounds, 0.005, kind=GridKind.CRIME)
        lighting = build_grid([], toronto_bounds, 0.005, kind=GridKind.LIGHTING)
        scorer = RouteScorer(crime, lighting, crime_weight=1.0, lighting_weight=0.0)

        score = scorer.score(make_route([(43.65, -79.38), (43.66, -79.38)]))

        assert score.combined_safety_score == 100

    def test_scoring_is_idempotent(self, crime_grid, toronto_bounds):
        """Same inputs always give the identical RouteScore."""
        lighting = build_grid(
            [RawPoint(lat=0.05, lng=0.05, weight=3), RawPoint(lat=0.15, lng=0.05, weight=9)],
            UNIT_BOUNDS, 0.1, kind=GridKind.LIGHTING,
        )
        reports = ReportAdjuster([blocked_path_report(0.05, 0.05)], now_ms=NOW_MS)
        route = make_route([(0.01, 0.01), (0.05, 0.05), (0.12, 0.07), (0.19, 0.02)])

        first = RouteScorer(crime_grid, lighting, reports).score(route)
        second = RouteScorer(crime_grid, lighting, reports).score(route)

        assert first == second
        assert first.combined_safety_score == second.combined_safety_score
