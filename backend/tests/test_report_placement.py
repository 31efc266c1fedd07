"""Tests for the two-step report placement flow."""

import pytest

from saferoute.schemas.report import ReportType
from saferoute.services.errors import InvalidTransition
from saferoute.services.report_placement import (
    PlacementRegistry,
    PlacementState,
    ReportPlacement,
)


# =============================================================================
# Single placement
# =============================================================================

class TestReportPlacement:
    """Tests for the placement state machine."""

    def test_place_then_confirm(self):
        placement = ReportPlacement(reported_by="walker-1")
        placement.place(43.65, -79.38)
        placement.choose(ReportType.NO_SIDEWALK, "Construction")

        report = placement.confirm()

        assert placement.state == PlacementState.COMMITTED
        assert report.type == ReportType.NO_SIDEWALK
        assert (report.lat, report.lng) == (43.65, -79.38)
        assert report.description == "Construction"
        assert report.reported_by == "walker-1"

    def test_cancel_produces_nothing(self):
        placement = ReportPlacement()
        placement.place(43.65, -79.38)
        placement.cancel()

        assert placement.state == PlacementState.CANCELLED
        with pytest.raises(InvalidTransition):
            placement.confirm()

    def test_confirm_from_idle_is_rejected(self):
        with pytest.raises(InvalidTransition):
            ReportPlacement().confirm()

    def test_confirm_needs_a_type(self):
        placement = ReportPlacement()
        placement.place(43.65, -79.38)

        with pytest.raises(InvalidTransition):
            placement.confirm()
        assert placement.state == PlacementState.AWAITING_CONFIRMATION

    def test_committed_placement_cannot_be_reused(self):
        placement = ReportPlacement()
        placement.place(43.65, -79.38)
        placement.choose(ReportType.BAD_LIGHTING)
        placement.confirm()

        with pytest.raises(InvalidTransition):
            placement.place(43.66, -79.39)
        with pytest.raises(InvalidTransition):
            placement.cancel()

    def test_placing_twice_is_rejected(self):
        placement = ReportPlacement()
        placement.place(43.65, -79.38)

        with pytest.raises(InvalidTransition):
            placement.place(43.66, -79.39)

    def test_to_dict(self):
        placement = ReportPlacement(placement_id="p1")
        placement.place(43.65, -79.38)

        assert placement.to_dict() == {
            "id": "p1",
            "state": "awaiting_confirmation",
            "lat": 43.65,
            "lng": -79.38,
            "type": None,
        }


# =============================================================================
# Registry
# =============================================================================

class TestPlacementRegistry:
    """Tests for tracking open placements by id."""

    def test_confirm_forgets_placement(self):
        registry = PlacementRegistry()
        placement = registry.start(43.65, -79.38)

        report = registry.confirm(placement.id, ReportType.SUSPICIOUS_AREA)

        assert report.type == ReportType.SUSPICIOUS_AREA
        assert len(registry) == 0
        with pytest.raises(InvalidTransition):
            registry.confirm(placement.id, ReportType.SUSPICIOUS_AREA)

    def test_cancel_forgets_placement(self):
        registry = PlacementRegistry()
        placement = registry.start(43.65, -79.38)

        cancelled = registry.cancel(placement.id)

        assert cancelled.state == PlacementState.CANCELLED
        with pytest.raises(InvalidTransition):
            registry.get(placement.id)

    def test_oldest_open_placement_is_evicted(self):
        registry = PlacementRegistry(max_open=2)
        first = registry.start(43.65, -79.38)
        registry.start(43.66, -79.38)
        registry.start(43.67, -79.38)

        assert len(registry) == 2
        with pytest.raises(InvalidTransition):
            registry.get(first.id)
