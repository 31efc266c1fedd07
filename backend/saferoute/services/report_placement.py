"""Report placement state machine.

Placing a report is a two-step interaction: the user drops a pin, then
confirms it with a type and description (or backs out).

    Idle -> AwaitingConfirmation -> Committed | Cancelled

Only a committed placement produces a report for the store.
"""

import enum
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Optional

from saferoute.schemas.report import ReportCreate, ReportType
from saferoute.services.errors import InvalidTransition

logger = logging.getLogger(__name__)


class PlacementState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {PlacementState.COMMITTED, PlacementState.CANCELLED}


class ReportPlacement:
    """One user's attempt to place a report."""

    def __init__(self, placement_id: Optional[str] = None, reported_by: Optional[str] = None):
        self.id = placement_id or str(uuid.uuid4())
        self.reported_by = reported_by
        self.state = PlacementState.IDLE
        self.lat: Optional[float] = None
        self.lng: Optional[float] = None
        self.type: Optional[ReportType] = None
        self.description = ""

    def _require(self, expected: PlacementState, action: str):
        if self.state != expected:
            raise InvalidTransition(f"Cannot {action} a placement that is {self.state.value}")

    def place(self, lat: float, lng: float) -> None:
        self._require(PlacementState.IDLE, "place")
        self.lat = lat
        self.lng = lng
        self.state = PlacementState.AWAITING_CONFIRMATION

    def choose(self, report_type: ReportType, description: str = "") -> None:
        self._require(PlacementState.AWAITING_CONFIRMATION, "choose a type for")
        self.type = report_type
        self.description = description

    def confirm(self) -> ReportCreate:
        """Commit the placement and return the report to store."""
        self._require(PlacementState.AWAITING_CONFIRMATION, "confirm")
        if self.type is None:
            raise InvalidTransition("Choose a report type before confirming")
        self.state = PlacementState.COMMITTED
        return ReportCreate(
            lat=self.lat,
            lng=self.lng,
            type=self.type,
            description=self.description,
            reported_by=self.reported_by,
        )

    def cancel(self) -> None:
        self._require(PlacementState.AWAITING_CONFIRMATION, "cancel")
        self.state = PlacementState.CANCELLED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "state": self.state.value,
            "lat": self.lat,
            "lng": self.lng,
            "type": self.type.value if self.type else None,
        }


class PlacementRegistry:
    """Open placements by id.

    Finished placements are dropped. The oldest open placements are evicted
    once ``max_open`` is reached.
    """

    def __init__(self, max_open: int = 1000):
        self.max_open = max_open
        self._placements: "OrderedDict[str, ReportPlacement]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._placements)

    def start(self, lat: float, lng: float, reported_by: Optional[str] = None) -> ReportPlacement:
        placement = ReportPlacement(reported_by=reported_by)
        placement.place(lat, lng)
        with self._lock:
            self._placements[placement.id] = placement
            while len(self._placements) > self.max_open:
                evicted, _ = self._placements.popitem(last=False)
                logger.debug(f"Evicted abandoned placement {evicted}")
        return placement

    def get(self, placement_id: str) -> ReportPlacement:
        placement = self._placements.get(placement_id)
        if placement is None:
            raise InvalidTransition(f"No open placement {placement_id}")
        return placement

    def confirm(self, placement_id: str, report_type: ReportType, description: str = "") -> ReportCreate:
        placement = self.get(placement_id)
        placement.choose(report_type, description)
        report = placement.confirm()
        self._forget(placement)
        return report

    def cancel(self, placement_id: str) -> ReportPlacement:
        placement = self.get(placement_id)
        placement.cancel()
        self._forget(placement)
        return placement

    def _forget(self, placement: ReportPlacement):
        if placement.state in TERMINAL_STATES:
            with self._lock:
                self._placements.pop(placement.id, None)
