"""Community report filtering and scoring.

A report counts toward routing when it is fresh (under 48h old) or confirmed
(3+ upvotes), and at least half of its votes are upvotes. Its penalty is the
base impact for its type scaled by that vote confidence.
"""

import logging
import math
import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point

from saferoute.schemas.common import LatLng
from saferoute.schemas.report import CommunityReport, ReportType
from saferoute.services.geo import haversine_distance, project_local

logger = logging.getLogger(__name__)


BASE_IMPACT: Dict[ReportType, float] = {
    ReportType.BAD_LIGHTING: -15.0,
    ReportType.NO_SIDEWALK: -20.0,
    ReportType.SUSPICIOUS_AREA: -25.0,
    ReportType.BLOCKED_PATH: -30.0,
}

REPORT_TYPES: Dict[ReportType, Dict[str, str]] = {
    ReportType.BAD_LIGHTING: {
        "label": "Bad Lighting",
        "description": "Low visibility or missing lights",
        "color": "#fbbf24",
    },
    ReportType.NO_SIDEWALK: {
        "label": "No Sidewalk",
        "description": "No or broken sidewalk",
        "color": "#f97316",
    },
    ReportType.SUSPICIOUS_AREA: {
        "label": "Suspicious Area",
        "description": "Area feels unsafe",
        "color": "#ef4444",
    },
    ReportType.BLOCKED_PATH: {
        "label": "Blocked Path",
        "description": "Construction, debris, or blockage",
        "color": "#92400e",
    },
}

FRESH_HOURS = 48.0
CONFIRM_UPVOTES = 3
MIN_CONFIDENCE = 50.0
PROXIMITY_METERS = 50.0


def now_millis() -> int:
    return int(time.time() * 1000)


def confidence_score(upvotes: int, downvotes: int) -> float:
    """Share of upvotes as a percentage; 0 when nobody has voted."""
    total = upvotes + downvotes
    if total == 0:
        return 0.0
    return upvotes / total * 100


def is_fresh(timestamp_millis: int, now_ms: int, fresh_hours: float = FRESH_HOURS) -> bool:
    return now_ms - timestamp_millis < fresh_hours * 3600 * 1000


def is_valid(
    report: CommunityReport,
    now_ms: int,
    fresh_hours: float = FRESH_HOURS,
    confirm_upvotes: int = CONFIRM_UPVOTES,
    min_confidence: float = MIN_CONFIDENCE,
) -> bool:
    fresh = is_fresh(report.timestamp_millis, now_ms, fresh_hours)
    confirmed = report.upvotes >= confirm_upvotes
    confidence = confidence_score(report.upvotes, report.downvotes)
    return (fresh or confirmed) and confidence >= min_confidence


def report_impact(report: CommunityReport) -> float:
    """Safety penalty (<= 0) of a single report."""
    confidence = confidence_score(report.upvotes, report.downvotes)
    return BASE_IMPACT[report.type] * confidence / 100


def time_ago(timestamp_millis: int, now_ms: int) -> str:
    """Get a short relative age string like "5m ago"."""
    diff = max(0, now_ms - timestamp_millis)
    minutes = diff // 60000
    hours = diff // 3600000
    days = diff // 86400000

    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return f"{days}d ago"


class ReportAdjuster:
    """Valid reports and their penalties, frozen at a point in time.

    ``now_ms`` is captured once so every query against the same adjuster
    sees the same set of valid reports.
    """

    def __init__(
        self,
        reports: Iterable[CommunityReport],
        now_ms: Optional[int] = None,
        proximity_meters: float = PROXIMITY_METERS,
        fresh_hours: float = FRESH_HOURS,
        confirm_upvotes: int = CONFIRM_UPVOTES,
        min_confidence: float = MIN_CONFIDENCE,
    ):
        self.now_ms = now_ms if now_ms is not None else now_millis()
        self.proximity_meters = proximity_meters

        all_reports = list(reports)
        valid = [
            r for r in all_reports
            if is_valid(r, self.now_ms, fresh_hours, confirm_upvotes, min_confidence)
        ]
        valid.sort(key=lambda r: r.id)
        self._valid: List[Tuple[CommunityReport, float]] = [(r, report_impact(r)) for r in valid]

        logger.debug(f"ReportAdjuster: {len(self._valid)} of {len(all_reports)} reports valid")

    @classmethod
    def empty(cls) -> "ReportAdjuster":
        return cls([], now_ms=0)

    @property
    def valid_reports(self) -> List[CommunityReport]:
        return [r for r, _ in self._valid]

    def impact_at(self, lat: float, lng: float) -> float:
        """Sum of impacts of valid reports within the proximity radius of a point."""
        return math.fsum(
            impact for report, impact in self._valid
            if haversine_distance(lat, lng, report.lat, report.lng) <= self.proximity_meters
        )

    def reports_near_path(self, points: Sequence[LatLng]) -> List[Tuple[CommunityReport, float]]:
        """Valid reports within the proximity radius of any part of a polyline.

        Each report is returned at most once, however many segments it is near.
        """
        if not points or not self._valid:
            return []

        ref_lat = math.fsum(p.lat for p in points) / len(points)
        projected = project_local([(p.lat, p.lng) for p in points], ref_lat)
        distinct = list(dict.fromkeys(projected))
        geometry = LineString(distinct) if len(distinct) > 1 else Point(distinct[0])

        near = []
        for report, impact in self._valid:
            (x, y), = project_local([(report.lat, report.lng)], ref_lat)
            if geometry.distance(Point(x, y)) <= self.proximity_meters:
                near.append((report, impact))
        return near

    def path_impact(self, points: Sequence[LatLng]) -> Tuple[float, List[str]]:
        """Total penalty along a path and the ids of the contributing reports."""
        near = self.reports_near_path(points)
        return math.fsum(impact for _, impact in near), [r.id for r, _ in near]
