"""Community report schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReportType(str, Enum):
    """Kinds of hazard a pedestrian can report."""

    BAD_LIGHTING = "bad_lighting"
    NO_SIDEWALK = "no_sidewalk"
    SUSPICIOUS_AREA = "suspicious_area"
    BLOCKED_PATH = "blocked_path"


class VoteType(str, Enum):
    UP = "up"
    DOWN = "down"


class CommunityReport(BaseModel):
    """A user-submitted hazard annotation.

    Votes only ever increase. Expired or dismissed reports are filtered at
    read time rather than deleted.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    type: ReportType
    description: str = ""
    upvotes: int = Field(default=0, ge=0)
    downvotes: int = Field(default=0, ge=0)
    timestamp_millis: int = Field(..., ge=0)
    reported_by: Optional[str] = None


class ReportCreate(BaseModel):
    """Request body for a committed report."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    type: ReportType
    description: str = Field(default="", max_length=500)
    reported_by: Optional[str] = Field(default=None, max_length=64)


class PlacementStart(BaseModel):
    """Start placing a report at a map location."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    reported_by: Optional[str] = Field(default=None, max_length=64)


class PlacementConfirm(BaseModel):
    """Details supplied when the user confirms a placement."""

    type: ReportType
    description: str = Field(default="", max_length=500)


class ReportView(CommunityReport):
    """A report as shown to clients, with derived fields."""

    confidence: float
    impact: float
    valid: bool
    time_ago: str
