"""Nearby safe place schemas."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PlaceType(str, Enum):
    """Internal place categories shown to a pedestrian looking for refuge."""

    PHARMACY = "pharmacy"
    GAS_STATION = "gas_station"
    RESTAURANT = "restaurant"
    GROCERY = "grocery"
    SUBWAY = "subway"
    GYM = "gym"
    OTHER = "other"


class SafePlace(BaseModel):
    """A public place nearby that is likely open and staffed."""

    id: str
    name: str
    type: PlaceType
    lat: float
    lng: float
    open_24h: bool = False
    distance: str = Field(..., description="Human readable, e.g. 850m or 1.2km")
    distance_meters: float = Field(..., ge=0)
    place_id: Optional[str] = None
    address: Optional[str] = None


class NearbyPlacesResponse(BaseModel):
    places: List[SafePlace]
    failed_categories: List[str] = Field(default_factory=list)
