"""Common schemas used across the application."""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Coordinate(BaseModel):
    """Geographic coordinate."""

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class LatLng(BaseModel):
    """A single point of route geometry, as returned by the directions provider."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class GridBounds(BaseModel):
    """Bounding box of a SafetyGrid."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    lat_min: float = Field(..., ge=-90, le=90)
    lat_max: float = Field(..., ge=-90, le=90)
    lng_min: float = Field(..., ge=-180, le=180)
    lng_max: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def check_ordering(self) -> "GridBounds":
        if self.lat_min >= self.lat_max or self.lng_min >= self.lng_max:
            raise ValueError("Bounds minimum must be strictly below maximum")
        return self

    def contains(self, lat: float, lng: float) -> bool:
        """Inclusive containment test."""
        return self.lat_min <= lat <= self.lat_max and self.lng_min <= lng <= self.lng_max

    @classmethod
    def from_string(cls, bbox_str: str) -> "GridBounds":
        """Parse bounds from a comma-separated "lat_min,lat_max,lng_min,lng_max" string."""
        parts = [float(x) for x in bbox_str.split(",")]
        if len(parts) != 4:
            raise ValueError("Bounds must have 4 values: lat_min,lat_max,lng_min,lng_max")
        return cls(lat_min=parts[0], lat_max=parts[1], lng_min=parts[2], lng_max=parts[3])
