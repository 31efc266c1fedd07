"""SafetyGrid schemas.

The camelCase JSON form of ``SafetyGrid`` is the persisted artifact used to
reuse grids between process restarts.
"""

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from saferoute.schemas.common import GridBounds


class GridKind(str, Enum):
    """Which dataset a grid was built from."""

    CRIME = "crime"
    LIGHTING = "lighting"


class RawPoint(BaseModel):
    """A single incident or streetlight observation."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    weight: float = Field(default=1.0, gt=0)


class VisualHint(BaseModel):
    """Rendering hint for a cell. Consumed by the map layer only."""

    model_config = ConfigDict(frozen=True)

    color: str
    opacity: float = Field(..., ge=0, le=1)


class GridCell(BaseModel):
    """One fixed-size bin of a SafetyGrid.

    ``score`` is lower-is-more-dangerous for crime grids and
    higher-is-better-lit for lighting grids.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    lat_bin: int
    lng_bin: int
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float
    count: float = Field(..., gt=0)
    percentile: int = Field(..., ge=10, le=100)
    score: float = Field(..., ge=0, le=100)
    visual_hint: VisualHint


class SafetyGrid(BaseModel):
    """Immutable spatial index of percentile-ranked cells.

    Rebuilt wholesale when the dataset is refreshed, never mutated.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    kind: GridKind
    cell_size_degrees: float = Field(..., gt=0)
    bounds: GridBounds
    cells: Tuple[GridCell, ...] = ()
    percentile_thresholds: Tuple[float, ...]
    total_weight: float = Field(default=0.0, ge=0)
    version: Optional[str] = None

    @field_validator("percentile_thresholds")
    @classmethod
    def check_thresholds(cls, v: Tuple[float, ...]) -> Tuple[float, ...]:
        if len(v) != 10:
            raise ValueError("percentile_thresholds must have exactly 10 entries")
        if any(b < a for a, b in zip(v, v[1:])):
            raise ValueError("percentile_thresholds must be non-decreasing")
        return v

    @property
    def is_empty(self) -> bool:
        return not self.cells

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str) -> "SafetyGrid":
        return cls.model_validate_json(data)


class CellLookup(BaseModel):
    """Result of a point lookup against one grid."""

    kind: GridKind
    score: float
    percentile: Optional[int] = None
    count: float = 0.0
    in_bounds: bool
    populated: bool
