"""Read-only point lookups against SafetyGrids, and the published grid snapshot."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from saferoute.schemas.grid import CellLookup, GridCell, SafetyGrid
from saferoute.services.grid_builder import NEUTRAL_SCORES, bin_index

logger = logging.getLogger(__name__)


class SafetyIndex:
    """Point -> cell lookup for one SafetyGrid.

    Points outside the bounds or in unpopulated cells get the neutral score
    for the grid kind: no recorded data counts as neither safe nor unsafe.
    """

    def __init__(self, grid: SafetyGrid):
        self.grid = grid
        self.kind = grid.kind
        self.neutral_score = NEUTRAL_SCORES[grid.kind]
        self._cells: Dict[Tuple[int, int], GridCell] = {
            (cell.lat_bin, cell.lng_bin): cell for cell in grid.cells
        }

    @classmethod
    def of(cls, source: Union["SafetyIndex", SafetyGrid]) -> "SafetyIndex":
        if isinstance(source, SafetyIndex):
            return source
        return cls(source)

    @property
    def is_empty(self) -> bool:
        return not self._cells

    def cell_at(self, lat: float, lng: float) -> Optional[GridCell]:
        if not self.grid.bounds.contains(lat, lng):
            return None
        return self._cells.get(
            bin_index(lat, lng, self.grid.bounds, self.grid.cell_size_degrees)
        )

    def score_at(self, lat: float, lng: float) -> float:
        cell = self.cell_at(lat, lng)
        return cell.score if cell is not None else self.neutral_score

    def lookup(self, lat: float, lng: float) -> CellLookup:
        in_bounds = self.grid.bounds.contains(lat, lng)
        cell = self.cell_at(lat, lng) if in_bounds else None
        if cell is None:
            return CellLookup(
                kind=self.kind,
                score=self.neutral_score,
                in_bounds=in_bounds,
                populated=False,
            )
        return CellLookup(
            kind=self.kind,
            score=cell.score,
            percentile=cell.percentile,
            count=cell.count,
            in_bounds=True,
            populated=True,
        )


def degraded_reason(crime: Optional[SafetyIndex], lighting: Optional[SafetyIndex]) -> Optional[str]:
    """Why scoring would be distance-only, or None if both grids are usable."""
    missing: List[str] = []
    for name, index in (("crime", crime), ("lighting", lighting)):
        if index is None:
            missing.append(f"{name} grid unavailable")
        elif index.is_empty:
            missing.append(f"{name} grid empty")
    return "; ".join(missing) if missing else None


@dataclass(frozen=True)
class GridSnapshot:
    """One published version of both grids. Never mutated after creation."""

    version: str
    crime: Optional[SafetyIndex]
    lighting: Optional[SafetyIndex]
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    warnings: Tuple[str, ...] = ()

    def degraded_reason(self) -> Optional[str]:
        return degraded_reason(self.crime, self.lighting)

    def status(self) -> dict:
        return {
            "version": self.version,
            "built_at": self.built_at.isoformat(),
            "crime_cells": len(self.crime.grid.cells) if self.crime else None,
            "lighting_cells": len(self.lighting.grid.cells) if self.lighting else None,
            "degraded_reason": self.degraded_reason(),
            "warnings": list(self.warnings),
        }


class GridRegistry:
    """Holds the current GridSnapshot.

    Publishing replaces the reference in one assignment. Readers keep using
    whichever snapshot they already fetched, so a refresh never blocks or
    alters in-flight scoring.
    """

    def __init__(self, snapshot: Optional[GridSnapshot] = None):
        self._snapshot = snapshot or GridSnapshot(version="empty", crime=None, lighting=None)
        self._publish_lock = threading.Lock()

    def current(self) -> GridSnapshot:
        return self._snapshot

    def publish(
        self,
        crime: Optional[SafetyGrid],
        lighting: Optional[SafetyGrid],
        version: Optional[str] = None,
        warnings: Tuple[str, ...] = (),
    ) -> GridSnapshot:
        """Build indices for the new grids and swap them in."""
        snapshot = GridSnapshot(
            version=version or datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f"),
            crime=SafetyIndex(crime) if crime is not None else None,
            lighting=SafetyIndex(lighting) if lighting is not None else None,
            warnings=tuple(warnings),
        )
        with self._publish_lock:
            self._snapshot = snapshot
        logger.info(f"Published grid snapshot {snapshot.version}")
        return snapshot

    def refresh(
        self,
        build: Callable[[], Tuple[Optional[SafetyGrid], Optional[SafetyGrid], Sequence[str]]],
        version: Optional[str] = None,
    ) -> GridSnapshot:
        """Rebuild both grids with ``build`` and publish them.

        The previous snapshot stays current until the build has finished, and
        a failed build leaves it in place.
        """
        crime, lighting, warnings = build()
        return self.publish(crime, lighting, version=version, warnings=tuple(warnings))
