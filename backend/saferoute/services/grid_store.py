"""SafetyGrid persistence and the build/refresh pipeline.

Grids are cached as camelCase JSON (one file per kind) so a restart can skip
re-reading the raw datasets. Startup order: cached grids, then the
configured CSVs, then empty grids (scoring degraded until a refresh).
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import ValidationError

from saferoute.config import Settings
from saferoute.schemas.common import GridBounds
from saferoute.schemas.grid import GridKind, SafetyGrid
from saferoute.services.grid_builder import build_grid
from saferoute.services.ingestion import read_incidents_csv, read_lighting_csv
from saferoute.services.safety_index import GridRegistry, GridSnapshot

logger = logging.getLogger(__name__)


GRID_FILENAMES = {
    GridKind.CRIME: "crime_grid.json",
    GridKind.LIGHTING: "lighting_grid.json",
}


def save_grid(grid: SafetyGrid, path: Union[str, Path]) -> Path:
    """Write a grid as JSON, replacing any previous file in one rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(grid.to_json(), encoding="utf-8")
    os.replace(tmp_path, path)
    logger.info(f"Saved {grid.kind.value} grid ({len(grid.cells)} cells) to {path}")
    return path


def load_grid(path: Union[str, Path]) -> SafetyGrid:
    """Read a grid written by ``save_grid``.

    Raises:
        FileNotFoundError: no file at ``path``
        pydantic.ValidationError: the file is not a valid SafetyGrid
    """
    grid = SafetyGrid.from_json(Path(path).read_text(encoding="utf-8"))
    logger.info(f"Loaded {grid.kind.value} grid ({len(grid.cells)} cells) from {path}")
    return grid


def grid_version(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S")


def grid_bounds(settings: Settings) -> GridBounds:
    return GridBounds(
        lat_min=settings.grid_lat_min,
        lat_max=settings.grid_lat_max,
        lng_min=settings.grid_lng_min,
        lng_max=settings.grid_lng_max,
    )


def load_cached_grids(cache_dir: Union[str, Path]) -> Optional[Tuple[SafetyGrid, SafetyGrid]]:
    """Both cached grids, or None if either is missing or unreadable."""
    cache_dir = Path(cache_dir)
    try:
        crime = load_grid(cache_dir / GRID_FILENAMES[GridKind.CRIME])
        lighting = load_grid(cache_dir / GRID_FILENAMES[GridKind.LIGHTING])
    except FileNotFoundError:
        logger.info(f"No cached grids in {cache_dir}")
        return None
    except (ValidationError, ValueError) as e:
        logger.warning(f"Ignoring unreadable grid cache in {cache_dir}: {e}")
        return None
    return crime, lighting


def build_grids(
    settings: Settings,
    now: Optional[datetime] = None,
) -> Tuple[Optional[SafetyGrid], Optional[SafetyGrid], List[str]]:
    """Build crime and lighting grids from the configured CSV datasets.

    A dataset that is not configured yields None for that grid. A configured
    dataset with no usable rows yields an empty grid plus a warning.
    """
    bounds = grid_bounds(settings)
    version = grid_version(now)
    warnings: List[str] = []

    crime: Optional[SafetyGrid] = None
    if settings.crime_data_path:
        result = read_incidents_csv(
            settings.crime_data_path,
            now=now,
            days_back=settings.incident_days_back,
        )
        warnings.extend(result.warnings)
        crime = build_grid(
            result.points, bounds, settings.grid_cell_size_degrees,
            kind=GridKind.CRIME, version=version,
        )
    else:
        warnings.append("crime dataset not configured")

    lighting: Optional[SafetyGrid] = None
    if settings.lighting_data_path:
        result = read_lighting_csv(
            settings.lighting_data_path,
            bounds,
            settings.lighting_source_cell_size_degrees,
        )
        warnings.extend(result.warnings)
        lighting = build_grid(
            result.points, bounds, settings.grid_cell_size_degrees,
            kind=GridKind.LIGHTING, version=version,
        )
    else:
        warnings.append("lighting dataset not configured")

    return crime, lighting, warnings


def refresh_grids(
    registry: GridRegistry,
    settings: Settings,
    now: Optional[datetime] = None,
) -> GridSnapshot:
    """Rebuild grids from the datasets, cache them and publish a new snapshot."""
    now = now or datetime.now(timezone.utc)
    snapshot = registry.refresh(lambda: build_grids(settings, now), version=grid_version(now))

    if settings.grid_cache_dir:
        for index in (snapshot.crime, snapshot.lighting):
            if index is not None:
                save_grid(index.grid, Path(settings.grid_cache_dir) / GRID_FILENAMES[index.kind])

    for warning in snapshot.warnings:
        logger.warning(f"Grid refresh: {warning}")
    return snapshot


def initialize_grids(registry: GridRegistry, settings: Settings) -> GridSnapshot:
    """Publish the startup snapshot: cache first, then datasets, then empty."""
    if settings.grid_cache_dir:
        cached = load_cached_grids(settings.grid_cache_dir)
        if cached is not None:
            crime, lighting = cached
            return registry.publish(crime, lighting, version=crime.version)

    if settings.crime_data_path or settings.lighting_data_path:
        return refresh_grids(registry, settings)

    logger.warning("No grid cache or datasets configured; route scoring will be degraded")
    bounds = grid_bounds(settings)
    return registry.publish(
        build_grid([], bounds, settings.grid_cell_size_degrees, kind=GridKind.CRIME),
        build_grid([], bounds, settings.grid_cell_size_degrees, kind=GridKind.LIGHTING),
        version="empty",
        warnings=("no datasets configured",),
    )
