"""Grid builder - bins raw points into percentile-ranked SafetyGrids."""

import logging
import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from saferoute.schemas.common import GridBounds
from saferoute.schemas.grid import GridCell, GridKind, RawPoint, SafetyGrid, VisualHint

logger = logging.getLogger(__name__)


DECILES = 10

# Percentile -> score. Crime: busier cells are more dangerous.
# Lighting: more lights means better lit.
CRIME_SCORES = {p: round(100 - p * 0.9, 1) for p in range(10, 101, 10)}
LIGHTING_SCORES = {p: float(p) for p in range(10, 101, 10)}

# Neutral values for points with no recorded data
NEUTRAL_SCORES = {
    GridKind.CRIME: 100.0,
    GridKind.LIGHTING: 50.0,
}

CRIME_HINTS = (
    VisualHint(color="#FFFFCC", opacity=0.4),
    VisualHint(color="#FFFF99", opacity=0.45),
    VisualHint(color="#FFFF66", opacity=0.5),
    VisualHint(color="#FFED4E", opacity=0.55),
    VisualHint(color="#FFDB4D", opacity=0.6),
    VisualHint(color="#FFC04D", opacity=0.65),
    VisualHint(color="#FF9933", opacity=0.7),
    VisualHint(color="#FF6B1A", opacity=0.75),
    VisualHint(color="#FF3300", opacity=0.8),
    VisualHint(color="#CC0000", opacity=0.85),
)

LIGHTING_HINTS = (
    VisualHint(color="#1a1a2e", opacity=0.7),   # poorly lit
    VisualHint(color="#16213e", opacity=0.7),
    VisualHint(color="#0f3460", opacity=0.65),
    VisualHint(color="#533483", opacity=0.65),
    VisualHint(color="#7c3aed", opacity=0.6),
    VisualHint(color="#3b82f6", opacity=0.6),
    VisualHint(color="#0ea5e9", opacity=0.55),
    VisualHint(color="#06b6d4", opacity=0.55),
    VisualHint(color="#14b8a6", opacity=0.5),
    VisualHint(color="#10b981", opacity=0.5),   # well lit
)

SCORE_TABLES = {
    GridKind.CRIME: (CRIME_SCORES, CRIME_HINTS),
    GridKind.LIGHTING: (LIGHTING_SCORES, LIGHTING_HINTS),
}


def bin_index(lat: float, lng: float, bounds: GridBounds, cell_size: float) -> Tuple[int, int]:
    """Get (lat_bin, lng_bin) for a coordinate.

    Shared by the builder and the lookup side so both agree on every edge.
    """
    lat_bin = math.floor((lat - bounds.lat_min) / cell_size)
    lng_bin = math.floor((lng - bounds.lng_min) / cell_size)
    return lat_bin, lng_bin


def compute_thresholds(counts: Sequence[float]) -> Tuple[float, ...]:
    """Derive the 10 decile thresholds from cell counts.

    Threshold k (1..10) is the sorted count at index floor(n * k / 10),
    clamped to the last index. Integer arithmetic keeps the index exact.
    """
    if not counts:
        return (0.0,) * DECILES

    ordered = sorted(counts)
    n = len(ordered)
    return tuple(
        float(ordered[min(n * k // DECILES, n - 1)])
        for k in range(1, DECILES + 1)
    )


def percentile_for(count: float, thresholds: Sequence[float], uniform: bool = False) -> int:
    """Smallest decile whose threshold covers ``count``; 100 if none does.

    ``uniform`` marks a degenerate distribution (every populated cell has the
    same count), which resolves to 100 for every cell. Equal thresholds alone
    do not imply it: a few low cells can sit under a flat upper tail.
    """
    if uniform:
        return 100
    for i, threshold in enumerate(thresholds):
        if count <= threshold:
            return (i + 1) * 10
    return 100


def build_grid(
    points: Iterable[RawPoint],
    bounds: GridBounds,
    cell_size: float,
    kind: GridKind = GridKind.CRIME,
    version: Optional[str] = None,
) -> SafetyGrid:
    """Bin points into a SafetyGrid.

    Out-of-bounds points are ignored. Zero in-bounds points yields a grid
    with no cells, whose lookups all return the neutral default.

    Args:
        points: Incident or streetlight observations
        bounds: Grid bounding box
        cell_size: Cell edge length in degrees
        kind: Selects the score and visual-hint tables
        version: Optional dataset version tag

    Returns:
        An immutable SafetyGrid
    """
    if cell_size <= 0:
        raise ValueError("cell_size must be positive")

    weights: Dict[Tuple[int, int], float] = defaultdict(float)
    accepted = 0
    ignored = 0

    for point in points:
        if not bounds.contains(point.lat, point.lng):
            ignored += 1
            continue
        weights[bin_index(point.lat, point.lng, bounds, cell_size)] += point.weight
        accepted += 1

    if ignored:
        logger.debug(f"{kind.value} grid: ignored {ignored} out-of-bounds points")

    if not weights:
        logger.warning(f"{kind.value} grid built from zero in-bounds points; lookups will be neutral")
        return SafetyGrid(
            kind=kind,
            cell_size_degrees=cell_size,
            bounds=bounds,
            cells=(),
            percentile_thresholds=compute_thresholds([]),
            total_weight=0.0,
            version=version,
        )

    thresholds = compute_thresholds(list(weights.values()))
    uniform = min(weights.values()) == max(weights.values())
    scores, hints = SCORE_TABLES[kind]

    cells: List[GridCell] = []
    # Sorted keys give a stable cell order in the serialized grid
    for (lat_bin, lng_bin) in sorted(weights):
        count = weights[(lat_bin, lng_bin)]
        percentile = percentile_for(count, thresholds, uniform)
        lat_start = bounds.lat_min + lat_bin * cell_size
        lng_start = bounds.lng_min + lng_bin * cell_size
        cells.append(GridCell(
            lat_bin=lat_bin,
            lng_bin=lng_bin,
            lat_min=lat_start,
            lat_max=lat_start + cell_size,
            lng_min=lng_start,
            lng_max=lng_start + cell_size,
            count=count,
            percentile=percentile,
            score=scores[percentile],
            visual_hint=hints[percentile // 10 - 1],
        ))

    total_weight = math.fsum(weights[key] for key in sorted(weights))
    logger.info(
        f"Built {kind.value} grid: {len(cells)} cells from {accepted} points, "
        f"thresholds={list(thresholds)}"
    )

    return SafetyGrid(
        kind=kind,
        cell_size_degrees=cell_size,
        bounds=bounds,
        cells=tuple(cells),
        percentile_thresholds=thresholds,
        total_weight=total_weight,
        version=version,
    )
