"""Dataset readers for incident and streetlight CSVs.

Malformed rows are skipped and counted, never fatal. A dataset that yields
no points at all is reported as a warning so the grid can still be built
(empty) and scoring degrades instead of failing.
"""

import csv
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from saferoute.schemas.common import GridBounds
from saferoute.schemas.grid import RawPoint
from saferoute.services.errors import DataIngestionError, EmptyDatasetError

logger = logging.getLogger(__name__)


INCIDENT_LAT_COLUMN = "LAT_WGS84"
INCIDENT_LNG_COLUMN = "LONG_WGS84"
INCIDENT_DATE_COLUMN = "OCC_DATE"

LIGHTING_LAT_BIN_COLUMN = "lat_bin"
LIGHTING_LNG_BIN_COLUMN = "lon_bin"
LIGHTING_COUNT_COLUMN = "light_count"

DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y",
)


@dataclass
class IngestionResult:
    """Points read from one dataset plus what was dropped on the way."""

    points: List[RawPoint] = field(default_factory=list)
    skipped: int = 0
    filtered: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.points


def parse_float(value: Optional[str], name: str, row_number: int) -> float:
    if value is None or value.strip() == "":
        raise DataIngestionError(f"missing {name}", row_number)
    try:
        parsed = float(value)
    except ValueError:
        raise DataIngestionError(f"non-numeric {name}: {value!r}", row_number)
    if not math.isfinite(parsed):
        raise DataIngestionError(f"non-finite {name}: {value!r}", row_number)
    return parsed


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an incident date; None when the format is not recognised."""
    if not value or not value.strip():
        return None
    text = value.strip()
    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _check_columns(fieldnames: Optional[Iterable[str]], required: List[str], dataset: str) -> List[str]:
    present = set(fieldnames or [])
    missing = [c for c in required if c not in present]
    if missing:
        logger.error(f"{dataset} dataset is missing columns: {missing}")
    return missing


def _finish(result: IngestionResult, dataset: str) -> IngestionResult:
    if result.skipped:
        logger.warning(f"{dataset} ingestion skipped {result.skipped} malformed rows")
    if result.is_empty:
        warning = str(EmptyDatasetError(dataset))
        result.warnings.append(warning)
        logger.warning(warning)
    logger.info(
        f"{dataset} ingestion: {len(result.points)} points, "
        f"{result.skipped} skipped, {result.filtered} filtered"
    )
    return result


def read_incidents(
    rows: Iterable[Dict[str, str]],
    now: Optional[datetime] = None,
    days_back: Optional[int] = 365,
    lat_column: str = INCIDENT_LAT_COLUMN,
    lng_column: str = INCIDENT_LNG_COLUMN,
    date_column: str = INCIDENT_DATE_COLUMN,
) -> IngestionResult:
    """Turn incident records into unit-weight RawPoints.

    Incidents older than ``days_back`` days before ``now`` are dropped and
    counted as filtered. Rows whose date cannot be parsed are kept.
    """
    result = IngestionResult()
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days_back) if days_back else None

    for row_number, row in enumerate(rows, start=2):
        try:
            lat = parse_float(row.get(lat_column), lat_column, row_number)
            lng = parse_float(row.get(lng_column), lng_column, row_number)
            if not (-90 <= lat <= 90 and -180 <= lng <= 180):
                raise DataIngestionError(f"coordinate out of range: ({lat}, {lng})", row_number)
        except DataIngestionError as e:
            logger.debug(f"Skipping incident {e}")
            result.skipped += 1
            continue

        if cutoff is not None:
            occurred = parse_date(row.get(date_column))
            if occurred is not None and occurred < cutoff:
                result.filtered += 1
                continue

        result.points.append(RawPoint(lat=lat, lng=lng))

    return _finish(result, "incident")


def read_lighting(
    rows: Iterable[Dict[str, str]],
    bounds: GridBounds,
    source_cell_size: float,
    lat_bin_column: str = LIGHTING_LAT_BIN_COLUMN,
    lng_bin_column: str = LIGHTING_LNG_BIN_COLUMN,
    count_column: str = LIGHTING_COUNT_COLUMN,
) -> IngestionResult:
    """Turn pre-binned streetlight counts into weighted RawPoints.

    Each source cell becomes one point at its centre, measured from the
    grid bounds minimum, weighted by its light count. Cells with no lights
    are filtered.
    """
    if source_cell_size <= 0:
        raise ValueError("source_cell_size must be positive")

    result = IngestionResult()

    for row_number, row in enumerate(rows, start=2):
        try:
            lat_bin = parse_float(row.get(lat_bin_column), lat_bin_column, row_number)
            lng_bin = parse_float(row.get(lng_bin_column), lng_bin_column, row_number)
            count = parse_float(row.get(count_column), count_column, row_number)
            if lat_bin != int(lat_bin) or lng_bin != int(lng_bin):
                raise DataIngestionError("bin indices must be integers", row_number)
        except DataIngestionError as e:
            logger.debug(f"Skipping lighting {e}")
            result.skipped += 1
            continue

        if count <= 0:
            result.filtered += 1
            continue

        lat = bounds.lat_min + (int(lat_bin) + 0.5) * source_cell_size
        lng = bounds.lng_min + (int(lng_bin) + 0.5) * source_cell_size
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            result.skipped += 1
            continue

        result.points.append(RawPoint(lat=lat, lng=lng, weight=count))

    return _finish(result, "lighting")


def _read_csv(path: Union[str, Path], required: List[str], dataset: str):
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            missing = _check_columns(reader.fieldnames, required, dataset)
            if missing:
                return None, [f"{dataset} dataset {path} is missing columns: {', '.join(missing)}"]
            return list(reader), []
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read {dataset} dataset {path}: {e}")
        return None, [f"{dataset} dataset {path} is unreadable: {e.__class__.__name__}"]


def read_incidents_csv(
    path: Union[str, Path],
    now: Optional[datetime] = None,
    days_back: Optional[int] = 365,
) -> IngestionResult:
    """Read an incident CSV file (LAT_WGS84, LONG_WGS84, OCC_DATE)."""
    logger.info(f"Reading incident dataset {path}")
    rows, warnings = _read_csv(
        path, [INCIDENT_LAT_COLUMN, INCIDENT_LNG_COLUMN], "incident"
    )
    if rows is None:
        return _finish(IngestionResult(warnings=warnings), "incident")
    return read_incidents(rows, now=now, days_back=days_back)


def read_lighting_csv(
    path: Union[str, Path],
    bounds: GridBounds,
    source_cell_size: float,
) -> IngestionResult:
    """Read a pre-binned lighting CSV file (lat_bin, lon_bin, light_count)."""
    logger.info(f"Reading lighting dataset {path}")
    rows, warnings = _read_csv(
        path,
        [LIGHTING_LAT_BIN_COLUMN, LIGHTING_LNG_BIN_COLUMN, LIGHTING_COUNT_COLUMN],
        "lighting",
    )
    if rows is None:
        return _finish(IngestionResult(warnings=warnings), "lighting")
    return read_lighting(rows, bounds, source_cell_size)
