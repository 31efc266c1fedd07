"""Build crime and lighting SafetyGrids from the raw CSV datasets.

Writes crime_grid.json and lighting_grid.json into the output directory
(GRID_CACHE_DIR by default), where the API picks them up at startup.

Usage:
    python scripts/build_grids.py --crime incidents.csv --lighting lights.csv --out data/grids
"""

import argparse
import sys
from pathlib import Path

from saferoute.config import get_settings
from saferoute.middleware import setup_logging
from saferoute.services.grid_store import GRID_FILENAMES, build_grids, save_grid


def parse_args(argv=None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--crime", default=settings.crime_data_path, help="Incident CSV")
    parser.add_argument("--lighting", default=settings.lighting_data_path, help="Pre-binned lighting CSV")
    parser.add_argument("--out", default=settings.grid_cache_dir or "data/grids", help="Output directory")
    parser.add_argument("--days-back", type=int, default=settings.incident_days_back)
    return parser.parse_args(argv)


def main(argv=None) -> int:
    setup_logging()
    args = parse_args(argv)

    settings = get_settings().model_copy(update={
        "crime_data_path": args.crime,
        "lighting_data_path": args.lighting,
        "incident_days_back": args.days_back,
    })
    if not (settings.crime_data_path or settings.lighting_data_path):
        print("No datasets given (use --crime / --lighting or CRIME_DATA_PATH / LIGHTING_DATA_PATH)")
        return 1

    print("Building grids...")
    crime, lighting, warnings = build_grids(settings)

    out_dir = Path(args.out)
    for grid in (crime, lighting):
        if grid is None:
            continue
        path = save_grid(grid, out_dir / GRID_FILENAMES[grid.kind])
        print(f"  {grid.kind.value}: {len(grid.cells)} cells, total weight {grid.total_weight:g} -> {path}")
        print(f"    decile thresholds: {', '.join(f'{t:g}' for t in grid.percentile_thresholds)}")

    for warning in warnings:
        print(f"  warning: {warning}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
