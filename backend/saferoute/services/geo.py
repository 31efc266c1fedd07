"""Small geodesic helpers shared by the scoring services."""

import math
from typing import List, Sequence, Tuple

EARTH_RADIUS_M = 6371000


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate distance in meters between two points."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def interpolate(lat1: float, lng1: float, lat2: float, lng2: float, t: float) -> Tuple[float, float]:
    """Linear interpolation in degrees; fine at street-segment scale."""
    return lat1 + (lat2 - lat1) * t, lng1 + (lng2 - lng1) * t


def project_local(
    coords: Sequence[Tuple[float, float]], ref_lat: float
) -> List[Tuple[float, float]]:
    """Equirectangular projection of (lat, lng) pairs to planar meters (x, y)."""
    cos_ref = math.cos(math.radians(ref_lat))
    return [
        (EARTH_RADIUS_M * math.radians(lng) * cos_ref, EARTH_RADIUS_M * math.radians(lat))
        for lat, lng in coords
    ]


def format_distance(meters: float) -> str:
    """Format distance as a human-readable string."""
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"
