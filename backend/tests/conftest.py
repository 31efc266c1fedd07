"""Shared test configuration and builders.

Environment is set before any saferoute module is imported, since settings
are read once at import time.
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="saferoute-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DIR}/test.db")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-key")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("PROVIDER_RETRY_BACKOFF_SECONDS", "0")

import asyncio  # noqa: E402
from typing import List, Optional, Sequence, Tuple  # noqa: E402

import pytest  # noqa: E402

from saferoute.schemas.common import Coordinate, GridBounds, LatLng  # noqa: E402
from saferoute.schemas.routing import Leg, RoutePath, RouteScore, Step  # noqa: E402
from saferoute.services.directions import DirectionsProvider  # noqa: E402


TORONTO_BOUNDS = GridBounds(lat_min=43.58, lat_max=43.85, lng_min=-79.64, lng_max=-79.12)


def make_route(
    points: Sequence[Tuple[float, float]],
    distance: float = 1000.0,
    duration: float = 720.0,
    summary: Optional[str] = None,
) -> RoutePath:
    """One-leg, one-step route through ``points``."""
    return RoutePath(
        legs=[Leg(steps=[Step(points=[LatLng(lat=lat, lng=lng) for lat, lng in points])])],
        distance_meters=distance,
        duration_seconds=duration,
        summary=summary,
    )


def make_score(
    distance: float,
    combined: float,
    duration: Optional[float] = None,
) -> RouteScore:
    """A pre-scored route, for exercising selection rules directly."""
    duration = duration if duration is not None else distance / 1.4
    return RouteScore(
        route=make_route([(43.65, -79.38), (43.66, -79.38)], distance, duration),
        distance_meters=distance,
        duration_seconds=duration,
        crime_safety_score=combined,
        lighting_score=combined,
        combined_safety_score=combined,
    )


class FakeProvider(DirectionsProvider):
    """Returns canned routes and counts calls. Optionally blocks until released."""

    def __init__(self, routes: List[RoutePath] = None, error: Exception = None):
        self.routes = routes if routes is not None else [
            make_route([(43.6502, -79.3908), (43.6508, -79.3902)], distance=500),
            make_route([(43.6702, -79.3608), (43.6708, -79.3602)], distance=550),
        ]
        self.error = error
        self.calls = 0
        self.gates = {}
        self.closed = False

    def hold(self, destination: Coordinate) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[destination.latitude] = gate
        return gate

    async def get_routes(self, origin, destination):
        self.calls += 1
        gate = self.gates.get(destination.latitude)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return self.routes

    async def close(self):
        self.closed = True


@pytest.fixture
def toronto_bounds() -> GridBounds:
    return TORONTO_BOUNDS
