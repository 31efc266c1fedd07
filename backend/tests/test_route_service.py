"""Tests for request orchestration: caching, supersession and fallbacks."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeProvider
from saferoute.config import Settings
from saferoute.schemas.common import Coordinate
from saferoute.schemas.grid import GridKind, RawPoint
from saferoute.schemas.routing import Selection
from saferoute.services.errors import NoRouteFound, ProviderUnavailable, RequestSuperseded
from saferoute.services.grid_builder import build_grid
from saferoute.services.route_service import RouteCache, RouteService, route_key
from saferoute.services.safety_index import GridRegistry

ORIGIN = Coordinate(latitude=43.6502, longitude=-79.3908)
DESTINATION = Coordinate(latitude=43.6708, longitude=-79.3602)
OTHER_DESTINATION = Coordinate(latitude=43.6600, longitude=-79.3700)


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def registry(toronto_bounds):
    registry = GridRegistry()
    registry.publish(
        build_grid(
            [RawPoint(lat=43.6505, lng=-79.3905)] * 10 + [RawPoint(lat=43.6705, lng=-79.3605)],
            toronto_bounds, 0.005, kind=GridKind.CRIME,
        ),
        build_grid(
            [RawPoint(lat=43.6705, lng=-79.3605, weight=30), RawPoint(lat=43.6505, lng=-79.3905, weight=2)],
            toronto_bounds, 0.005, kind=GridKind.LIGHTING,
        ),
        version="v1",
    )
    return registry


def make_service(registry, provider, clock=None, **overrides) -> RouteService:
    settings = Settings(**overrides)
    cache = RouteCache(
        max_entries=settings.route_cache_max_entries,
        ttl_seconds=settings.route_cache_ttl_seconds,
        clock=clock or Clock(),
    )
    return RouteService(registry, provider, cache=cache, settings=settings)


# =============================================================================
# Cache
# =============================================================================

class TestRouteCache:
    """Tests for the LRU/TTL comparison cache."""

    def test_key_rounds_to_six_decimals(self):
        a = route_key(Coordinate(latitude=43.12345671, longitude=-79.1), DESTINATION)
        b = route_key(Coordinate(latitude=43.12345674, longitude=-79.1), DESTINATION)
        assert a == b

    @pytest.mark.asyncio
    async def test_lru_eviction(self, registry):
        service = make_service(registry, FakeProvider(), route_cache_max_entries=1)
        await service.compare(ORIGIN, DESTINATION)
        await service.compare(ORIGIN, OTHER_DESTINATION)

        assert len(service.cache) == 1
        assert service.cache.peek(route_key(ORIGIN, DESTINATION)) is None


# =============================================================================
# Comparison requests
# =============================================================================

class TestRouteService:
    """Tests for compare() policies."""

    @pytest.mark.asyncio
    async def test_switching_selection_reuses_comparison(self, registry):
        provider = FakeProvider()
        service = make_service(registry, provider)

        first = await service.compare(ORIGIN, DESTINATION, Selection.SHORTEST)
        second = await service.compare(ORIGIN, DESTINATION, Selection.SAFEST)

        assert provider.calls == 1
        assert first.cached is False
        assert second.cached is True
        assert second.comparison is first.comparison
        assert first.selected is first.comparison.shortest
        assert second.selected is first.comparison.safest
        assert first.comparison.shortest is not first.comparison.safest

    @pytest.mark.asyncio
    async def test_reports_are_loaded_per_computation(self, registry):
        load_reports = AsyncMock(return_value=[])
        service = make_service(registry, FakeProvider())
        service.report_source = load_reports

        await service.compare(ORIGIN, DESTINATION)
        await service.compare(ORIGIN, DESTINATION)

        load_reports.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_grid_refresh_invalidates_cache(self, registry):
        provider = FakeProvider()
        service = make_service(registry, provider)
        await service.compare(ORIGIN, DESTINATION)

        current = registry.current()
        registry.publish(current.crime.grid, current.lighting.grid, version="v2")
        response = await service.compare(ORIGIN, DESTINATION)

        assert provider.calls == 2
        assert response.cached is False

    @pytest.mark.asyncio
    async def test_no_route_propagates(self, registry):
        service = make_service(registry, FakeProvider(error=NoRouteFound("none")))

        with pytest.raises(NoRouteFound):
            await service.compare(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_degraded_snapshot_falls_back_to_shortest(self):
        provider = FakeProvider()
        service = make_service(GridRegistry(), provider)

        response = await service.compare(ORIGIN, DESTINATION, Selection.SAFEST)

        assert response.comparison.degraded is True
        assert response.selected is response.comparison.shortest
        assert response.selected.distance_meters == 500

    @pytest.mark.asyncio
    async def test_identical_concurrent_requests_share_one_fetch(self, registry):
        provider = FakeProvider()
        gate = provider.hold(DESTINATION)
        service = make_service(registry, provider)

        first = asyncio.ensure_future(service.compare(ORIGIN, DESTINATION))
        second = asyncio.ensure_future(service.compare(ORIGIN, DESTINATION, Selection.SAFEST))
        await asyncio.sleep(0)
        gate.set()
        a, b = await asyncio.gather(first, second)

        assert provider.calls == 1
        assert a.comparison is b.comparison


# =============================================================================
# Last request wins
# =============================================================================

class TestSupersession:
    """Tests for discarding results of replaced requests."""

    @pytest.mark.asyncio
    async def test_older_request_is_discarded(self, registry):
        provider = FakeProvider()
        gate = provider.hold(DESTINATION)
        service = make_service(registry, provider)

        older = asyncio.ensure_future(service.compare(ORIGIN, DESTINATION, session_id="s1"))
        await asyncio.sleep(0)
        newer = await service.compare(ORIGIN, OTHER_DESTINATION, session_id="s1")
        gate.set()

        with pytest.raises(RequestSuperseded):
            await older
        assert newer.comparison is not None
        # The discarded result never reaches the cache
        assert service.cache.peek(route_key(ORIGIN, DESTINATION)) is None

    @pytest.mark.asyncio
    async def test_finished_sessions_are_not_retained(self, registry):
        """Session tracking stays bounded however many sessions come and go."""
        service = make_service(registry, FakeProvider(), route_cache_max_entries=2)

        for i in range(50):
            await service.compare(ORIGIN, DESTINATION, session_id=f"session-{i}")

        assert len(service.cache) == 1
        assert service._latest == {}

    @pytest.mark.asyncio
    async def test_failed_request_releases_session(self, registry):
        service = make_service(registry, FakeProvider(error=NoRouteFound("none")))

        with pytest.raises(NoRouteFound):
            await service.compare(ORIGIN, DESTINATION, session_id="s1")

        assert "s1" not in service._latest

    @pytest.mark.asyncio
    async def test_other_sessions_are_independent(self, registry):
        provider = FakeProvider()
        gate = provider.hold(DESTINATION)
        service = make_service(registry, provider)

        first = asyncio.ensure_future(service.compare(ORIGIN, DESTINATION, session_id="a"))
        await asyncio.sleep(0)
        await service.compare(ORIGIN, OTHER_DESTINATION, session_id="b")
        gate.set()

        response = await first
        assert response.cached is False


# =============================================================================
# Provider failure
# =============================================================================

class TestStaleFallback:
    """Tests for serving cached comparisons while the provider is down."""

    @pytest.mark.asyncio
    async def test_stale_comparison_served_when_provider_down(self, registry):
        clock = Clock()
        provider = FakeProvider()
        service = make_service(registry, provider, clock=clock, route_cache_ttl_seconds=60)
        original = await service.compare(ORIGIN, DESTINATION)

        clock.now = 120.0
        provider.error = ProviderUnavailable("down", attempts=2)
        response = await service.compare(ORIGIN, DESTINATION)

        assert provider.calls == 2
        assert response.comparison.stale is True
        assert response.cached is True
        assert response.comparison.routes[0] is original.comparison.routes[0]
        assert original.comparison.stale is False

    @pytest.mark.asyncio
    async def test_provider_down_without_cache_raises(self, registry):
        service = make_service(registry, FakeProvider(error=ProviderUnavailable("down")))

        with pytest.raises(ProviderUnavailable):
            await service.compare(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_stale_serving_can_be_disabled(self, registry):
        clock = Clock()
        provider = FakeProvider()
        service = make_service(
            registry, provider, clock=clock,
            route_cache_ttl_seconds=60, serve_stale_routes=False,
        )
        await service.compare(ORIGIN, DESTINATION)

        clock.now = 120.0
        provider.error = ProviderUnavailable("down")
        with pytest.raises(ProviderUnavailable):
            await service.compare(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_close_closes_provider(self, registry):
        provider = FakeProvider()
        await make_service(registry, provider).close()
        assert provider.closed is True
