"""Route comparison orchestration.

Ties the directions provider, the published grid snapshot and the community
reports together for one request, and owns the request-level policies:

- Deduplication: comparisons are cached per (origin, destination), so
  switching between shortest / safest / balanced never re-fetches or
  re-scores. Identical requests already in flight share one computation.
- Last request wins: when a session starts a newer request, the older one's
  result is discarded with RequestSuperseded instead of being returned.
- Stale fallback: if the provider is down and an older comparison for the
  same pair is cached, it is served marked ``stale``.
"""

import asyncio
import itertools
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from saferoute.config import Settings, settings as default_settings
from saferoute.schemas.common import Coordinate
from saferoute.schemas.grid import GridKind
from saferoute.schemas.report import CommunityReport
from saferoute.schemas.routing import RouteComparison, RouteComparisonResponse, Selection
from saferoute.services.directions import DirectionsProvider
from saferoute.services.errors import ProviderUnavailable, RequestSuperseded
from saferoute.services.report_adjuster import ReportAdjuster
from saferoute.services.route_comparator import placeholder_index, select_representatives
from saferoute.services.route_scorer import RouteScorer
from saferoute.services.safety_index import GridRegistry, GridSnapshot

logger = logging.getLogger(__name__)


RouteKey = Tuple[float, float, float, float]
ReportSource = Callable[[], Awaitable[List[CommunityReport]]]


def route_key(origin: Coordinate, destination: Coordinate) -> RouteKey:
    """Cache key: endpoints rounded to 6 decimals (about 0.1 m)."""
    return (
        round(origin.latitude, 6),
        round(origin.longitude, 6),
        round(destination.latitude, 6),
        round(destination.longitude, 6),
    )


@dataclass(frozen=True)
class CacheEntry:
    comparison: RouteComparison
    grid_version: str
    stored_at: float


class RouteCache:
    """Bounded LRU of route comparisons with a freshness TTL.

    Expired entries are kept (until evicted by size) so they can still be
    served as stale results when the provider is down.
    """

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[RouteKey, CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get_fresh(self, key: RouteKey, grid_version: str) -> Optional[RouteComparison]:
        """Cached comparison if it is within TTL and built from ``grid_version``."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.grid_version != grid_version:
            return None
        if self._clock() - entry.stored_at > self.ttl_seconds:
            return None
        self._entries.move_to_end(key)
        return entry.comparison

    def peek(self, key: RouteKey) -> Optional[RouteComparison]:
        """Cached comparison regardless of age or grid version."""
        entry = self._entries.get(key)
        return entry.comparison if entry else None

    def put(self, key: RouteKey, comparison: RouteComparison, grid_version: str):
        self._entries[key] = CacheEntry(comparison, grid_version, self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Route cache evicted {evicted}")

    def clear(self):
        self._entries.clear()


class RouteService:
    """Compares routes for one origin/destination pair per request."""

    def __init__(
        self,
        registry: GridRegistry,
        provider: DirectionsProvider,
        report_source: Optional[ReportSource] = None,
        cache: Optional[RouteCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.registry = registry
        self.provider = provider
        self.report_source = report_source
        self.cache = cache or RouteCache(
            max_entries=self.settings.route_cache_max_entries,
            ttl_seconds=self.settings.route_cache_ttl_seconds,
        )
        self._request_ids = itertools.count(1)
        self._latest: Dict[str, int] = {}
        self._inflight: Dict[Tuple[RouteKey, str], "asyncio.Future[RouteComparison]"] = {}

    async def compare(
        self,
        origin: Coordinate,
        destination: Coordinate,
        selection: Selection = Selection.BALANCED,
        session_id: Optional[str] = None,
    ) -> RouteComparisonResponse:
        """Get the route comparison for a pair of points.

        Raises:
            NoRouteFound: the provider has no route between the points
            ProviderUnavailable: the provider failed and nothing is cached
            RequestSuperseded: the session started a newer request meanwhile
        """
        request_id = next(self._request_ids)
        if session_id:
            self._latest[session_id] = request_id
        try:
            return await self._compare(origin, destination, selection, session_id, request_id)
        finally:
            # Only the session's latest request clears its entry
            if session_id and self._latest.get(session_id) == request_id:
                del self._latest[session_id]

    async def _compare(
        self,
        origin: Coordinate,
        destination: Coordinate,
        selection: Selection,
        session_id: Optional[str],
        request_id: int,
    ) -> RouteComparisonResponse:
        key = route_key(origin, destination)
        snapshot = self.registry.current()

        cached = self.cache.get_fresh(key, snapshot.version)
        if cached is not None:
            logger.debug(f"Route cache hit for {key}")
            return self._respond(cached, selection, cached=True)

        try:
            comparison = await self._shared_compute(key, origin, destination, snapshot)
        except ProviderUnavailable:
            self._check_current(session_id, request_id)
            stale = self.cache.peek(key)
            if stale is None or not self.settings.serve_stale_routes:
                raise
            logger.warning(f"Directions unavailable, serving stale comparison for {key}")
            return self._respond(stale.model_copy(update={"stale": True}), selection, cached=True)

        self._check_current(session_id, request_id)
        self.cache.put(key, comparison, snapshot.version)
        return self._respond(comparison, selection, cached=False)

    def _check_current(self, session_id: Optional[str], request_id: int):
        if session_id and self._latest.get(session_id) != request_id:
            logger.info(f"Discarding superseded route request {request_id} for session {session_id}")
            raise RequestSuperseded("A newer route request replaced this one")

    @staticmethod
    def _respond(
        comparison: RouteComparison, selection: Selection, cached: bool
    ) -> RouteComparisonResponse:
        return RouteComparisonResponse(
            comparison=comparison,
            selection=selection,
            selected=comparison.pick(selection),
            cached=cached,
        )

    async def _shared_compute(
        self,
        key: RouteKey,
        origin: Coordinate,
        destination: Coordinate,
        snapshot: GridSnapshot,
    ) -> RouteComparison:
        inflight_key = (key, snapshot.version)
        future = self._inflight.get(inflight_key)
        if future is None:
            future = asyncio.ensure_future(self._compute(origin, destination, snapshot))
            self._inflight[inflight_key] = future

            def _forget(done: "asyncio.Future[RouteComparison]"):
                if self._inflight.get(inflight_key) is done:
                    del self._inflight[inflight_key]

            future.add_done_callback(_forget)
        return await asyncio.shield(future)

    async def _compute(
        self,
        origin: Coordinate,
        destination: Coordinate,
        snapshot: GridSnapshot,
    ) -> RouteComparison:
        routes = await self.provider.get_routes(origin, destination)
        reports = await self.report_source() if self.report_source else []

        adjuster = ReportAdjuster(
            reports,
            proximity_meters=self.settings.report_proximity_meters,
            fresh_hours=self.settings.report_fresh_hours,
            confirm_upvotes=self.settings.report_confirm_upvotes,
            min_confidence=self.settings.report_min_confidence,
        )
        scorer = RouteScorer(
            snapshot.crime or placeholder_index(GridKind.CRIME),
            snapshot.lighting or placeholder_index(GridKind.LIGHTING),
            adjuster,
            crime_weight=self.settings.crime_weight,
            lighting_weight=self.settings.lighting_weight,
            sample_spacing_meters=self.settings.sample_spacing_meters,
        )

        # gather keeps provider order regardless of completion order
        scores = await asyncio.gather(*(asyncio.to_thread(scorer.score, r) for r in routes))

        reason = snapshot.degraded_reason()
        if reason:
            logger.warning(f"Degraded route comparison: {reason}")

        return select_representatives(scores, self.settings.balanced_distance_penalty, reason)

    async def close(self):
        await self.provider.close()
