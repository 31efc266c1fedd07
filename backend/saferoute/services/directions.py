"""Directions provider - fetches walking route alternatives from Google."""

import abc
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from saferoute.config import settings
from saferoute.schemas.common import Coordinate, LatLng
from saferoute.schemas.routing import Leg, RoutePath, Step
from saferoute.services.errors import NoRouteFound, ProviderUnavailable

logger = logging.getLogger(__name__)


# Statuses worth retrying; every other non-OK status fails immediately
RETRYABLE_STATUSES = {"UNKNOWN_ERROR"}
NO_ROUTE_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


def decode_polyline(encoded: str, precision: int = 5) -> List[LatLng]:
    """Decode an encoded polyline string into points.

    Google uses precision 5.
    """
    coordinates = []
    index = 0
    lat = 0
    lng = 0
    factor = 10 ** precision

    while index < len(encoded):
        # Decode latitude
        shift = 0
        result = 0
        while True:
            b = ord(encoded[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        dlat = ~(result >> 1) if result & 1 else result >> 1
        lat += dlat

        # Decode longitude
        shift = 0
        result = 0
        while True:
            b = ord(encoded[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        dlng = ~(result >> 1) if result & 1 else result >> 1
        lng += dlng

        coordinates.append(LatLng(lat=lat / factor, lng=lng / factor))

    return coordinates


class DirectionsProvider(abc.ABC):
    """Source of candidate walking routes between two points."""

    @abc.abstractmethod
    async def get_routes(self, origin: Coordinate, destination: Coordinate) -> List[RoutePath]:
        """Return every alternative route, in provider order.

        Raises:
            NoRouteFound: the provider knows no route
            ProviderUnavailable: the provider failed or timed out
        """

    async def close(self) -> None:
        pass


class GoogleDirectionsProvider(DirectionsProvider):
    """Google Directions API client (walking, with alternatives)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        url: Optional[str] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.url = url or settings.directions_url
        self.max_retries = settings.provider_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.provider_retry_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self.client = client or httpx.AsyncClient(timeout=settings.provider_timeout_seconds)

    async def get_routes(self, origin: Coordinate, destination: Coordinate) -> List[RoutePath]:
        params = {
            "origin": f"{origin.latitude},{origin.longitude}",
            "destination": f"{destination.latitude},{destination.longitude}",
            "mode": "walking",
            "alternatives": "true",
            "key": self.api_key,
        }
        data = await self._request(params)

        routes = [self._parse_route(route) for route in data.get("routes", [])]
        if not routes:
            raise NoRouteFound("Directions provider returned no routes")

        logger.info(
            f"Directions: {len(routes)} alternatives for "
            f"({origin.latitude:.5f},{origin.longitude:.5f}) -> "
            f"({destination.latitude:.5f},{destination.longitude:.5f})"
        )
        return routes

    async def _request(self, params: Dict[str, str]) -> Dict[str, Any]:
        """GET with bounded retries and exponential backoff."""
        last_error = "no attempt made"
        attempts = 0

        for attempt in range(self.max_retries + 1):
            attempts += 1
            try:
                response = await self.client.get(self.url, params=params)
            except httpx.TimeoutException:
                last_error = "request timed out"
            except httpx.TransportError as e:
                last_error = f"transport error: {e}"
            else:
                if response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}"
                elif response.status_code >= 400:
                    raise ProviderUnavailable(
                        f"Directions request rejected: HTTP {response.status_code}",
                        attempts=attempts,
                    )
                else:
                    try:
                        data = response.json()
                    except ValueError:
                        data = None
                        last_error = "invalid JSON response"

                    if data is not None:
                        status = data.get("status", "UNKNOWN_ERROR")
                        if status == "OK":
                            return data
                        if status in NO_ROUTE_STATUSES:
                            raise NoRouteFound(f"No walking route found ({status})")
                        if status not in RETRYABLE_STATUSES:
                            message = data.get("error_message", "")
                            raise ProviderUnavailable(
                                f"Directions request failed: {status} {message}".strip(),
                                attempts=attempts,
                            )
                        last_error = f"provider status {status}"

            if attempt < self.max_retries:
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    f"Directions attempt {attempts} failed ({last_error}), retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

        logger.error(f"Directions provider unavailable after {attempts} attempts: {last_error}")
        raise ProviderUnavailable(
            f"Directions provider unavailable after {attempts} attempts: {last_error}",
            attempts=attempts,
        )

    def _parse_route(self, route: Dict[str, Any]) -> RoutePath:
        legs = []
        distance = 0.0
        duration = 0.0

        for leg in route.get("legs", []):
            steps = [
                Step(points=decode_polyline(step["polyline"]["points"]))
                for step in leg.get("steps", [])
                if step.get("polyline", {}).get("points")
            ]
            legs.append(Leg(steps=steps))
            distance += leg.get("distance", {}).get("value", 0)
            duration += leg.get("duration", {}).get("value", 0)

        # Fall back to the overview line when the legs carry no step geometry
        if not any(leg.steps for leg in legs):
            overview = route.get("overview_polyline", {}).get("points")
            if overview:
                legs = [Leg(steps=[Step(points=decode_polyline(overview))])]

        return RoutePath(
            legs=legs,
            distance_meters=distance,
            duration_seconds=duration,
            summary=route.get("summary") or None,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
