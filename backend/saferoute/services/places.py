"""Nearby safe places - concurrent per-category Google Places lookups."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from saferoute.config import settings
from saferoute.schemas.places import PlaceType, SafePlace
from saferoute.services.errors import ProviderUnavailable
from saferoute.services.geo import format_distance, haversine_distance

logger = logging.getLogger(__name__)


PLACE_CATEGORIES = (
    "pharmacy",
    "gas_station",
    "restaurant",
    "grocery_or_supermarket",
    "subway_station",
    "gym",
)

RESULTS_PER_CATEGORY = 3
MAX_PLACES = 10


def map_place_type(types: List[str]) -> PlaceType:
    """Map Google Places types to our internal type."""
    if "pharmacy" in types:
        return PlaceType.PHARMACY
    if "gas_station" in types:
        return PlaceType.GAS_STATION
    if "restaurant" in types or "cafe" in types or "food" in types:
        return PlaceType.RESTAURANT
    if "supermarket" in types or "grocery_or_supermarket" in types:
        return PlaceType.GROCERY
    if "subway_station" in types or "transit_station" in types:
        return PlaceType.SUBWAY
    if "gym" in types or "health" in types:
        return PlaceType.GYM
    return PlaceType.OTHER


def is_open_24h(place: Dict[str, Any]) -> bool:
    """Guess whether a place is open around the clock from its name and type."""
    name = (place.get("name") or "").lower()
    types = place.get("types") or []

    if "gas_station" in types:
        return True
    if "pharmacy" in types and "shoppers" in name:
        return True
    if place.get("opening_hours", {}).get("open_now") is not None and "24" in name:
        return True
    return False


class PlacesClient:
    """Fetches nearby safe places, one Places request per category."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        url: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.url = url or settings.places_url
        self.client = client or httpx.AsyncClient(timeout=settings.provider_timeout_seconds)

    async def _search_category(
        self, category: str, lat: float, lng: float, radius: int
    ) -> List[SafePlace]:
        try:
            response = await self.client.get(
                self.url,
                params={
                    "location": f"{lat},{lng}",
                    "radius": str(radius),
                    "type": category,
                    "key": self.api_key,
                },
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Places {category} request failed: {e}")

        if response.status_code != 200:
            raise ProviderUnavailable(f"Places {category} request failed: HTTP {response.status_code}")

        data = response.json()
        status = data.get("status")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            raise ProviderUnavailable(f"Places {category} request failed: {status}")

        places = []
        for index, result in enumerate(data.get("results", [])[:RESULTS_PER_CATEGORY]):
            location = result.get("geometry", {}).get("location")
            if not location:
                continue
            place_lat, place_lng = location["lat"], location["lng"]
            distance = haversine_distance(lat, lng, place_lat, place_lng)
            place_id = result.get("place_id")
            places.append(SafePlace(
                id=place_id or f"place-{category}-{index}",
                name=result.get("name") or "Unknown Place",
                type=map_place_type(result.get("types") or []),
                lat=place_lat,
                lng=place_lng,
                open_24h=is_open_24h(result),
                distance=format_distance(distance),
                distance_meters=distance,
                place_id=place_id,
                address=result.get("vicinity") or result.get("formatted_address"),
            ))
        return places

    async def nearby_safe_places_with_failures(
        self, lat: float, lng: float, radius: Optional[int] = None
    ) -> Tuple[List[SafePlace], List[str]]:
        """Nearest safe places plus the categories whose lookup failed.

        Raises:
            ProviderUnavailable: every category failed
        """
        radius = radius or settings.places_radius_meters
        results = await asyncio.gather(
            *(self._search_category(c, lat, lng, radius) for c in PLACE_CATEGORIES),
            return_exceptions=True,
        )

        places: Dict[str, SafePlace] = {}
        failed: List[str] = []
        for category, result in zip(PLACE_CATEGORIES, results):
            if isinstance(result, BaseException):
                logger.warning(f"Omitting place category {category}: {result}")
                failed.append(category)
                continue
            for place in result:
                places.setdefault(place.id, place)

        if len(failed) == len(PLACE_CATEGORIES):
            raise ProviderUnavailable("All place lookups failed")

        nearest = sorted(places.values(), key=lambda p: (p.distance_meters, p.id))
        return nearest[:MAX_PLACES], failed

    async def nearby_safe_places(
        self, lat: float, lng: float, radius: Optional[int] = None
    ) -> List[SafePlace]:
        places, _ = await self.nearby_safe_places_with_failures(lat, lng, radius)
        return places

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
