"""Tests for the nearby safe places client."""

import httpx
import pytest

from saferoute.schemas.places import PlaceType
from saferoute.services.errors import ProviderUnavailable
from saferoute.services.geo import format_distance
from saferoute.services.places import (
    MAX_PLACES,
    PLACE_CATEGORIES,
    PlacesClient,
    is_open_24h,
    map_place_type,
)

LAT, LNG = 43.6532, -79.3832


def place(place_id, name, types, dlat, vicinity="1 Main St"):
    return {
        "place_id": place_id,
        "name": name,
        "types": types,
        "vicinity": vicinity,
        "geometry": {"location": {"lat": LAT + dlat, "lng": LNG}},
    }


def make_client(results_by_type, failing=()) -> PlacesClient:
    """Client backed by canned results keyed by the requested category."""

    def handler(request: httpx.Request) -> httpx.Response:
        category = request.url.params["type"]
        if category in failing:
            return httpx.Response(500)
        results = results_by_type.get(category, [])
        status = "OK" if results else "ZERO_RESULTS"
        return httpx.Response(200, json={"status": status, "results": results})

    return PlacesClient(
        api_key="test-key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        url="https://places.test/json",
    )


# =============================================================================
# Classification
# =============================================================================

class TestPlaceClassification:
    """Tests for mapping provider types and the 24h heuristic."""

    @pytest.mark.parametrize("types,expected", [
        (["pharmacy", "store"], PlaceType.PHARMACY),
        (["gas_station"], PlaceType.GAS_STATION),
        (["cafe", "food"], PlaceType.RESTAURANT),
        (["supermarket"], PlaceType.GROCERY),
        (["transit_station"], PlaceType.SUBWAY),
        (["gym"], PlaceType.GYM),
        (["park"], PlaceType.OTHER),
    ])
    def test_map_place_type(self, types, expected):
        assert map_place_type(types) == expected

    def test_gas_stations_are_open_24h(self):
        assert is_open_24h({"name": "Esso", "types": ["gas_station"]})

    def test_named_24_hour_place(self):
        assert is_open_24h({"name": "24 Hour Diner", "types": ["restaurant"], "opening_hours": {"open_now": True}})

    def test_ordinary_restaurant_is_not(self):
        assert not is_open_24h({"name": "Bistro", "types": ["restaurant"]})

    def test_format_distance(self):
        assert format_distance(850.4) == "850m"
        assert format_distance(1234) == "1.2km"


# =============================================================================
# Lookups
# =============================================================================

class TestNearbySafePlaces:
    """Tests for the merged per-category lookup."""

    @pytest.mark.asyncio
    async def test_results_sorted_by_distance(self):
        client = make_client({
            "pharmacy": [place("p1", "Shoppers Drug Mart", ["pharmacy"], 0.004)],
            "gas_station": [place("g1", "Esso", ["gas_station"], 0.001)],
            "restaurant": [place("r1", "Diner", ["restaurant"], 0.002)],
        })

        places = await client.nearby_safe_places(LAT, LNG, radius=1000)
        await client.close()

        assert [p.id for p in places] == ["g1", "r1", "p1"]
        assert places[0].open_24h is True
        assert places[0].distance.endswith("m")
        assert places[2].type == PlaceType.PHARMACY

    @pytest.mark.asyncio
    async def test_duplicates_across_categories_are_merged(self):
        shared = place("s1", "Corner Store", ["grocery_or_supermarket", "pharmacy"], 0.001)
        client = make_client({"pharmacy": [shared], "grocery_or_supermarket": [shared]})

        places = await client.nearby_safe_places(LAT, LNG)

        assert [p.id for p in places] == ["s1"]

    @pytest.mark.asyncio
    async def test_result_count_is_capped(self):
        results = {
            category: [place(f"{category}-{i}", f"{category} {i}", [category], 0.001 * (i + 1)) for i in range(5)]
            for category in PLACE_CATEGORIES
        }
        places = await make_client(results).nearby_safe_places(LAT, LNG)

        assert len(places) == MAX_PLACES

    @pytest.mark.asyncio
    async def test_failed_category_is_omitted(self):
        client = make_client(
            {"gas_station": [place("g1", "Esso", ["gas_station"], 0.001)]},
            failing={"pharmacy"},
        )

        places, failed = await client.nearby_safe_places_with_failures(LAT, LNG)

        assert [p.id for p in places] == ["g1"]
        assert failed == ["pharmacy"]

    @pytest.mark.asyncio
    async def test_every_category_failing_raises(self):
        client = make_client({}, failing=set(PLACE_CATEGORIES))

        with pytest.raises(ProviderUnavailable):
            await client.nearby_safe_places(LAT, LNG)

    @pytest.mark.asyncio
    async def test_nothing_nearby_is_empty(self):
        assert await make_client({}).nearby_safe_places(LAT, LNG) == []
