"""Nearby safe places endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from saferoute.api.deps import get_places_client
from saferoute.schemas.places import NearbyPlacesResponse
from saferoute.services.places import PlacesClient

router = APIRouter()


@router.get("/nearby", response_model=NearbyPlacesResponse)
async def nearby_safe_places(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[int] = Query(None, ge=50, le=50000, description="Search radius in meters"),
    client: PlacesClient = Depends(get_places_client),
) -> NearbyPlacesResponse:
    """
    Find the nearest public places likely to be open and staffed.

    Categories are searched concurrently; a category whose lookup fails is
    left out and listed in `failed_categories`.
    """
    places, failed = await client.nearby_safe_places_with_failures(lat, lng, radius)
    return NearbyPlacesResponse(places=places, failed_categories=failed)
