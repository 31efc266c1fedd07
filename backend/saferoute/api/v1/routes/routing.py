"""Route comparison endpoint."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from saferoute.api.deps import get_request_id, get_route_service
from saferoute.schemas.routing import RouteCompareRequest, RouteComparisonResponse
from saferoute.services.route_service import RouteService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/compare", response_model=RouteComparisonResponse)
async def compare_routes(
    compare_request: RouteCompareRequest,
    request: Request,
    service: RouteService = Depends(get_route_service),
    x_session_id: Optional[str] = Header(default=None, max_length=128),
) -> RouteComparisonResponse:
    """
    Compare walking route alternatives between two points.

    Every alternative is scored for crime density, street lighting and
    nearby community reports. The response carries all scored routes plus
    the shortest, safest and balanced picks, with `selected` set to the
    one asked for.

    Clients that send `X-Session-ID` get last-request-wins semantics: a
    request overtaken by a newer one from the same session returns 409.
    """
    request_id = get_request_id(request)

    response = await service.compare(
        compare_request.origin,
        compare_request.destination,
        compare_request.selection,
        session_id=x_session_id,
    )

    comparison = response.comparison
    logger.info(
        f"[{request_id}] Compared {len(comparison.routes)} routes "
        f"(shortest={comparison.shortest_index}, safest={comparison.safest_index}, "
        f"balanced={comparison.balanced_index}, degraded={comparison.degraded}, "
        f"stale={comparison.stale}, cached={response.cached})"
    )
    return response
