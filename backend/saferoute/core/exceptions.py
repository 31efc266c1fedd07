"""Error responses for the API.

Domain errors from the services are mapped to HTTP responses here, in one
place, so routes simply let them propagate.
"""

import logging
import traceback
from typing import Any, Dict, Optional, Tuple, Type
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from saferoute.config import settings
from saferoute.services.errors import (
    EmptyCandidateError,
    InvalidTransition,
    NoRouteFound,
    ProviderUnavailable,
    ReportNotFound,
    RequestSuperseded,
    SafeRouteError,
)

logger = logging.getLogger("api.errors")

GENERIC_MESSAGE = "An unexpected error occurred. Please try again later."


# =============================================================================
# API exceptions
# =============================================================================

class APIException(Exception):
    """An error with a client-safe message and a machine-readable code."""

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "An error occurred",
        error_code: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code or "INTERNAL_ERROR"
        self.internal_message = internal_message
        super().__init__(self.detail)


class ResourceNotFoundException(APIException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(status_code=404, detail=f"{resource} not found", error_code="NOT_FOUND")


# Domain error -> (status, code, client message). None keeps str(exc).
DOMAIN_ERRORS: Dict[Type[SafeRouteError], Tuple[int, str, Optional[str]]] = {
    NoRouteFound: (422, "NO_ROUTE_FOUND", "No walking route found between these points"),
    ProviderUnavailable: (503, "SERVICE_UNAVAILABLE", "Service temporarily unavailable. Please try again later."),
    RequestSuperseded: (409, "REQUEST_SUPERSEDED", "A newer route request replaced this one"),
    ReportNotFound: (404, "NOT_FOUND", "Report not found"),
    InvalidTransition: (409, "INVALID_TRANSITION", None),
    EmptyCandidateError: (500, "INTERNAL_ERROR", GENERIC_MESSAGE),
}


def to_api_exception(exc: SafeRouteError) -> APIException:
    """Translate a domain error into the API error the client sees."""
    for error_type in type(exc).__mro__:
        if error_type in DOMAIN_ERRORS:
            status_code, error_code, message = DOMAIN_ERRORS[error_type]
            return APIException(
                status_code=status_code,
                detail=message or str(exc),
                error_code=error_code,
                internal_message=f"{type(exc).__name__}: {exc}",
            )
    return APIException(detail=GENERIC_MESSAGE, internal_message=f"{type(exc).__name__}: {exc}")


# =============================================================================
# Response body
# =============================================================================

def create_error_response(
    error_code: str,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Body shared by every error: {"error": {code, message, request_id}}."""
    error: Dict[str, Any] = {"code": error_code, "message": message}
    if request_id:
        error["request_id"] = request_id
    if details and not settings.is_production():
        error["details"] = details
    return {"error": error}


# Substrings that mean a message leaks paths, SQL or credentials
SENSITIVE_MARKERS = (
    "/saferoute/",
    "/usr/",
    "/home/",
    "traceback",
    "file \"",
    "select ",
    "insert ",
    "update ",
    "delete ",
    "aiosqlite",
    "sqlalchemy",
    "password",
    "secret",
    "api_key",
    "key=",
)


def sanitize_error_message(message: str) -> str:
    """Replace leaky server-side messages with a generic one and cap length."""
    lowered = message.lower()
    if any(marker in lowered for marker in SENSITIVE_MARKERS):
        return "An internal error occurred. Please try again later."
    return message if len(message) <= 200 else message[:200] + "..."


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid4())[:8]


def _json_error(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


# =============================================================================
# Handlers
# =============================================================================

async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    request_id = get_request_id(request)

    log_message = f"[{request_id}] {exc.error_code}: {exc.detail}"
    if exc.internal_message:
        log_message += f" | {exc.internal_message}"
    if exc.status_code >= 500:
        logger.error(log_message)
    else:
        logger.warning(log_message)

    detail = sanitize_error_message(exc.detail) if exc.status_code >= 500 else exc.detail
    return _json_error(exc.status_code, create_error_response(exc.error_code, detail, request_id))


async def domain_exception_handler(request: Request, exc: SafeRouteError) -> JSONResponse:
    """Map scoring, provider and report errors raised anywhere under a route."""
    return await api_exception_handler(request, to_api_exception(exc))


HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    request_id = get_request_id(request)
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"[{request_id}] HTTP {exc.status_code}: {detail}")
        detail = sanitize_error_message(detail)
    else:
        logger.info(f"[{request_id}] HTTP {exc.status_code}: {detail}")

    error_code = HTTP_ERROR_CODES.get(exc.status_code, "ERROR")
    return _json_error(exc.status_code, create_error_response(error_code, detail, request_id))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report bad fields by location only; pydantic's value errors are generalized."""
    request_id = get_request_id(request)

    fields = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": "Invalid value provided"
            if "value_error" in str(error.get("type", ""))
            else error["msg"],
        }
        for error in exc.errors()
    ]
    logger.info(f"[{request_id}] Validation error in {len(fields)} field(s)")

    body = create_error_response(
        "VALIDATION_ERROR", "Invalid request data", request_id, details={"fields": fields}
    )
    return _json_error(422, body)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = get_request_id(request)
    logger.error(f"[{request_id}] Unhandled {type(exc).__name__}: {exc}")
    if settings.debug:
        logger.error(traceback.format_exc())
    return _json_error(500, create_error_response("INTERNAL_ERROR", GENERIC_MESSAGE, request_id))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(SafeRouteError, domain_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
