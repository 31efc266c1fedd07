"""Request logging middleware and logging setup."""

import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from saferoute.config import settings


# Configure logger
logger = logging.getLogger("api.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all incoming requests and outgoing responses.

    Features:
    - Unique request ID for tracing, echoed in X-Request-ID
    - Route session ID (X-Session-ID) when the client sends one
    - Request duration tracking
    - Log level chosen by status code
    """

    # Paths with reduced logging (health checks, etc.)
    QUIET_PATHS = {"/health", "/api/v1/health", "/api/v1/health/ready"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate unique request ID; error handlers read it from state
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        if not settings.log_requests:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.time()

        method = request.method
        path = request.url.path
        query = str(request.url.query) if request.url.query else ""
        session_id = request.headers.get("X-Session-ID")
        is_quiet_path = path in self.QUIET_PATHS

        if not is_quiet_path:
            logger.info(
                f"[{request_id}] --> {method} {path}"
                f"{('?' + query) if query else ''} "
                f"from {self._get_client_ip(request)}"
                f"{(' session=' + session_id[:16]) if session_id else ''}"
            )

        response: Optional[Response] = None
        error = None
        try:
            response = await call_next(request)
        except Exception as e:
            error = str(e)
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000
            status_code = response.status_code if response is not None else 500

            if response is not None:
                response.headers["X-Request-ID"] = request_id

            log_message = (
                f"[{request_id}] <-- {status_code} "
                f"{method} {path} "
                f"({duration_ms:.2f}ms)"
            )
            if error:
                log_message += f" ERROR: {error}"

            # Choose log level based on status code
            if status_code >= 500:
                logger.error(log_message)
            elif status_code >= 400:
                logger.warning(log_message)
            elif not is_quiet_path:
                logger.info(log_message)
            else:
                logger.debug(log_message)

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request, handling proxies."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"


def setup_logging():
    """Configure logging for the application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Set specific logger levels
    logging.getLogger("api.requests").setLevel(log_level)
    logging.getLogger("saferoute").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
