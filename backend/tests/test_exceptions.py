"""Tests for mapping domain errors onto API error responses."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from saferoute.core.exceptions import (
    register_exception_handlers,
    sanitize_error_message,
    to_api_exception,
)
from saferoute.services.errors import (
    DataIngestionError,
    EmptyCandidateError,
    InvalidTransition,
    NoRouteFound,
    ProviderUnavailable,
    ReportNotFound,
    RequestSuperseded,
)


def raising_app(exc: Exception) -> FastAPI:
    """A bare app whose only route raises ``exc`` unwrapped."""
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return app


# =============================================================================
# Domain error mapping
# =============================================================================

class TestDomainErrorMapping:
    """Tests for to_api_exception()."""

    @pytest.mark.parametrize("exc,status_code,code", [
        (NoRouteFound("none"), 422, "NO_ROUTE_FOUND"),
        (ProviderUnavailable("timeout", attempts=2), 503, "SERVICE_UNAVAILABLE"),
        (RequestSuperseded("newer"), 409, "REQUEST_SUPERSEDED"),
        (ReportNotFound("r1"), 404, "NOT_FOUND"),
        (InvalidTransition("cannot confirm"), 409, "INVALID_TRANSITION"),
        (EmptyCandidateError("no candidates"), 500, "INTERNAL_ERROR"),
    ])
    def test_status_and_code(self, exc, status_code, code):
        api_exc = to_api_exception(exc)

        assert api_exc.status_code == status_code
        assert api_exc.error_code == code

    def test_provider_detail_stays_internal(self):
        """The provider's own message is logged, never shown to the client."""
        api_exc = to_api_exception(ProviderUnavailable("REQUEST_DENIED key=abc"))

        assert "key=abc" not in api_exc.detail
        assert "key=abc" in api_exc.internal_message

    def test_transition_message_is_passed_through(self):
        api_exc = to_api_exception(InvalidTransition("Cannot confirm a cancelled placement"))
        assert api_exc.detail == "Cannot confirm a cancelled placement"

    def test_unmapped_domain_error_is_generic_500(self):
        api_exc = to_api_exception(DataIngestionError("bad row", row_number=3))

        assert api_exc.status_code == 500
        assert "bad row" not in api_exc.detail


# =============================================================================
# Registered handlers
# =============================================================================

class TestRegisteredHandlers:
    """Domain errors raised straight out of a route are rendered by the handler."""

    def test_unwrapped_domain_error_is_rendered(self):
        client = TestClient(raising_app(NoRouteFound("none")))

        response = client.get("/boom")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "NO_ROUTE_FOUND"
        assert response.json()["error"]["request_id"]

    def test_unexpected_error_is_sanitized(self):
        client = TestClient(raising_app(RuntimeError("SELECT * FROM secrets")), raise_server_exceptions=False)

        response = client.get("/boom")

        assert response.status_code == 500
        assert "SELECT" not in response.text

    def test_sanitize_keeps_plain_messages(self):
        assert sanitize_error_message("Grid not found") == "Grid not found"
        assert sanitize_error_message("File \"/home/app/x.py\"").startswith("An internal error")
        assert sanitize_error_message("x" * 300).endswith("...")
