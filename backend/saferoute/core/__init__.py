"""Core API error handling."""

from saferoute.core.exceptions import (
    APIException,
    ResourceNotFoundException,
    register_exception_handlers,
    sanitize_error_message,
    to_api_exception,
)

__all__ = [
    "APIException",
    "ResourceNotFoundException",
    "register_exception_handlers",
    "sanitize_error_message",
    "to_api_exception",
]
