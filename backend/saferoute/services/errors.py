"""Domain error taxonomy for ingestion, scoring and provider calls."""

from typing import Optional


class SafeRouteError(Exception):
    """Base class for all scoring-core errors."""
    pass


class DataIngestionError(SafeRouteError):
    """A dataset row is malformed or missing a required field.

    Raised per row and absorbed by the ingestion layer, which counts it.
    """

    def __init__(self, message: str, row_number: Optional[int] = None):
        self.row_number = row_number
        if row_number is not None:
            message = f"row {row_number}: {message}"
        super().__init__(message)


class EmptyDatasetError(SafeRouteError):
    """A dataset produced zero valid points.

    Recorded as a warning on the ingestion result; grid building still
    succeeds with an empty grid.
    """

    def __init__(self, dataset: str):
        self.dataset = dataset
        super().__init__(f"{dataset} dataset yielded zero valid points")


class NoRouteFound(SafeRouteError):
    """The directions provider returned zero routes."""
    pass


class ProviderUnavailable(SafeRouteError):
    """An external provider timed out or failed after retries."""

    def __init__(self, message: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class EmptyCandidateError(SafeRouteError, ValueError):
    """compare_routes was called with no candidates."""
    pass


class RequestSuperseded(SafeRouteError):
    """A newer route request from the same session replaced this one."""
    pass


class InvalidTransition(SafeRouteError):
    """A report placement action is not allowed in the current state."""
    pass


class ReportNotFound(SafeRouteError):
    """No community report exists with the given id."""
    pass
