"""Dashboard error taxonomy.

Every failure the dashboard handles falls into one of these categories. None of
them is fatal: callers catch them at the operation boundary, report feedback and
leave the triggering control re-enabled.
"""
from typing import Optional


class DashboardError(Exception):
    """Base class for dashboard errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(DashboardError):
    """Fetch failure or non-2xx response from the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(NetworkError):
    """The backend did not answer before the request deadline."""


class ConflictError(NetworkError):
    """The action target was already transitioned by another actor."""


class ValidationError(DashboardError):
    """Input rejected locally before any network call."""
