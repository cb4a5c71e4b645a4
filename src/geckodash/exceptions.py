"""Custom exceptions for the token dashboard.

Every layer below the HTTP routes raises these (or returns booleans); only the
route layer turns them into status codes and JSON error envelopes.
"""


class DashboardError(Exception):
    """Base exception for all dashboard errors."""


class ValidationError(DashboardError):
    """Raised when request parameters are missing or malformed."""


class UnknownTimeframeError(ValidationError):
    """Raised when a timeframe identifier is not one of M1..D1."""

    def __init__(self, timeframe: str) -> None:
        super().__init__(f"Unknown timeframe: {timeframe!r}")
        self.timeframe = timeframe


class RateLimited(DashboardError):
    """Raised when the rate limiter denies an upstream call."""

    def __init__(self) -> None:
        super().__init__("Rate limit exceeded")


class UpstreamError(DashboardError):
    """Raised when the market-data API fails or returns an unusable payload.

    ``status`` carries the upstream HTTP status, or 0 when the failure happened
    below HTTP (connection error, timeout, undecodable body) or in the payload
    itself.
    """

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class StorageError(DashboardError):
    """Raised when a flat-file read or write fails."""
