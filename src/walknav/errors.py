# errors.py
# Route acquisition error taxonomy.
# Coordinate errors surface to the caller; everything else is degraded by the caller.

from typing import Optional


class RouteError(Exception):
    """Base class for route acquisition failures."""

    kind = "route_error"


class InvalidCoordinates(RouteError, ValueError):
    """Out-of-range or non-finite lng/lat. Raised before any network call."""

    kind = "invalid_coordinates"


class RouteTimeout(RouteError):
    """The request deadline passed or the caller cancelled the wait."""

    kind = "timeout"


class RouteNetworkError(RouteError):
    """Transport failure, non-2xx status or unreadable response body."""

    kind = "network_error"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NoRouteFound(RouteError):
    """The service answered but produced no usable path."""

    kind = "no_route_found"


class RouteUnavailable(RouteError):
    """
    Aggregate failure recorded when a profile degrades to a fallback route.

    Args:
        profile: Profile identifier that failed.
        cause:   Underlying RouteError.
    """

    kind = "route_unavailable"

    def __init__(self, profile: str, cause: Exception) -> None:
        super().__init__(f"{profile}: {cause}")
        self.profile = profile
        self.cause = cause
