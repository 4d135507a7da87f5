# walknav
# Pedestrian navigation engine: route previews, live tracking and rerouting.

from .errors import (
    InvalidCoordinates,
    NoRouteFound,
    RouteError,
    RouteNetworkError,
    RouteTimeout,
    RouteUnavailable,
)
from .events import LoggingRenderer, RouteRenderer, line_feature
from .location import LocationOptions, LocationSource, ReplayLocationSource
from .models import (
    Instruction,
    NavigationState,
    Position,
    Profile,
    ProgressUpdate,
    Route,
    RoutePreview,
    RouteStatus,
    SessionState,
    SnapResult,
    StepProgress,
    TurnSign,
)
from .nav_config import NavConfig
from .navigator import NavigationSession
from .route_cache import RouteCache
from .route_client import RouteClient, straight_line_route

__all__ = [
    "InvalidCoordinates",
    "NoRouteFound",
    "RouteError",
    "RouteNetworkError",
    "RouteTimeout",
    "RouteUnavailable",
    "LoggingRenderer",
    "RouteRenderer",
    "line_feature",
    "LocationOptions",
    "LocationSource",
    "ReplayLocationSource",
    "Instruction",
    "NavigationState",
    "Position",
    "Profile",
    "ProgressUpdate",
    "Route",
    "RoutePreview",
    "RouteStatus",
    "SessionState",
    "SnapResult",
    "StepProgress",
    "TurnSign",
    "NavConfig",
    "NavigationSession",
    "RouteCache",
    "RouteClient",
    "straight_line_route",
]
