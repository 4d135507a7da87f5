# events.py
# Outbound events from a navigation session to whatever draws the map.
# The engine never calls back into the UI beyond this interface.

import logging
from typing import Any, Dict, Optional

from shapely.geometry import LineString, mapping

from .guidance import fmt_distance_imperial, fmt_eta, instruction_label
from .models import Profile, ProgressUpdate, Route

# Standard Python logger, configure at app entry point if needed
logger = logging.getLogger(__name__)

Feature = Dict[str, Any]


def line_feature(route: Route) -> Feature:
    """
    GeoJSON LineString feature for a route.

    Args:
        route: Route to draw.

    Returns:
        Feature dict with the route's profile and fallback flag as properties.
    """
    geometry = mapping(LineString(route.line_coordinates()))
    return {
        "type": "Feature",
        "geometry": {
            "type": geometry["type"],
            "coordinates": [list(c) for c in geometry["coordinates"]],
        },
        "properties": {
            "profile": route.profile.value if route.profile else None,
            "distance_m": route.distance_m,
            "duration_s": route.duration_s,
            "fallback": route.is_fallback,
        },
    }


class RouteRenderer:
    """
    Consumer of session events. Every method is a no-op here;
    subclass and override what the map layer needs.
    """

    def set_route_geometry(self, profile: Profile, feature: Optional[Feature]) -> None:
        """Draw (or with None, blank) the line for one profile."""

    def clear_routes(self) -> None:
        """Remove every route line."""

    def on_progress(self, update: ProgressUpdate) -> None:
        """Called once per processed position update."""


class LoggingRenderer(RouteRenderer):
    """
    Writes every renderer call to the log. Useful headless and in simulations.

    Args:
        level: Logging level for progress lines.
    """

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def set_route_geometry(self, profile: Profile, feature: Optional[Feature]) -> None:
        if feature is None:
            logger.info(f"[{profile.name}] route hidden")
            return
        props = feature.get("properties", {})
        kind = "straight line" if props.get("fallback") else "route"
        logger.info(
            f"[{profile.name}] {kind}: {fmt_distance_imperial(props.get('distance_m') or 0)}, "
            f"{len(feature['geometry']['coordinates'])} points"
        )

    def clear_routes(self) -> None:
        logger.info("Routes cleared.")

    def on_progress(self, update: ProgressUpdate) -> None:
        if update.instruction is None:
            logger.log(self.level, f"[{update.status.value}] no active instruction")
            return
        logger.log(
            self.level,
            f"[{update.status.value}] step {update.step_index}: {instruction_label(update.instruction)} "
            f"in {fmt_distance_imperial(update.step_remaining_m or 0)} · "
            f"{fmt_distance_imperial(update.total_remaining_m or 0)} left · "
            f"ETA {fmt_eta(update.eta_s or 0)}"
            + (f" · {update.snap.off_distance_m:.0f} m off route" if update.off_route and update.snap else ""),
        )
