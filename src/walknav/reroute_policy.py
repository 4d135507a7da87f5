# reroute_policy.py
# Debounced off-route detection and reroute cooldown.
# Pure function, no clocks: the caller passes "now".

from typing import Optional

from .models import ReroutePolicyResult
from .nav_config import NavConfig


def should_reroute(
    off_distance_m: float,
    off_route_since: Optional[float],
    now: float,
    last_reroute_at: Optional[float],
    config: Optional[NavConfig] = None,
) -> ReroutePolicyResult:
    """
    Decide whether a new route should be requested.

    Args:
        off_distance_m:  Distance from the route polyline (m).
        off_route_since: When the position first went off-route, or None.
        now:             Current time (s, same clock as the other timestamps).
        last_reroute_at: Time of the last successful reroute, or None.
        config:          NavConfig with threshold, grace period and cooldown.

    Returns:
        ReroutePolicyResult. A trigger keeps off_route_since; the caller
        clears it after a successful reroute.
    """
    config = config or NavConfig()

    if off_distance_m <= config.off_route_threshold_m:
        return ReroutePolicyResult(trigger=False, off_route_since=None)

    # First detection starts the timer
    if off_route_since is None:
        return ReroutePolicyResult(trigger=False, off_route_since=now)

    if now - off_route_since < config.off_route_grace_s:
        return ReroutePolicyResult(trigger=False, off_route_since=off_route_since)

    cooled_down = last_reroute_at is None or now - last_reroute_at >= config.reroute_cooldown_s
    return ReroutePolicyResult(trigger=cooled_down, off_route_since=off_route_since)
