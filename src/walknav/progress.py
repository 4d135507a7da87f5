# progress.py
# Step advancement, remaining distance and ETA from a snap result.
# Stateless: the session owns the step index and feeds it back in.

from typing import Optional

from .models import Route, SnapResult, StepProgress
from .nav_config import NavConfig


def step_remaining(route: Route, step_index: int, snap: SnapResult) -> float:
    """
    Metres from the snapped point to the end vertex of the current instruction.

    Zero once the snapped point has moved past that vertex.
    """
    if not route.instructions:
        return 0.0
    end_idx = route.instructions[step_index].end_index
    nxt = snap.next_vertex_index
    if nxt > end_idx or nxt >= len(route.polyline):
        return 0.0
    leftover = snap.closest.distance_to(route.polyline[nxt])
    return route.length_between(nxt, end_idx) + leftover


def estimate_eta(
    route: Route,
    step_index: int,
    step_remaining_m: float,
    total_remaining_m: float,
    config: Optional[NavConfig] = None,
) -> float:
    """
    Seconds to destination.

    Uses per-instruction durations when the route carries them, otherwise the
    route's average speed (floored at min_eta_speed_mps).
    """
    config = config or NavConfig()
    steps = route.instructions

    if steps and sum(s.duration_ms for s in steps) > 0:
        current = steps[step_index]
        if current.distance_m > 0:
            fraction = min(1.0, step_remaining_m / current.distance_m)
        else:
            fraction = 0.0
        remaining_ms = fraction * current.duration_ms
        remaining_ms += sum(s.duration_ms for s in steps[step_index + 1:])
        return max(0.0, remaining_ms / 1000)

    avg_speed = route.distance_m / max(1.0, route.duration_s)
    return max(0.0, total_remaining_m / max(config.min_eta_speed_mps, avg_speed))


def advance(
    route: Route,
    step_index: int,
    snap: SnapResult,
    config: Optional[NavConfig] = None,
) -> StepProgress:
    """
    Derive progress for the current position.

    The step index moves forward by at most one per call, even when the
    position jumps past several instructions.

    Args:
        route:      Active route.
        step_index: Current instruction index.
        snap:       LineTracker output for this position.
        config:     NavConfig with thresholds.

    Returns:
        StepProgress with the (possibly incremented) step index.
    """
    config = config or NavConfig()
    last = max(0, len(route.instructions) - 1)
    step_index = max(0, min(step_index, last))

    total_remaining = max(0.0, route.distance_m - snap.traveled_m)
    remaining = step_remaining(route, step_index, snap)

    advanced = False
    if remaining < config.step_advance_threshold_m and step_index < last:
        step_index += 1
        advanced = True
        remaining = step_remaining(route, step_index, snap)

    eta = estimate_eta(route, step_index, remaining, total_remaining, config)
    return StepProgress(
        step_index=step_index,
        step_remaining_m=remaining,
        total_remaining_m=total_remaining,
        eta_s=eta,
        advanced=advanced,
    )
