# main.py
# Entry point: simulates a walk feeding positions into a NavigationSession.
# In production, replace the ReplayLocationSource with your real location stream.
#
# Usage:
#   python -m walknav.main --profile cool
#   python -m walknav.main --origin -97.743,30.267 --destination -97.740,30.270 --detour

import argparse
import logging
import math
from typing import List, Optional

from .events import LoggingRenderer
from .geo_utils import M_PER_DEG_LAT, M_PER_DEG_LON_EQUATOR
from .guidance import preview_steps
from .line_tracker import snap
from .location import ReplayLocationSource
from .models import Position, Profile, ProgressUpdate, Route, RouteStatus
from .nav_config import NavConfig
from .navigator import NavigationSession
from .route_client import RouteClient

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# Simulation coordinates (downtown Austin)
# ------------------------------------------------------------------
ORIGIN      = Position(-97.743, 30.267)
DESTINATION = Position(-97.740, 30.270)


class _SimulationRenderer(LoggingRenderer):
    """Logs like LoggingRenderer and stops the replay on arrival."""

    def __init__(self) -> None:
        super().__init__()
        self.source: Optional[ReplayLocationSource] = None
        self.last_status = RouteStatus.INACTIVE

    def on_progress(self, update: ProgressUpdate) -> None:
        super().on_progress(update)
        self.last_status = update.status
        if update.status == RouteStatus.ARRIVED and self.source is not None:
            self.source.clear_watch()


def parse_lnglat(text: str) -> Position:
    parts = text.split(",")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"expected 'lng,lat', got {text!r}")
    return Position(lng=float(parts[0]), lat=float(parts[1]))


def walk_along(route: Route, step_m: float = 10.0, detour_m: float = 0.0) -> List[Position]:
    """
    Positions every step_m metres along a route polyline.

    With detour_m > 0 the middle third of the walk drifts that far to the
    left of the line, which is enough to trigger a reroute.
    """
    samples: List[Position] = []
    total = route.polyline_length_m
    if total <= 0:
        return list(route.polyline)

    d = 0.0
    while d <= total:
        samples.append(_point_at(route, d))
        d += step_m
    samples.append(route.polyline[-1])

    if detour_m > 0 and len(samples) > 6:
        lo, hi = len(samples) // 3, 2 * len(samples) // 3
        for i in range(lo, hi):
            samples[i] = _offset_left(route, samples[i], detour_m)
    return samples


def _offset_left(route: Route, position: Position, offset_m: float) -> Position:
    """Move a point on the route offset_m metres to the left of its segment."""
    n = max(1, snap(route, position).next_vertex_index)
    a, b = route.polyline[n - 1], route.polyline[n]
    kx = M_PER_DEG_LON_EQUATOR * math.cos(math.radians((a.lat + b.lat) / 2))
    dx, dy = (b.lng - a.lng) * kx, (b.lat - a.lat) * M_PER_DEG_LAT
    length = math.hypot(dx, dy)
    if length == 0:
        return position
    return Position(
        position.lng - dy / length * offset_m / kx,
        position.lat + dx / length * offset_m / M_PER_DEG_LAT,
    )


def _point_at(route: Route, distance_m: float) -> Position:
    cum = route.cumulative_m
    for i in range(len(route.polyline) - 1):
        if cum[i + 1] >= distance_m:
            seg = cum[i + 1] - cum[i]
            t = 0.0 if seg == 0 else (distance_m - cum[i]) / seg
            a, b = route.polyline[i], route.polyline[i + 1]
            return Position(a.lng + t * (b.lng - a.lng), a.lat + t * (b.lat - a.lat))
    return route.polyline[-1]


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay a simulated walk through the navigation engine.")
    parser.add_argument("--origin", type=parse_lnglat, default=ORIGIN, help="lng,lat")
    parser.add_argument("--destination", type=parse_lnglat, default=DESTINATION, help="lng,lat")
    parser.add_argument("--profile", default="balanced", help="fast | balanced | cool")
    parser.add_argument("--base-url", default=None, help="routing service base URL (overrides GH_BASE_URL)")
    parser.add_argument("--step", type=float, default=10.0, help="metres between simulated fixes")
    parser.add_argument("--detour", action="store_true", help="wander off the route midway (pair with --interval so the off-route grace period elapses)")
    parser.add_argument("--interval", type=float, default=0.0, help="seconds between fixes")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    # ------------------------------------------------------------------
    # Logging setup: configure once here, all modules inherit
    # ------------------------------------------------------------------
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    overrides = {"gh_base_url": args.base_url} if args.base_url else {}
    config = NavConfig.from_env(**overrides)
    profile = Profile.parse(args.profile)

    with RouteClient(config) as client:
        renderer = _SimulationRenderer()
        session = NavigationSession(client, renderer, config)

        # 1. Preview all three profiles
        preview = session.choose_destination(args.destination, origin=args.origin)
        for p, (duration_s, distance_m) in preview.stats().items():
            logger.info(f"{p.name:<8} {distance_m:6.0f} m  {duration_s / 60:5.1f} min")

        # 2. Pick one
        success, msg = session.start_nav(profile)
        if not success:
            logger.error(f"Could not start navigation: {msg}")
            return
        for line in preview_steps(session.route, 0).lines():
            logger.info(line)

        # 3. Replay a walk along it
        samples = walk_along(session.route, step_m=args.step, detour_m=60.0 if args.detour else 0.0)
        source = ReplayLocationSource(samples, interval_s=args.interval)
        renderer.source = source
        session.follow(source)
        delivered = source.run()

        logger.info(f"Walk replay finished after {delivered} fixes: {renderer.last_status.value}.")
        session.end()


if __name__ == "__main__":
    main()
