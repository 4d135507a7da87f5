# navigator.py
# Public entry point for the navigation engine.
# Owns session state only; snapping, progress and reroute decisions are
# delegated to specialist modules.

import logging
import time
from dataclasses import dataclass
from concurrent.futures import Future
from typing import Callable, Optional, Tuple

from . import line_tracker, progress
from .errors import RouteError
from .events import RouteRenderer, line_feature
from .guidance import remaining_from_steps
from .location import LocationSource
from .models import (
    NavigationState,
    Position,
    Profile,
    ProgressUpdate,
    Route,
    RoutePreview,
    RouteStatus,
    SessionState,
)
from .nav_config import NavConfig
from .reroute_policy import should_reroute
from .route_client import RouteClient, validate_positions

logger = logging.getLogger(__name__)


@dataclass
class _PendingReroute:
    future: Future
    requested_at: float
    deadline: float


class NavigationSession:
    """
    State machine for one walking navigation.

    Typical lifecycle:
        session = NavigationSession(client, renderer)
        session.choose_destination(dest, origin=here)   # IDLE → PREVIEWING
        session.start_nav(Profile.COOL)                 # PREVIEWING → NAVIGATING

        # Location loop (or session.follow(source)):
        update = session.update(Position(lng, lat))

        session.end()                                   # → ENDED → IDLE

    Position updates must be delivered one at a time. Reroute requests run in
    the client's worker pool; their results are applied on the next update,
    so state is only ever mutated from the update thread.

    Args:
        client:   RouteClient used for previews and reroutes.
        renderer: Receiver of geometry and progress events.
        config:   NavConfig; defaults to the client's config.
        clock:    Monotonic time source in seconds.
    """

    def __init__(
        self,
        client: RouteClient,
        renderer: Optional[RouteRenderer] = None,
        config: Optional[NavConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or getattr(client, "config", None) or NavConfig()
        self._client = client
        self._renderer = renderer or RouteRenderer()
        self._clock = clock

        self._state = SessionState.IDLE
        self._destination: Optional[Position] = None
        self._preview: Optional[RoutePreview] = None
        self._nav: Optional[NavigationState] = None
        self._pending: Optional[_PendingReroute] = None
        self._last_fix: Optional[Position] = None
        self._source: Optional[LocationSource] = None

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def destination(self) -> Optional[Position]:
        return self._destination

    @property
    def preview(self) -> Optional[RoutePreview]:
        return self._preview

    @property
    def navigation(self) -> Optional[NavigationState]:
        return self._nav

    @property
    def route(self) -> Optional[Route]:
        return self._nav.route if self._nav else None

    @property
    def step_index(self) -> int:
        return self._nav.step_index if self._nav else 0

    @property
    def reroute_pending(self) -> bool:
        return self._pending is not None

    @property
    def last_fix(self) -> Optional[Position]:
        return self._last_fix

    # ------------------------------------------------------------------
    # Destination and preview
    # ------------------------------------------------------------------

    def choose_destination(
        self,
        destination: Position,
        origin: Optional[Position] = None,
    ) -> Optional[RoutePreview]:
        """
        Pick a destination and compute the three-profile preview.

        Without an origin or a previous fix the preview is computed on the
        next position update.

        Raises:
            InvalidCoordinates: destination or origin out of range.
        """
        validate_positions(destination)
        if origin is not None:
            validate_positions(origin)

        if self._state == SessionState.NAVIGATING:
            logger.info("New destination chosen while navigating; ending current trip.")
            self.end()

        self._destination = destination
        self._preview = None
        self._set_state(SessionState.PREVIEWING)
        self._renderer.clear_routes()

        origin = origin or self._last_fix
        if origin is None:
            logger.info("Destination set; preview waits for the first position fix.")
            return None
        return self._compute_preview(origin)

    def clear_destination(self) -> None:
        """Drop the destination and any preview."""
        if self._state == SessionState.NAVIGATING:
            self.end()
            return
        self._destination = None
        self._preview = None
        self._renderer.clear_routes()
        self._set_state(SessionState.IDLE)

    def _compute_preview(self, origin: Position) -> RoutePreview:
        logger.info(f"Calculating routes: {origin} → {self._destination}")
        preview = self._client.compute_all_profiles(origin, self._destination)
        self._preview = preview
        for profile, result in preview.results.items():
            self._renderer.set_route_geometry(profile, line_feature(result.route))
        return preview

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start_nav(self, profile: Profile) -> Tuple[bool, str]:
        """
        Begin navigating the previewed route for a profile.

        Returns:
            (success, message)
        """
        if self._state != SessionState.PREVIEWING or self._preview is None:
            msg = "No route preview available; choose a destination first."
            logger.warning(msg)
            return False, msg

        route = self._preview.route_for(profile)
        if route is None:
            return False, f"No route for profile {profile.value}."

        now = self._clock()
        self._nav = NavigationState(
            profile=profile,
            route=route,
            destination=self._destination,
            started_at=now,
        )
        self._set_state(SessionState.NAVIGATING)

        for other in Profile:
            if other is not profile:
                self._renderer.set_route_geometry(other, None)
        self._renderer.set_route_geometry(profile, line_feature(route))

        total = remaining_from_steps(route, 0)
        first = self._nav.current_instruction
        step_remaining_m = first.distance_m if first else 0.0
        self._renderer.on_progress(ProgressUpdate(
            status=RouteStatus.PROGRESSING,
            position=self._last_fix or route.origin,
            step_index=0,
            instruction=first,
            step_remaining_m=step_remaining_m,
            total_remaining_m=total,
            eta_s=progress.estimate_eta(route, 0, step_remaining_m, total, self.config),
        ))

        kind = "straight-line fallback" if route.is_fallback else "route"
        logger.info(f"Navigation started on {profile.value} {kind}, {len(route.instructions)} steps.")
        return True, f"Route ready. {len(route.instructions)} steps."

    def follow(self, source: LocationSource) -> None:
        """Feed update() from a location source (one watch per session)."""
        if self._source is not None:
            self._source.clear_watch()
        source.watch(self.update)
        self._source = source

    def end(self) -> None:
        """End navigation, discard any in-flight reroute and clear the map."""
        if self._pending is not None:
            logger.info("Discarding in-flight reroute.")
            self._pending = None

        self._set_state(SessionState.ENDED)
        self._nav = None
        self._destination = None
        self._preview = None

        if self._source is not None:
            self._source.clear_watch()
            self._source = None

        self._renderer.clear_routes()
        self._set_state(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Position update: call this on every location fix
    # ------------------------------------------------------------------

    def update(self, position: Position) -> Optional[ProgressUpdate]:
        """
        Process a new position.

        Returns:
            ProgressUpdate while navigating, otherwise None.
        """
        if not position.is_valid():
            logger.warning(f"Ignoring invalid position fix: {position}")
            return None
        self._last_fix = position

        if self._state == SessionState.PREVIEWING:
            if self._preview is None and self._destination is not None:
                self._compute_preview(position)
            return None

        if self._state != SessionState.NAVIGATING or self._nav is None:
            return None

        nav = self._nav
        now = self._clock()
        rerouted = self._collect_reroute(now)

        snap = line_tracker.snap(nav.route, position)
        step = progress.advance(nav.route, nav.step_index, snap, self.config)
        nav.set_step(step.step_index)

        decision = should_reroute(
            snap.off_distance_m,
            nav.off_route_since,
            now,
            nav.last_reroute_at,
            self.config,
        )
        if nav.off_route_since is None and decision.off_route_since is not None:
            logger.info(f"Off route by {snap.off_distance_m:.0f} m.")
        nav.off_route_since = decision.off_route_since

        if decision.trigger and self._pending is None:
            self._request_reroute(position, now)

        off_route = nav.off_route_since is not None
        last_step = nav.step_index >= len(nav.route.instructions) - 1
        if rerouted:
            status = RouteStatus.REROUTED
        elif off_route:
            status = RouteStatus.OFF_ROUTE
        elif last_step and step.total_remaining_m < self.config.arrival_threshold_m:
            status = RouteStatus.ARRIVED
        elif step.advanced:
            status = RouteStatus.STEP_ADVANCED
        else:
            status = RouteStatus.PROGRESSING

        update = ProgressUpdate(
            status=status,
            position=position,
            snap=snap,
            step_index=nav.step_index,
            instruction=nav.current_instruction,
            step_remaining_m=step.step_remaining_m,
            total_remaining_m=step.total_remaining_m,
            eta_s=step.eta_s,
            off_route=off_route,
            rerouted=rerouted,
        )
        self._renderer.on_progress(update)
        return update

    # ------------------------------------------------------------------
    # Rerouting
    # ------------------------------------------------------------------

    def _request_reroute(self, position: Position, now: float) -> None:
        nav = self._nav
        try:
            future = self._client.request_route(position, nav.destination, nav.profile)
        except RouteError as e:
            logger.warning(f"Reroute not requested: {e}")
            return
        self._pending = _PendingReroute(
            future=future,
            requested_at=now,
            deadline=now + self.config.request_timeout_s,
        )
        logger.info(f"Rerouting from {position} on {nav.profile.value}.")

    def _collect_reroute(self, now: float) -> bool:
        """Apply a finished reroute. Returns True when the route was replaced."""
        pending = self._pending
        if pending is None:
            return False

        if not pending.future.done():
            if now >= pending.deadline:
                self._pending = None
                logger.warning("Reroute timed out; staying on the current route.")
            return False

        self._pending = None
        try:
            route = pending.future.result()
        except RouteError as e:
            logger.warning(f"Reroute failed, will retry: {e}")
            return False
        except Exception:
            logger.exception("Unexpected reroute failure, will retry.")
            return False

        self._nav.replace_route(route, now)
        self._renderer.set_route_geometry(self._nav.profile, line_feature(route))
        logger.info(
            f"Rerouted: {route.distance_m:.0f} m, {len(route.instructions)} steps "
            f"(requested {now - pending.requested_at:.1f} s ago)."
        )
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        if state != self._state:
            logger.info(f"Session {self._state.value} → {state.value}")
            self._state = state
