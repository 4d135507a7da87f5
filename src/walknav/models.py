# models.py
# Shared data structures and enums used across all modules.

import math
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Dict, List, Optional, Tuple

import numpy as np

from .geo_utils import haversine_distance, segment_lengths


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Position:
    """Immutable geographic position, optionally timestamped."""
    lng: float
    lat: float
    timestamp: Optional[float] = field(default=None, compare=False)

    def is_valid(self) -> bool:
        return (
            isinstance(self.lng, (int, float))
            and isinstance(self.lat, (int, float))
            and math.isfinite(self.lng)
            and math.isfinite(self.lat)
            and -180 <= self.lng <= 180
            and -90 <= self.lat <= 90
        )

    def as_lnglat(self) -> List[float]:
        return [self.lng, self.lat]

    def distance_to(self, other: "Position") -> float:
        """Great-circle distance in metres."""
        return haversine_distance(self.lat, self.lng, other.lat, other.lng)


# ---------------------------------------------------------------------------
# Routing profiles and turn signs
# ---------------------------------------------------------------------------

class Profile(Enum):
    FAST     = "foot_fastest"
    BALANCED = "foot_balanced"
    COOL     = "foot_coolest"

    @classmethod
    def parse(cls, name: str) -> "Profile":
        """
        Resolve a user-facing profile name.

        Accepts the service identifiers, short names and the legacy
        "walking" mode. Vehicle modes are rejected: this build is pedestrian-only.
        """
        key = (name or "").strip().lower()
        if key in ("cycling", "driving"):
            raise ValueError(
                "This build is pedestrian-only. Use 'walking' or one of: "
                "foot_fastest | foot_balanced | foot_coolest."
            )
        aliases = {
            "fast": cls.FAST, "fastest": cls.FAST,
            "balanced": cls.BALANCED, "walking": cls.BALANCED, "": cls.BALANCED,
            "cool": cls.COOL, "coolest": cls.COOL,
        }
        if key in aliases:
            return aliases[key]
        return cls(key)


class TurnSign(Enum):
    U_TURN       = "u_turn"
    SHARP_LEFT   = "sharp_left"
    LEFT         = "left"
    SLIGHT_LEFT  = "slight_left"
    CONTINUE     = "continue"
    SLIGHT_RIGHT = "slight_right"
    RIGHT        = "right"
    SHARP_RIGHT  = "sharp_right"
    ARRIVE       = "arrive"
    KEEP_LEFT    = "keep_left"
    KEEP_RIGHT   = "keep_right"

    @classmethod
    def from_code(cls, code) -> "TurnSign":
        """Decode a routing-service sign integer. Unknown codes read as CONTINUE."""
        try:
            return _SIGN_CODES.get(int(code), cls.CONTINUE)
        except (TypeError, ValueError):
            return cls.CONTINUE


_SIGN_CODES: Dict[int, TurnSign] = {
    -6: TurnSign.U_TURN,
    6:  TurnSign.U_TURN,
    -3: TurnSign.SHARP_LEFT,
    -2: TurnSign.LEFT,
    -1: TurnSign.SLIGHT_LEFT,
    0:  TurnSign.CONTINUE,
    1:  TurnSign.SLIGHT_RIGHT,
    2:  TurnSign.RIGHT,
    3:  TurnSign.SHARP_RIGHT,
    4:  TurnSign.ARRIVE,
    13: TurnSign.KEEP_LEFT,
    14: TurnSign.KEEP_RIGHT,
}


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Instruction:
    """A single turn-by-turn instruction covering a vertex interval of its route."""
    distance_m: float
    duration_ms: float
    text: str
    turn_sign: TurnSign
    interval: Tuple[int, int]    # (start_idx, end_idx) into Route.polyline
    street_name: Optional[str] = None
    last_heading: Optional[float] = None

    @property
    def start_index(self) -> int:
        return self.interval[0]

    @property
    def end_index(self) -> int:
        return self.interval[1]


@dataclass(frozen=True)
class Route:
    """
    Immutable walking route. A reroute produces a new Route.

    polyline holds at least two positions; every instruction interval
    indexes into it.
    """
    distance_m: float
    duration_s: float
    polyline: Tuple[Position, ...]
    instructions: Tuple[Instruction, ...]
    waypoints: Tuple[Position, Position]
    profile: Optional[Profile] = None
    is_fallback: bool = False

    @property
    def origin(self) -> Position:
        return self.waypoints[0]

    @property
    def destination(self) -> Position:
        return self.waypoints[1]

    @cached_property
    def coords(self) -> np.ndarray:
        """(N, 2) array of [lng, lat]."""
        return np.array([[p.lng, p.lat] for p in self.polyline], dtype=float).reshape(-1, 2)

    @cached_property
    def segment_lengths(self) -> np.ndarray:
        return segment_lengths(self.coords)

    @cached_property
    def cumulative_m(self) -> np.ndarray:
        """Polyline length from vertex 0 up to each vertex."""
        return np.concatenate(([0.0], np.cumsum(self.segment_lengths)))

    @property
    def polyline_length_m(self) -> float:
        return float(self.cumulative_m[-1])

    def length_between(self, i0: int, i1: int) -> float:
        """Polyline length between vertex indices, clamped to the valid range."""
        if len(self.polyline) < 2:
            return 0.0
        last = len(self.polyline) - 1
        start = max(0, min(i0, last))
        end = max(start, min(i1, last))
        return float(self.cumulative_m[end] - self.cumulative_m[start])

    def line_coordinates(self) -> List[List[float]]:
        return [p.as_lnglat() for p in self.polyline]


# ---------------------------------------------------------------------------
# Tracking results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SnapResult:
    """Projection of a live position onto a route polyline."""
    closest: Position
    off_distance_m: float
    next_vertex_index: int
    traveled_m: float


@dataclass(frozen=True)
class StepProgress:
    """Returned by progress.advance() every position update."""
    step_index: int
    step_remaining_m: float
    total_remaining_m: float
    eta_s: float
    advanced: bool = False


@dataclass(frozen=True)
class ReroutePolicyResult:
    trigger: bool
    off_route_since: Optional[float]


# ---------------------------------------------------------------------------
# Route preview
# ---------------------------------------------------------------------------

@dataclass
class ProfileRoute:
    """Result for one profile. error is set when route is a straight-line fallback."""
    profile: Profile
    route: Route
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RoutePreview:
    """All three profile routes between the same origin and destination."""
    origin: Position
    destination: Position
    results: Dict[Profile, ProfileRoute]

    @property
    def ok(self) -> bool:
        """True when at least one profile came back from the routing service."""
        return any(r.ok for r in self.results.values())

    @property
    def all_ok(self) -> bool:
        return all(r.ok for r in self.results.values())

    def route_for(self, profile: Profile) -> Optional[Route]:
        result = self.results.get(profile)
        return result.route if result else None

    def stats(self) -> Dict[Profile, Tuple[float, float]]:
        """(duration_s, distance_m) for every profile the service answered."""
        return {
            profile: (r.route.duration_s, r.route.distance_m)
            for profile, r in self.results.items()
            if r.ok
        }


# ---------------------------------------------------------------------------
# Navigation status
# ---------------------------------------------------------------------------

class SessionState(Enum):
    IDLE       = "idle"
    PREVIEWING = "previewing"
    NAVIGATING = "navigating"
    ENDED      = "ended"


class RouteStatus(Enum):
    INACTIVE      = "inactive"
    PROGRESSING   = "progressing"
    STEP_ADVANCED = "step_advanced"
    OFF_ROUTE     = "off_route"
    REROUTED      = "rerouted"
    ARRIVED       = "arrived"


@dataclass
class NavigationState:
    """
    Mutable per-session navigation record.

    Only NavigationSession.update() and NavigationSession.end() touch it.
    """
    profile: Profile
    route: Route
    destination: Position
    started_at: float
    step_index: int = 0
    off_route_since: Optional[float] = None
    last_reroute_at: Optional[float] = None

    @property
    def current_instruction(self) -> Optional[Instruction]:
        if 0 <= self.step_index < len(self.route.instructions):
            return self.route.instructions[self.step_index]
        return None

    def set_step(self, index: int) -> None:
        last = max(0, len(self.route.instructions) - 1)
        self.step_index = max(0, min(index, last))

    def replace_route(self, route: Route, now: float) -> None:
        """Swap in a rerouted path. started_at is preserved."""
        self.route = route
        self.set_step(0)
        self.off_route_since = None
        if self.last_reroute_at is None or now > self.last_reroute_at:
            self.last_reroute_at = now


@dataclass
class ProgressUpdate:
    """Emitted to the renderer for every processed position update."""
    status: RouteStatus
    position: Position
    snap: Optional[SnapResult] = None
    step_index: int = 0
    instruction: Optional[Instruction] = None
    step_remaining_m: Optional[float] = None
    total_remaining_m: Optional[float] = None
    eta_s: Optional[float] = None
    off_route: bool = False
    rerouted: bool = False
