import math
from concurrent.futures import Future
from typing import List, Optional

import pytest

from walknav.models import Instruction, Position, Profile, ProfileRoute, Route, RoutePreview, TurnSign
from walknav.nav_config import NavConfig
from walknav.route_client import straight_line_route
from walknav.events import RouteRenderer

BASE_LNG = -97.743
BASE_LAT = 30.267

# metres per degree of latitude along a meridian (haversine sphere)
M_PER_DEG_MERIDIAN = 6_371_000.0 * math.pi / 180


def north_of(distance_m: float, lng: float = BASE_LNG, lat: float = BASE_LAT) -> Position:
    return Position(lng, lat + distance_m / M_PER_DEG_MERIDIAN)


def east_shift(position: Position, distance_m: float) -> Position:
    """Move a position east by roughly distance_m (planar approximation)."""
    return Position(position.lng + distance_m / (111_320 * math.cos(math.radians(position.lat))), position.lat)


def build_meridian_route(
    step_distances: List[float],
    profile: Profile = Profile.BALANCED,
    walking_mps: Optional[float] = 1.4,
) -> Route:
    """
    Straight route heading north, one polyline segment per instruction.
    With walking_mps=None the instructions carry no durations.
    """
    cum = [0.0]
    for d in step_distances:
        cum.append(cum[-1] + d)
    polyline = tuple(north_of(c) for c in cum)

    instructions = tuple(
        Instruction(
            distance_m=d,
            duration_ms=(d / walking_mps * 1000) if walking_mps else 0.0,
            text=f"Walk {d:.0f} m",
            turn_sign=TurnSign.CONTINUE,
            interval=(i, i + 1),
        )
        for i, d in enumerate(step_distances)
    )
    total = cum[-1]
    return Route(
        distance_m=total,
        duration_s=total / (walking_mps or 1.4),
        polyline=polyline,
        instructions=instructions,
        waypoints=(polyline[0], polyline[-1]),
        profile=profile,
    )


@pytest.fixture
def make_route():
    return build_meridian_route


@pytest.fixture
def config():
    return NavConfig(gh_base_url="http://localhost:8989")


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class RecordingRenderer(RouteRenderer):
    def __init__(self) -> None:
        self.geometry = {}
        self.geometry_calls = []
        self.cleared = 0
        self.updates = []

    def set_route_geometry(self, profile, feature):
        self.geometry[profile] = feature
        self.geometry_calls.append((profile, feature))

    def clear_routes(self):
        self.cleared += 1
        self.geometry = {}

    def on_progress(self, update):
        self.updates.append(update)


@pytest.fixture
def renderer():
    return RecordingRenderer()


class FakeRouteClient:
    """
    Stands in for RouteClient: previews are built from a fixed route and
    reroute requests hand out Futures the test resolves by hand.
    """

    def __init__(self, config: NavConfig, route: Route) -> None:
        self.config = config
        self.route = route
        self.preview_calls = []
        self.requests = []
        self.futures: List[Future] = []

    def compute_all_profiles(self, origin, destination, timeout_ms=None, cancel=None):
        self.preview_calls.append((origin, destination))
        results = {}
        for profile in Profile:
            if profile is Profile.BALANCED:
                route = self.route
            else:
                route = straight_line_route(origin, destination, profile, self.config)
            results[profile] = ProfileRoute(profile=profile, route=route)
        return RoutePreview(origin=origin, destination=destination, results=results)

    def request_route(self, origin, destination, profile=Profile.BALANCED, custom_model=None):
        self.requests.append((origin, destination, profile))
        future: Future = Future()
        self.futures.append(future)
        return future


@pytest.fixture
def fake_client_factory(config):
    def factory(route: Route) -> FakeRouteClient:
        return FakeRouteClient(config, route)
    return factory
