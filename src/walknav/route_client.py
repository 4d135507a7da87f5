# route_client.py
# The routing-service adapter.
# Sole responsibility: talk to the GraphHopper-compatible /route endpoint over HTTP,
# return normalised Route objects and degrade gracefully when it cannot.
# It contains no tracking or rerouting rules.

import json
import logging
import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Dict, List, Optional

import requests

from .custom_models import CustomModel, custom_model_for
from .errors import (
    InvalidCoordinates,
    NoRouteFound,
    RouteError,
    RouteNetworkError,
    RouteTimeout,
    RouteUnavailable,
)
from .geo_utils import calculate_bearing, compass_direction
from .models import Instruction, Position, Profile, ProfileRoute, Route, RoutePreview, TurnSign
from .nav_config import NavConfig
from .route_cache import RouteCache

logger = logging.getLogger(__name__)

_CLOUD_BASE = re.compile(r"graphhopper\.com/api/1$", re.IGNORECASE)
_HOST_PORT = re.compile(r"^(localhost|\d{1,3}(\.\d{1,3}){3}):\d+$")

# Granularity of the caller-side wait loop, so a cancel event is noticed promptly
_WAIT_SLICE_S = 0.05


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize_base_url(raw: Optional[str]) -> Optional[str]:
    """
    Turn a loosely written service address into a base URL.

    ":8989" → "http://localhost:8989", "host:port" and bare hostnames get an
    http:// scheme, trailing slashes are removed.
    """
    if not raw:
        return None
    s = raw.strip()
    if re.fullmatch(r":\d+", s):
        s = f"http://localhost{s}"
    elif _HOST_PORT.match(s):
        s = f"http://{s}"
    elif not re.match(r"^https?://", s, re.IGNORECASE) and re.search(r"[A-Za-z]", s):
        s = f"http://{s}"
    return s.rstrip("/")


def validate_positions(*positions: Position) -> None:
    """Raise InvalidCoordinates for any out-of-range or non-finite position."""
    for p in positions:
        if not isinstance(p, Position) or not p.is_valid():
            raise InvalidCoordinates(f"Invalid coordinates: {p!r}")


def straight_line_route(
    origin: Position,
    destination: Position,
    profile: Optional[Profile] = None,
    config: Optional[NavConfig] = None,
) -> Route:
    """
    Two-point fallback route used when the service cannot answer.

    Distance is the great-circle distance; duration assumes walking speed.
    """
    config = config or NavConfig()
    distance = origin.distance_to(destination)
    duration = distance / config.walking_speed_mps
    heading = compass_direction(
        calculate_bearing(origin.lat, origin.lng, destination.lat, destination.lng)
    )
    instructions = (
        Instruction(
            distance_m=distance,
            duration_ms=duration * 1000,
            text=f"Head {heading} toward your destination",
            turn_sign=TurnSign.CONTINUE,
            interval=(0, 1),
        ),
        Instruction(
            distance_m=0.0,
            duration_ms=0.0,
            text="Arrive at your destination",
            turn_sign=TurnSign.ARRIVE,
            interval=(1, 1),
        ),
    )
    return Route(
        distance_m=distance,
        duration_s=duration,
        polyline=(origin, destination),
        instructions=instructions,
        waypoints=(origin, destination),
        profile=profile,
        is_fallback=True,
    )


def _number(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_instruction(raw: Dict[str, Any], vertex_count: int) -> Instruction:
    last = vertex_count - 1
    interval = raw.get("interval")
    if isinstance(interval, (list, tuple)) and len(interval) >= 2:
        start, end = int(_number(interval[0])), int(_number(interval[1]))
    else:
        start, end = 0, 0
    start = max(0, min(start, last))
    end = max(start, min(end, last))

    heading = raw.get("last_heading")
    return Instruction(
        distance_m=_number(raw.get("distance")),
        duration_ms=_number(raw.get("time")),
        text=str(raw.get("text") or ""),
        turn_sign=TurnSign.from_code(raw.get("sign", 0)),
        interval=(start, end),
        street_name=raw.get("street_name") or None,
        last_heading=float(heading) if isinstance(heading, (int, float)) else None,
    )


def parse_route(data: Any, origin: Position, destination: Position, profile: Profile) -> Route:
    """
    Normalise a /route response body into a Route.

    Raises:
        NoRouteFound: paths[0].points missing, fewer than two coordinates, or
            coordinates and instructions that cannot be decoded.
    """
    paths = data.get("paths") if isinstance(data, dict) else None
    path = paths[0] if isinstance(paths, list) and paths else None
    points = path.get("points") if isinstance(path, dict) else None
    if not points:
        raise NoRouteFound("No route found (check points, profile, or server profiles).")

    coordinates = points.get("coordinates") if isinstance(points, dict) else None
    if not coordinates or len(coordinates) < 2:
        raise NoRouteFound("Route geometry has too few points.")

    raw_steps = path.get("instructions")
    try:
        polyline = tuple(Position(lng=float(c[0]), lat=float(c[1])) for c in coordinates)
        if isinstance(raw_steps, list) and raw_steps:
            instructions = tuple(_parse_instruction(s, len(polyline)) for s in raw_steps)
        else:
            instructions = ()
    except (TypeError, ValueError, IndexError, AttributeError) as e:
        raise NoRouteFound(f"Malformed route geometry or instructions: {e}") from e
    if not all(p.is_valid() for p in polyline):
        raise NoRouteFound("Route geometry has out-of-range coordinates.")

    if not instructions:
        instructions = (
            Instruction(
                distance_m=_number(path.get("distance")),
                duration_ms=_number(path.get("time")),
                text="",
                turn_sign=TurnSign.ARRIVE,
                interval=(0, len(polyline) - 1),
            ),
        )

    return Route(
        distance_m=_number(path.get("distance")),
        duration_s=_number(path.get("time")) / 1000,  # ms → s
        polyline=polyline,
        instructions=instructions,
        waypoints=(origin, destination),
        profile=profile,
    )


def _model_key(custom_model: Optional[CustomModel]) -> Optional[str]:
    """Hashable fingerprint of a custom model for cache keys."""
    if custom_model is None:
        return None
    return json.dumps(custom_model, sort_keys=True, default=str)


def _error_message(response: requests.Response) -> str:
    msg = f"Routing service {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return msg
    if isinstance(body, dict):
        if body.get("message"):
            msg += f": {body['message']}"
        hints = body.get("hints")
        if isinstance(hints, list) and hints and isinstance(hints[0], dict) and hints[0].get("message"):
            msg += f" ({hints[0]['message']})"
    return msg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class RouteClient:
    """
    Routing-service adapter with caching and per-profile degradation.

    Usage:
        with RouteClient(NavConfig.from_env()) as client:
            preview = client.compute_all_profiles(origin, destination)
            route = client.compute_route(origin, destination, Profile.COOL)

    Args:
        config:   NavConfig instance.
        session:  requests.Session to use (injected in tests).
        cache:    RouteCache; pass the same instance to share it between clients.
        executor: Worker pool for HTTP calls; created and owned if omitted.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        session: Optional[requests.Session] = None,
        cache: Optional[RouteCache] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.config = config or NavConfig()
        self.base_url = normalize_base_url(self.config.gh_base_url)
        if not self.base_url:
            raise ValueError("Routing service base URL is not set (GH_BASE_URL).")

        self._session = session or requests.Session()
        self._owns_session = session is None
        self.cache = cache or RouteCache(ttl_s=self.config.cache_ttl_s)
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="walknav-route",
        )
        self._owns_executor = executor is None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "RouteClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Single profile
    # ------------------------------------------------------------------

    def request_route(
        self,
        origin: Position,
        destination: Position,
        profile: Profile = Profile.BALANCED,
        custom_model: Optional[CustomModel] = None,
    ) -> Future:
        """
        Non-blocking route request.

        Returns:
            Future resolving to a Route or raising a RouteError. Identical
            (origin, destination, profile, custom model) requests share one
            Future and one cache entry.

        Raises:
            InvalidCoordinates: immediately, before any I/O.
        """
        validate_positions(origin, destination)
        if custom_model is None and self.config.apply_custom_models:
            custom_model = custom_model_for(profile)

        key = (
            self.base_url,
            origin.lng, origin.lat,
            destination.lng, destination.lat,
            profile.value,
            _model_key(custom_model),
        )
        return self.cache.get_or_submit(
            key,
            lambda: self._fetch(origin, destination, profile, custom_model),
            self._executor,
        )

    def compute_route(
        self,
        origin: Position,
        destination: Position,
        profile: Profile = Profile.BALANCED,
        custom_model: Optional[CustomModel] = None,
        timeout_ms: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Route:
        """
        Blocking route request with a composed timeout.

        Args:
            origin, destination: Route endpoints.
            profile:      Walking profile.
            custom_model: Optional weighting override.
            timeout_ms:   Deadline for this call; config default if omitted.
                          Capped at config.request_timeout_ms, the limit the
                          HTTP call itself runs under.
            cancel:       Event that aborts the wait when set.

        Raises:
            InvalidCoordinates, RouteTimeout, RouteNetworkError, NoRouteFound
        """
        future = self.request_route(origin, destination, profile, custom_model)
        return self.wait(future, self._deadline(timeout_ms), cancel)

    # ------------------------------------------------------------------
    # All profiles
    # ------------------------------------------------------------------

    def compute_all_profiles(
        self,
        origin: Position,
        destination: Position,
        timeout_ms: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> RoutePreview:
        """
        Request every profile concurrently.

        A failed profile degrades to a straight-line route and records the
        cause; only invalid coordinates raise.

        Returns:
            RoutePreview with one ProfileRoute per profile.
        """
        validate_positions(origin, destination)
        deadline = self._deadline(timeout_ms)
        futures = {p: self.request_route(origin, destination, p) for p in Profile}

        results: Dict[Profile, ProfileRoute] = {}
        for profile, future in futures.items():
            try:
                route = self.wait(future, deadline, cancel)
                results[profile] = ProfileRoute(profile=profile, route=route)
            except RouteError as e:
                logger.warning(f"[route {profile.value}] fallback: {e}")
                results[profile] = ProfileRoute(
                    profile=profile,
                    route=straight_line_route(origin, destination, profile, self.config),
                    error=RouteUnavailable(profile.value, e),
                )

        preview = RoutePreview(origin=origin, destination=destination, results=results)
        if not preview.ok:
            logger.warning("All profiles failed, using straight lines.")
        return preview

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def wait(
        self,
        future: Future,
        deadline: float,
        cancel: Optional[threading.Event] = None,
    ) -> Route:
        """
        Wait for a route Future until a monotonic deadline or a cancel event.

        The underlying request keeps running for other waiters.
        """
        while True:
            if cancel is not None and cancel.is_set():
                raise RouteTimeout("Route request cancelled.")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RouteTimeout("Route request timed out.")
            try:
                return future.result(timeout=min(remaining, _WAIT_SLICE_S))
            except FutureTimeout:
                continue

    def _deadline(self, timeout_ms: Optional[int]) -> float:
        ms = self.config.request_timeout_ms
        if timeout_ms is not None:
            ms = min(timeout_ms, ms)
        return time.monotonic() + ms / 1000

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _url(self) -> str:
        return f"{self.base_url}/route"

    def _params(self) -> Dict[str, str]:
        if _CLOUD_BASE.search(self.base_url):
            if not self.config.gh_api_key:
                raise RouteNetworkError(
                    "GraphHopper cloud requires an API key. Set GH_API_KEY or GRAPHHOPPER_API_KEY."
                )
            return {"key": self.config.gh_api_key}
        return {}

    def build_body(
        self,
        origin: Position,
        destination: Position,
        profile: Profile,
        custom_model: Optional[CustomModel] = None,
    ) -> Dict[str, Any]:
        points: List[List[float]] = [origin.as_lnglat(), destination.as_lnglat()]
        body: Dict[str, Any] = {
            "profile": profile.value,
            "points": points,
            "points_encoded": False,
            "instructions": True,
            "locale": self.config.locale,
        }
        if custom_model is not None:
            body["ch.disable"] = True
            body["custom_model"] = custom_model
        return body

    def _fetch(
        self,
        origin: Position,
        destination: Position,
        profile: Profile,
        custom_model: Optional[CustomModel],
    ) -> Route:
        params = self._params()
        body = self.build_body(origin, destination, profile, custom_model)
        logger.debug(f"POST {self._url()} profile={profile.value}")

        try:
            response = self._session.post(
                self._url(),
                params=params,
                json=body,
                headers={"Accept": "application/json"},
                timeout=self.config.request_timeout_s,
            )
        except requests.Timeout as e:
            raise RouteTimeout(f"Routing service timed out: {e}") from e
        except requests.RequestException as e:
            raise RouteNetworkError(f"Routing service unreachable: {e}") from e

        if not response.ok:
            raise RouteNetworkError(_error_message(response), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise RouteNetworkError("Routing service returned invalid JSON.") from e

        route = parse_route(data, origin, destination, profile)
        logger.info(
            f"Route {profile.value}: {route.distance_m:.0f} m, {route.duration_s:.0f} s, "
            f"{len(route.instructions)} steps"
        )
        return route
