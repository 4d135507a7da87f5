from dataclasses import replace

import pytest

from walknav.errors import InvalidCoordinates, RouteNetworkError
from walknav.location import ReplayLocationSource
from walknav.models import Position, Profile, RouteStatus, SessionState
from walknav.navigator import NavigationSession
from walknav.route_client import straight_line_route

from conftest import build_meridian_route, east_shift, north_of


@pytest.fixture
def route():
    return build_meridian_route([100, 200, 150])


@pytest.fixture
def client(fake_client_factory, route):
    return fake_client_factory(route)


@pytest.fixture
def session(client, renderer, config, clock):
    return NavigationSession(client, renderer, config, clock=clock)


@pytest.fixture
def navigating(session, route):
    session.choose_destination(route.destination, origin=route.origin)
    ok, _ = session.start_nav(Profile.BALANCED)
    assert ok
    return session


OFF_ROUTE_FIX = east_shift(north_of(50), 60)


def _go_off_route_and_trigger(session, clock):
    clock.now = 0.0
    first = session.update(OFF_ROUTE_FIX)
    clock.now = 7.0
    second = session.update(OFF_ROUTE_FIX)
    return first, second


# ---------------------------------------------------------------------------
# Preview and start
# ---------------------------------------------------------------------------

def test_preview_draws_every_profile(session, renderer, route):
    preview = session.choose_destination(route.destination, origin=route.origin)

    assert session.state is SessionState.PREVIEWING
    assert preview is session.preview
    assert set(renderer.geometry) == set(Profile)
    assert renderer.geometry[Profile.BALANCED]["properties"]["fallback"] is False
    assert renderer.geometry[Profile.COOL]["properties"]["fallback"] is True


def test_start_nav_hides_other_profiles_and_emits_progress(session, renderer, route):
    session.choose_destination(route.destination, origin=route.origin)

    ok, msg = session.start_nav(Profile.BALANCED)

    assert ok
    assert "3 steps" in msg
    assert session.state is SessionState.NAVIGATING
    assert session.route is route
    assert renderer.geometry[Profile.FAST] is None
    assert renderer.geometry[Profile.COOL] is None
    assert renderer.geometry[Profile.BALANCED]["geometry"]["type"] == "LineString"

    first = renderer.updates[0]
    assert first.status is RouteStatus.PROGRESSING
    assert first.step_index == 0
    assert first.total_remaining_m == pytest.approx(450)
    assert first.eta_s > 0


def test_start_nav_eta_matches_first_update(fake_client_factory, renderer, config, clock):
    # per-step durations say 225 s, the route-level average speed would say 900 s
    route = replace(build_meridian_route([100, 200, 150], walking_mps=2.0), duration_s=900)
    session = NavigationSession(fake_client_factory(route), renderer, config, clock=clock)
    session.choose_destination(route.destination, origin=route.origin)

    session.start_nav(Profile.BALANCED)
    first = renderer.updates[-1]
    second = session.update(route.origin)

    assert first.eta_s == pytest.approx(225)
    assert second.eta_s == pytest.approx(first.eta_s, abs=0.5)
    assert first.step_remaining_m == pytest.approx(100)


def test_start_nav_without_preview_fails(session):
    ok, msg = session.start_nav(Profile.COOL)

    assert not ok
    assert "destination" in msg
    assert session.state is SessionState.IDLE


def test_preview_waits_for_first_fix(session, client, route):
    assert session.choose_destination(route.destination) is None
    assert client.preview_calls == []

    assert session.update(route.origin) is None

    assert client.preview_calls == [(route.origin, route.destination)]
    assert session.preview is not None


def test_invalid_destination_rejected(session):
    with pytest.raises(InvalidCoordinates):
        session.choose_destination(Position(0.0, 123.0))
    assert session.state is SessionState.IDLE


def test_new_destination_while_navigating_ends_trip(navigating, renderer, route):
    other = north_of(900)

    navigating.choose_destination(other, origin=route.origin)

    assert navigating.state is SessionState.PREVIEWING
    assert navigating.navigation is None
    assert navigating.destination == other


def test_clear_destination_returns_to_idle(session, route):
    session.choose_destination(route.destination, origin=route.origin)

    session.clear_destination()

    assert session.state is SessionState.IDLE
    assert session.preview is None


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

def test_updates_advance_steps_and_arrive(navigating):
    statuses = [navigating.update(north_of(d)).status for d in (50, 95, 200, 295, 445)]

    assert statuses == [
        RouteStatus.PROGRESSING,
        RouteStatus.STEP_ADVANCED,
        RouteStatus.PROGRESSING,
        RouteStatus.STEP_ADVANCED,
        RouteStatus.ARRIVED,
    ]
    assert navigating.step_index == 2


def test_update_reports_remaining_distances(navigating):
    update = navigating.update(north_of(40))

    assert update.step_remaining_m == pytest.approx(60, abs=0.5)
    assert update.total_remaining_m == pytest.approx(410, abs=0.5)
    assert update.instruction is navigating.route.instructions[0]
    assert not update.off_route


def test_invalid_fix_is_ignored(navigating, renderer):
    before = len(renderer.updates)

    assert navigating.update(Position(999.0, 0.0)) is None
    assert navigating.last_fix is None
    assert len(renderer.updates) == before


def test_update_when_idle_returns_none(session):
    assert session.update(north_of(10)) is None
    assert session.last_fix == north_of(10)


# ---------------------------------------------------------------------------
# Rerouting
# ---------------------------------------------------------------------------

def test_off_route_waits_for_grace_period(navigating, client, clock):
    clock.now = 0.0
    update = navigating.update(OFF_ROUTE_FIX)
    clock.now = 5.0
    navigating.update(OFF_ROUTE_FIX)

    assert update.status is RouteStatus.OFF_ROUTE
    assert update.off_route
    assert client.requests == []


def test_off_route_triggers_reroute_and_applies_it(navigating, client, clock, renderer, config, route):
    first, second = _go_off_route_and_trigger(navigating, clock)

    assert first.status is RouteStatus.OFF_ROUTE
    assert second.status is RouteStatus.OFF_ROUTE
    assert client.requests == [(OFF_ROUTE_FIX, route.destination, Profile.BALANCED)]
    assert navigating.reroute_pending

    new_route = straight_line_route(OFF_ROUTE_FIX, route.destination, Profile.BALANCED, config)
    client.futures[0].set_result(new_route)
    clock.now = 8.0
    update = navigating.update(OFF_ROUTE_FIX)

    assert update.status is RouteStatus.REROUTED
    assert update.rerouted
    assert not update.off_route
    assert navigating.route is new_route
    assert navigating.step_index == 0
    assert navigating.navigation.last_reroute_at == 8.0
    assert navigating.navigation.started_at == 0.0
    assert not navigating.reroute_pending
    assert renderer.geometry[Profile.BALANCED]["properties"]["fallback"] is True


def test_single_request_while_pending(navigating, client, clock):
    _go_off_route_and_trigger(navigating, clock)
    clock.now = 9.0
    navigating.update(OFF_ROUTE_FIX)

    assert len(client.requests) == 1


def test_failed_reroute_is_retried(navigating, client, clock):
    _go_off_route_and_trigger(navigating, clock)

    client.futures[0].set_exception(RouteNetworkError("service down"))
    clock.now = 8.0
    update = navigating.update(OFF_ROUTE_FIX)

    assert update.status is RouteStatus.OFF_ROUTE
    assert navigating.navigation.last_reroute_at is None
    assert len(client.requests) == 2


def test_stale_reroute_dropped_after_timeout(navigating, client, clock, config):
    _go_off_route_and_trigger(navigating, clock)

    clock.now = 7.0 + config.request_timeout_s + 1
    navigating.update(OFF_ROUTE_FIX)

    assert len(client.requests) == 2

    # the abandoned request finishing late changes nothing
    client.futures[0].set_result(build_meridian_route([10]))
    clock.now += 1
    update = navigating.update(OFF_ROUTE_FIX)

    assert not update.rerouted
    assert navigating.route.distance_m == pytest.approx(450)


def test_end_discards_pending_reroute(navigating, client, clock, renderer):
    _go_off_route_and_trigger(navigating, clock)
    cleared_before = renderer.cleared

    navigating.end()

    assert navigating.state is SessionState.IDLE
    assert not navigating.reroute_pending
    assert navigating.navigation is None
    assert renderer.cleared == cleared_before + 1

    client.futures[0].set_result(build_meridian_route([10]))
    assert navigating.update(OFF_ROUTE_FIX) is None


# ---------------------------------------------------------------------------
# Location source
# ---------------------------------------------------------------------------

def test_follow_replays_walk_to_arrival(navigating, renderer):
    source = ReplayLocationSource([north_of(d) for d in range(0, 451, 10)])

    navigating.follow(source)
    delivered = source.run()

    assert delivered == 46
    assert renderer.updates[-1].status is RouteStatus.ARRIVED
    assert [u.step_index for u in renderer.updates if u.status is RouteStatus.STEP_ADVANCED] == [1, 2]


def test_end_stops_replay(navigating):
    source = ReplayLocationSource([north_of(d) for d in range(0, 100, 10)])

    seen = []

    def on_fix(position):
        seen.append(navigating.update(position))
        if len(seen) == 3:
            navigating.end()

    navigating.follow(source)
    source.clear_watch()
    source.watch(on_fix)

    assert source.run() == 3
    assert not source.is_watching


def test_follow_replaces_previous_source(navigating):
    old = ReplayLocationSource([])
    new = ReplayLocationSource([])

    navigating.follow(old)
    navigating.follow(new)

    assert not old.is_watching
    assert new.is_watching
