from walknav.nav_config import NavConfig
from walknav.reroute_policy import should_reroute


def test_first_off_route_fix_starts_timer():
    result = should_reroute(50, None, now=100.0, last_reroute_at=None)

    assert not result.trigger
    assert result.off_route_since == 100.0


def test_no_trigger_within_grace_period():
    result = should_reroute(50, off_route_since=0.0, now=5.0, last_reroute_at=None)

    assert not result.trigger
    assert result.off_route_since == 0.0


def test_triggers_after_grace_period():
    result = should_reroute(50, off_route_since=0.0, now=7.0, last_reroute_at=None)

    assert result.trigger
    # the timer survives the trigger; the session clears it once a new route lands
    assert result.off_route_since == 0.0


def test_cooldown_blocks_second_reroute():
    # rerouted at t=7, off route again from t=8, 8 s later it is still within the 12 s cooldown
    result = should_reroute(50, off_route_since=8.0, now=15.0, last_reroute_at=7.0)

    assert not result.trigger
    assert result.off_route_since == 8.0


def test_triggers_again_after_cooldown():
    result = should_reroute(50, off_route_since=8.0, now=19.0, last_reroute_at=7.0)

    assert result.trigger


def test_back_on_route_clears_timer():
    result = should_reroute(40, off_route_since=0.0, now=30.0, last_reroute_at=None)

    assert not result.trigger
    assert result.off_route_since is None


def test_thresholds_come_from_config():
    config = NavConfig(off_route_threshold_m=20, off_route_grace_s=2, reroute_cooldown_s=0)

    assert should_reroute(25, off_route_since=0.0, now=2.0, last_reroute_at=1.5, config=config).trigger
    assert not should_reroute(15, off_route_since=0.0, now=2.0, last_reroute_at=None, config=config).trigger
