import argparse

import pytest

from walknav.line_tracker import snap
from walknav.main import parse_lnglat, walk_along
from walknav.models import Position

from conftest import build_meridian_route


def test_parse_lnglat():
    assert parse_lnglat("-97.743,30.267") == Position(-97.743, 30.267)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_lnglat("30.267")


def test_walk_along_stays_on_route():
    route = build_meridian_route([100, 200])

    samples = walk_along(route, step_m=25)

    assert samples[0] == route.polyline[0]
    assert samples[-1] == route.polyline[-1]
    assert all(snap(route, p).off_distance_m < 1 for p in samples)


def test_walk_along_detour_leaves_route():
    route = build_meridian_route([300])

    samples = walk_along(route, step_m=10, detour_m=60)

    assert max(snap(route, p).off_distance_m for p in samples) > 40
