# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects, no imports from other project modules.

import math

import numpy as np


EARTH_RADIUS_M = 6_371_000.0

# Local planar approximation used for snapping
M_PER_DEG_LAT = 110_540.0
M_PER_DEG_LON_EQUATOR = 111_320.0

_COMPASS = ("north", "north-east", "east", "south-east",
            "south", "south-west", "west", "north-west")


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.asin(min(1.0, math.sqrt(a)))


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def compass_direction(bearing: float) -> str:
    """Eight-point compass name for a bearing in degrees."""
    return _COMPASS[int(((bearing % 360) + 22.5) // 45) % 8]


def segment_lengths(coords: np.ndarray) -> np.ndarray:
    """
    Haversine length of every consecutive segment of a polyline.

    Args:
        coords: (N, 2) array of [lng, lat] rows.

    Returns:
        (N-1,) array of segment lengths in metres; empty for N < 2.
    """
    if len(coords) < 2:
        return np.zeros(0)
    lon = np.radians(coords[:, 0])
    lat = np.radians(coords[:, 1])
    d_lat = lat[1:] - lat[:-1]
    d_lon = lon[1:] - lon[:-1]
    a = np.sin(d_lat / 2) ** 2 + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_M * 2 * np.arcsin(np.minimum(1.0, np.sqrt(a)))
