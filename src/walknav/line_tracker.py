# line_tracker.py
# Snaps a live position onto a route polyline.
# Stateless: call snap() on every position update.

import numpy as np

from .geo_utils import M_PER_DEG_LAT, M_PER_DEG_LON_EQUATOR
from .models import Position, Route, SnapResult


def snap(route: Route, position: Position) -> SnapResult:
    """
    Project a position onto the nearest point of a route polyline.

    Each segment A→B is projected in a local planar frame scaled at the
    segment's mean latitude; the projection parameter is clamped to [0, 1].
    Ties go to the first segment with the minimum distance.

    Args:
        route:    Route whose polyline is tracked.
        position: Current geographic position.

    Returns:
        SnapResult with the snapped point, off-route distance (m), index of
        the vertex after the snapped point and metres traveled along the line.
    """
    coords = route.coords
    if len(coords) == 0:
        return SnapResult(closest=position, off_distance_m=0.0, next_vertex_index=0, traveled_m=0.0)
    if len(coords) < 2:
        only = route.polyline[0]
        return SnapResult(
            closest=only,
            off_distance_m=position.distance_to(only),
            next_vertex_index=0,
            traveled_m=0.0,
        )

    a = coords[:-1]
    b = coords[1:]

    kx = M_PER_DEG_LON_EQUATOR * np.cos(np.radians((a[:, 1] + b[:, 1]) / 2))
    ky = M_PER_DEG_LAT

    ax, ay = a[:, 0] * kx, a[:, 1] * ky
    bx, by = b[:, 0] * kx, b[:, 1] * ky
    px, py = position.lng * kx, position.lat * ky

    abx, aby = bx - ax, by - ay
    denom = abx * abx + aby * aby
    denom = np.where(denom == 0, 1.0, denom)
    t = np.clip(((px - ax) * abx + (py - ay) * aby) / denom, 0.0, 1.0)

    proj_x = ax + t * abx
    proj_y = ay + t * aby
    dist = np.hypot(px - proj_x, py - proj_y)

    i = int(np.argmin(dist))
    traveled = route.cumulative_m[i] + route.segment_lengths[i] * t[i]

    return SnapResult(
        closest=Position(lng=float(proj_x[i] / kx[i]), lat=float(proj_y[i] / ky)),
        off_distance_m=float(dist[i]),
        next_vertex_index=i + 1,
        traveled_m=float(traveled),
    )
