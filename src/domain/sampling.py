"""
Route resampling.

``normalize`` makes routes of different raw density comparable by
interpolating a fixed number of points along the original point indices.

``declutter`` drops near-duplicate points with a greedy forward pass
(keep a point only once it is far enough from the last kept one).  It is
not a shape-preserving simplification such as Douglas-Peucker; scoring
compares points, not segments, so segment fidelity is not needed.
"""

from __future__ import annotations

import math

from .distance import point_distance
from .entities import GeoPoint, Route

DEFAULT_MIN_SEPARATION_KM = 0.1


def normalize(route: Route, n: int) -> Route:
    """Return exactly *n* points, or *route* unchanged if it has ``<= n``."""
    if n < 2:
        raise ValueError(f"cannot normalize a route to {n} points")
    size = len(route)
    if size <= n:
        return route

    step = (size - 1) / (n - 1)
    points: list[GeoPoint] = []
    for i in range(n):
        index = i * step
        low = min(int(math.floor(index)), size - 1)
        high = min(low + 1, size - 1)
        fraction = index - low
        a, b = route[low], route[high]
        points.append(
            GeoPoint(
                a.latitude + (b.latitude - a.latitude) * fraction,
                a.longitude + (b.longitude - a.longitude) * fraction,
            )
        )
    return Route(tuple(points))


def declutter(
    route: Route, min_separation_km: float = DEFAULT_MIN_SEPARATION_KM
) -> Route:
    """Drop intermediate points closer than *min_separation_km* to the last kept one."""
    if len(route) <= 2:
        return route

    kept: list[GeoPoint] = [route.start]
    for point in route.points[1:-1]:
        if point_distance(kept[-1], point) > min_separation_km:
            kept.append(point)
    kept.append(route.end)
    return Route(tuple(kept))
