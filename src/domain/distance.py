"""
Great-circle distances and geofencing.

All public functions take and return degrees / kilometres; radians are
used internally only.

Point-to-segment distance
-------------------------
Uses the cross-track formula::

    d_xt = asin(sin(d13 / R) * sin(theta13 - theta12)) * R

where ``d13`` is the distance from the segment start to the point and
``theta13`` / ``theta12`` are the initial bearings start->point and
start->end.  Cross-track distance is measured to the *great circle*
through the segment, so when the point projects before the start or
past the end the distance to the nearer endpoint is returned instead.

Complexity: O(1) per point / segment, O(k) per route of k points.
"""

from __future__ import annotations

import math

from .entities import GeoPoint, Route

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def point_distance(p1: GeoPoint, p2: GeoPoint) -> float:
    return haversine_km(p1.latitude, p1.longitude, p2.latitude, p2.longitude)


def initial_bearing(p1: GeoPoint, p2: GeoPoint) -> float:
    """Initial great-circle bearing from *p1* to *p2*, in **radians**."""
    lat1, lat2 = math.radians(p1.latitude), math.radians(p2.latitude)
    dlng = math.radians(p2.longitude - p1.longitude)
    y = math.sin(dlng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlng)
    return math.atan2(y, x)


def point_to_segment_distance(
    point: GeoPoint, seg_start: GeoPoint, seg_end: GeoPoint
) -> float:
    """Distance in km from *point* to the segment *seg_start* -> *seg_end*."""
    d13 = point_distance(seg_start, point)
    d12 = point_distance(seg_start, seg_end)
    if d13 == 0.0:
        return 0.0
    if d12 == 0.0:
        return d13

    delta = initial_bearing(seg_start, point) - initial_bearing(seg_start, seg_end)
    ang13 = d13 / EARTH_RADIUS_KM
    ang_xt = math.asin(_clamp(math.sin(ang13) * math.sin(delta)))

    # Projection falls behind the start of the segment.
    if math.cos(delta) < 0:
        return d13

    cos_xt = math.cos(ang_xt)
    if cos_xt == 0.0:
        return d13
    along = math.acos(_clamp(math.cos(ang13) / cos_xt)) * EARTH_RADIUS_KM
    if along > d12:
        return point_distance(seg_end, point)

    return abs(ang_xt) * EARTH_RADIUS_KM


def point_to_route_distance(point: GeoPoint, route: Route) -> float:
    """Minimum distance in km from *point* to any segment of *route*."""
    return min(
        point_to_segment_distance(point, route[i], route[i + 1])
        for i in range(len(route) - 1)
    )


def within_radius(point: GeoPoint, route: Route, radius_km: float = 0.5) -> bool:
    return point_to_route_distance(point, route) <= radius_km


def endpoints_on_route(
    origin: GeoPoint,
    destination: GeoPoint,
    route: Route,
    radius_km: float = 0.5,
) -> bool:
    """Both the pickup *and* the drop-off must lie within *radius_km* of *route*."""
    return within_radius(origin, route, radius_km) and within_radius(
        destination, route, radius_km
    )


def _clamp(value: float) -> float:
    return max(-1.0, min(1.0, value))
