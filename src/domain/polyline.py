"""
Encoded-polyline codec.

Thin wrapper over the ``polyline`` package that turns its output into a
validated ``Route``.  Coordinates are stored as deltas scaled by 1e5, so
``decode(encode(r))`` reproduces *r* within 1e-5°.

A stream that ends inside a group, or after a latitude without its
longitude, is rejected as ``MalformedPolyline`` instead of being
truncated silently.  So is any byte outside the printable range the
format uses, a coordinate outside valid lat/lng bounds, and a stream
with fewer than two points.
"""

from __future__ import annotations

import polyline

from .entities import GeoPoint, Route
from .errors import InvalidCoordinate, InvalidRoute, MalformedPolyline

PRECISION = 5

# Every encoded byte is a 6-bit group plus 63.
_MIN_CHAR = 63
_MAX_CHAR = 63 + 0x3F


def decode(encoded: str) -> Route:
    """Decode *encoded* into a ``Route``.  Raises ``MalformedPolyline``."""
    if not encoded:
        raise MalformedPolyline("empty polyline")

    for offset, char in enumerate(encoded):
        if not _MIN_CHAR <= ord(char) <= _MAX_CHAR:
            raise MalformedPolyline(f"invalid character {char!r} at offset {offset}")

    try:
        pairs = polyline.decode(encoded, PRECISION)
    except (IndexError, ValueError, TypeError) as exc:
        raise MalformedPolyline("polyline ends mid-value or mid-point") from exc

    try:
        return Route(tuple(GeoPoint(lat, lng) for lat, lng in pairs))
    except (InvalidCoordinate, InvalidRoute) as exc:
        raise MalformedPolyline(str(exc)) from exc


def encode(route: Route) -> str:
    """Encode *route* as a polyline string."""
    return polyline.encode([(p.latitude, p.longitude) for p in route], PRECISION)
