"""
Domain value objects.

Patterns used
-------------
- ``GeoPoint`` and ``Route`` are immutable value objects that validate
  their own invariants on construction.
- ``SessionContext`` carries the acting identity explicitly into every
  lifecycle operation instead of reading ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, Optional, Sequence, TYPE_CHECKING

from .errors import IdentityMissing, InvalidCoordinate, InvalidRoute

if TYPE_CHECKING:
    from .similarity import ScoreBreakdown


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidCoordinate(f"latitude {self.latitude} out of range")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidCoordinate(f"longitude {self.longitude} out of range")

    def as_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class Waypoint:
    """Origin or destination of a ride: where, what it is called, and when."""

    point: GeoPoint
    address: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class Route:
    """Ordered, immutable sequence of at least two points."""

    points: tuple[GeoPoint, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))
        if len(self.points) < 2:
            raise InvalidRoute(
                f"a route needs at least two points, got {len(self.points)}"
            )

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[float]]) -> "Route":
        """Build a route from ``(lat, lng)`` pairs."""
        return cls(tuple(GeoPoint(float(lat), float(lng)) for lat, lng in pairs))

    @classmethod
    def from_dicts(cls, items: Iterable[dict]) -> "Route":
        return cls(tuple(GeoPoint(d["latitude"], d["longitude"]) for d in items))

    def to_dicts(self) -> list[dict[str, float]]:
        return [p.as_dict() for p in self.points]

    @property
    def start(self) -> GeoPoint:
        return self.points[0]

    @property
    def end(self) -> GeoPoint:
        return self.points[-1]

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[GeoPoint]:
        return iter(self.points)

    def __getitem__(self, index: int) -> GeoPoint:
        return self.points[index]


# ── Matching records ──────────────────────────────────────────────────


@dataclass(frozen=True)
class HostCandidate:
    """Snapshot of an available host ride, as read for one matching query."""

    ride_id: str
    owner_id: str
    route: Route
    created_at: datetime
    seats_available: int = 0


@dataclass(frozen=True)
class RankedCandidate:
    ride_id: str
    owner_id: str
    score: float
    created_at: datetime
    seats_available: int = 0
    breakdown: Optional[ScoreBreakdown] = None


# ── Session ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SessionContext:
    identity_id: Optional[str] = None

    def require_identity(self) -> str:
        """Return the acting identity or raise ``IdentityMissing``."""
        if not self.identity_id or not self.identity_id.strip():
            raise IdentityMissing("no identity attached to this session")
        return self.identity_id
