"""
Match Coordinator
=================

Read-only candidate discovery for a rider.

* ``find_matches``       -- similarity-ranked host rides for one of the
  rider's ride requests.
* ``find_nearby_hosts``  -- host rides starting close to a location, for
  riders who have not planned a route yet.

Both work on a single bounded read of AVAILABLE host rides, so a host
that changes state mid-query is either scored from the snapshot or not
seen at all.  An empty list is a normal answer; store failures propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, settings as default_settings
from src.domain.distance import haversine_km
from src.domain.entities import GeoPoint, HostCandidate, Route, SessionContext
from src.domain.enums import RideKind, RideStatus
from src.domain.errors import ActionNotPermitted, InvalidTransition, RideNotFound
from src.domain.matching import h3_cells_within, rank_candidates
from src.domain.similarity import ScoreBreakdown, SimilarityScorer
from src.infrastructure.models import RideModel
from src.infrastructure.repositories import RideRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostOffer:
    ride: RideModel
    score: Optional[float] = None
    breakdown: Optional[ScoreBreakdown] = None
    distance_km: Optional[float] = None


class MatchCoordinator:
    def __init__(
        self,
        session: AsyncSession,
        scorer: SimilarityScorer | None = None,
        settings: Settings = default_settings,
    ):
        self.rides = RideRepository(session)
        self.settings = settings
        self.scorer = scorer or SimilarityScorer.from_settings(settings)

    async def find_matches(
        self,
        ctx: SessionContext,
        rider_ride_id: str,
        threshold: float | None = None,
    ) -> list[HostOffer]:
        """Ranked host rides for the rider request *rider_ride_id*."""
        rider_id = ctx.require_identity()
        ride = await self.rides.get_by_id(rider_ride_id)
        if ride is None:
            raise RideNotFound(f"ride {rider_ride_id} not found")
        if ride.owner_id != rider_id:
            raise ActionNotPermitted("only the rider can search matches for a request")
        if ride.kind != RideKind.RIDER:
            raise ActionNotPermitted(f"ride {rider_ride_id} is not a rider request")
        if ride.status != RideStatus.AVAILABLE:
            raise InvalidTransition(
                f"ride {rider_ride_id} is {ride.status.value}, not open for matching"
            )

        hosts = await self.rides.get_available_hosts(
            exclude_owner=rider_id, limit=self.settings.candidate_scan_limit
        )
        by_id = {h.id: h for h in hosts}
        radius = (
            self.settings.proximity_radius_km
            if self.settings.require_endpoint_proximity
            else None
        )
        ranked = rank_candidates(
            rider_id,
            ride_route(ride),
            (to_candidate(h) for h in hosts),
            threshold=self.settings.similarity_threshold if threshold is None else threshold,
            scorer=self.scorer,
            proximity_radius_km=radius,
        )
        logger.info(
            "Rider %s request %s: %d of %d hosts matched",
            rider_id,
            rider_ride_id,
            len(ranked),
            len(hosts),
        )
        return [
            HostOffer(ride=by_id[c.ride_id], score=c.score, breakdown=c.breakdown)
            for c in ranked
        ]

    async def find_nearby_hosts(
        self,
        ctx: SessionContext,
        location: GeoPoint,
        radius_km: float | None = None,
    ) -> list[HostOffer]:
        """Host rides whose origin lies within *radius_km* of *location*."""
        rider_id = ctx.require_identity()
        radius = self.settings.proximity_radius_km if radius_km is None else radius_km
        cells = h3_cells_within(
            location.latitude, location.longitude, radius, self.settings.h3_resolution
        )
        hosts = await self.rides.get_available_hosts_in_cells(
            cells, exclude_owner=rider_id
        )

        offers = []
        for host in hosts:
            distance = haversine_km(
                location.latitude, location.longitude, host.origin_lat, host.origin_lng
            )
            if distance <= radius:
                offers.append(HostOffer(ride=host, distance_km=distance))
        offers.sort(key=lambda o: o.distance_km)
        return offers


def ride_route(ride: RideModel) -> Route:
    return Route.from_dicts(ride.route)


def to_candidate(ride: RideModel) -> HostCandidate:
    return HostCandidate(
        ride_id=ride.id,
        owner_id=ride.owner_id,
        route=ride_route(ride),
        created_at=as_utc(ride.created_at),
        seats_available=ride.seats_available or 0,
    )


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
