"""
Ride Lifecycle
==============

Owns every write to rides and matches.

Ride   AVAILABLE --match--> MATCHED --start--> STARTED --complete--> COMPLETED
       (AVAILABLE | MATCHED | STARTED) --cancel--> CANCELLED

Match  PENDING --accept--> ACCEPTED --start (OTP)--> STARTED
       PENDING --reject--> REJECTED

Rules
-----
* Every operation takes an explicit ``SessionContext``; no identity, no
  write (``IdentityMissing``).
* Legality is always decided by the shared transition tables before any
  write, so a rejected operation leaves state untouched.
* Writes are conditional on the status that was read.  Losing that race
  raises ``StoreConflict`` and the session's transaction is rolled back
  by the caller, so a match and its rides start together or not at all.
* Ride ids are UUIDs; nothing is derived from row counts.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, settings as default_settings
from src.domain.entities import SessionContext, Waypoint
from src.domain.enums import (
    MatchDecision,
    MatchEvent,
    MatchStatus,
    RideEvent,
    RideKind,
    RideStatus,
)
from src.domain.errors import (
    ActionNotPermitted,
    IdentityMissing,
    InvalidTransition,
    MatchNotFound,
    OtpAttemptsExceeded,
    OtpMismatch,
    RideNotFound,
    StoreConflict,
)
from src.domain.matching import ride_h3_cell
from src.domain.sampling import declutter
from src.domain.similarity import SimilarityScorer
from src.domain.state_machine import MATCH_MACHINE, RIDE_MACHINE
from src.infrastructure.directions import DirectionsClient
from src.infrastructure.models import IdentityModel, MatchModel, RideModel
from src.infrastructure.otp_limiter import OtpAttemptLimiter
from src.infrastructure.repositories import (
    IdentityRepository,
    MatchRepository,
    RideRepository,
    active_key,
)
from .coordinator import ride_route

logger = logging.getLogger(__name__)

OTP_DIGITS = 6


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp() -> str:
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


class RideLifecycle:
    def __init__(
        self,
        session: AsyncSession,
        *,
        directions: DirectionsClient | None = None,
        limiter: OtpAttemptLimiter | None = None,
        scorer: SimilarityScorer | None = None,
        settings: Settings = default_settings,
    ):
        self.identities = IdentityRepository(session)
        self.rides = RideRepository(session)
        self.matches = MatchRepository(session)
        self.directions = directions
        self.limiter = limiter
        self.settings = settings
        self.scorer = scorer or SimilarityScorer.from_settings(settings)

    # ── Identities ────────────────────────────────────────────────

    async def register_identity(
        self,
        identity_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
    ) -> IdentityModel:
        """Register an identity and issue its pickup OTP (once)."""
        if not identity_id or not identity_id.strip():
            raise IdentityMissing("an identity needs a phone number or id")
        if await self.identities.get_by_id(identity_id) is not None:
            raise StoreConflict(f"identity {identity_id} already exists")
        identity = await self.identities.create(
            IdentityModel(
                id=identity_id,
                otp=generate_otp(),
                verified=False,
                name=name,
                email=email,
                created_at=_utcnow(),
            )
        )
        logger.info("Registered identity %s", identity_id)
        return identity

    async def get_identity(self, ctx: SessionContext) -> IdentityModel:
        return await self._require_identity(ctx)

    # ── Rides ─────────────────────────────────────────────────────

    async def create_ride(
        self,
        ctx: SessionContext,
        kind: RideKind,
        origin: Waypoint,
        destination: Waypoint,
        *,
        seats_available: Optional[int] = None,
        price_per_seat: Optional[Decimal] = None,
    ) -> RideModel:
        """Plan the route with the directions provider and store the ride."""
        identity = await self._require_identity(ctx)
        if kind == RideKind.HOST:
            if seats_available is None or seats_available < 0:
                raise ValueError("a host ride needs seats_available >= 0")
            if price_per_seat is None or price_per_seat < 0:
                raise ValueError("a host ride needs price_per_seat >= 0")
        else:
            seats_available = price_per_seat = None

        if self.directions is None:
            raise RuntimeError("RideLifecycle.create_ride needs a directions client")
        route = await self.directions.fetch_route(origin.point, destination.point)
        route = declutter(route, self.settings.declutter_min_separation_km)

        origin_address = origin.address or await self.directions.reverse_geocode(
            origin.point
        )
        destination_address = (
            destination.address
            or await self.directions.reverse_geocode(destination.point)
        )

        now = _utcnow()
        ride = RideModel(
            id=str(uuid.uuid4()),
            owner_id=identity.id,
            kind=kind,
            origin_lat=origin.point.latitude,
            origin_lng=origin.point.longitude,
            origin_address=origin_address,
            origin_time=origin.timestamp or now,
            origin_cell=ride_h3_cell(
                origin.point.latitude,
                origin.point.longitude,
                self.settings.h3_resolution,
            ),
            destination_lat=destination.point.latitude,
            destination_lng=destination.point.longitude,
            destination_address=destination_address,
            destination_time=destination.timestamp or now,
            route=route.to_dicts(),
            seats_available=seats_available,
            price_per_seat=price_per_seat,
            status=RideStatus.AVAILABLE,
            created_at=now,
            updated_at=now,
        )
        await self.rides.create(ride)
        logger.info(
            "Created %s ride %s for %s (%d route points)",
            kind.value,
            ride.id,
            identity.id,
            len(route),
        )
        return ride

    async def get_ride(self, ride_id: str) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise RideNotFound(f"ride {ride_id} not found")
        return ride

    async def list_rides(self, ctx: SessionContext) -> list[RideModel]:
        identity_id = ctx.require_identity()
        return await self.rides.list_for_identity(identity_id)

    async def complete_ride(self, ctx: SessionContext, ride_id: str) -> RideModel:
        return await self._owner_ride_event(ctx, ride_id, RideEvent.COMPLETE)

    async def cancel_ride(self, ctx: SessionContext, ride_id: str) -> RideModel:
        return await self._owner_ride_event(ctx, ride_id, RideEvent.CANCEL)

    # ── Matches ───────────────────────────────────────────────────

    async def select_host(
        self,
        ctx: SessionContext,
        host_ride_id: str,
        rider_ride_id: str | None = None,
    ) -> MatchModel:
        """Rider picks a host ride; creates (or returns) the active PENDING match."""
        rider = await self._require_identity(ctx)
        host_ride = await self.get_ride(host_ride_id)
        if host_ride.kind != RideKind.HOST:
            raise ActionNotPermitted(f"ride {host_ride_id} is not a host offer")
        if host_ride.owner_id == rider.id:
            raise ActionNotPermitted("a host cannot join their own ride")

        existing = await self.matches.get_active(rider.id, host_ride.id)
        if existing is not None:
            return existing

        RIDE_MACHINE.next_state(host_ride.status, RideEvent.MATCH)
        if not host_ride.seats_available:
            raise InvalidTransition(f"ride {host_ride_id} has no seats left")

        rider_ride = await self._resolve_rider_ride(rider.id, rider_ride_id)
        score = None
        if rider_ride is not None:
            score = self.scorer.score(ride_route(rider_ride), ride_route(host_ride))

        match = MatchModel(
            id=str(uuid.uuid4()),
            rider_id=rider.id,
            host_id=host_ride.owner_id,
            ride_id=host_ride.id,
            rider_ride_id=rider_ride.id if rider_ride else None,
            rider_origin_lat=rider_ride.origin_lat if rider_ride else None,
            rider_origin_lng=rider_ride.origin_lng if rider_ride else None,
            rider_destination_lat=rider_ride.destination_lat if rider_ride else None,
            rider_destination_lng=rider_ride.destination_lng if rider_ride else None,
            host_origin_lat=host_ride.origin_lat,
            host_origin_lng=host_ride.origin_lng,
            host_destination_lat=host_ride.destination_lat,
            host_destination_lng=host_ride.destination_lng,
            score=score,
            status=MatchStatus.PENDING,
            active_key=active_key(rider.id, host_ride.id),
            created_at=_utcnow(),
            updated_at=_utcnow(),
        )
        await self.matches.create(match)
        logger.info(
            "Rider %s selected host ride %s (match %s)", rider.id, host_ride.id, match.id
        )
        return match

    async def get_match(self, ctx: SessionContext, match_id: str) -> MatchModel:
        identity_id = ctx.require_identity()
        match = await self._load_match(match_id)
        if identity_id not in (match.rider_id, match.host_id):
            raise ActionNotPermitted("only the rider or the host can view a match")
        return match

    async def list_matches(self, ctx: SessionContext) -> list[MatchModel]:
        identity_id = ctx.require_identity()
        return await self.matches.list_for_identity(identity_id)

    async def respond_to_match(
        self, ctx: SessionContext, match_id: str, decision: MatchDecision
    ) -> MatchModel:
        """Host accepts or rejects a pending match."""
        identity_id = ctx.require_identity()
        match = await self._load_match(match_id)
        if identity_id != match.host_id:
            raise ActionNotPermitted("only the host can accept or reject a match")

        if decision == MatchDecision.REJECT:
            MATCH_MACHINE.next_state(match.status, MatchEvent.REJECT)
            if not await self.matches.transition(
                match, MatchStatus.PENDING, MatchStatus.REJECTED, active_key=None
            ):
                raise StoreConflict(f"match {match_id} changed while rejecting")
            logger.info("Match %s rejected by host %s", match_id, identity_id)
            return match

        MATCH_MACHINE.next_state(match.status, MatchEvent.ACCEPT)
        host_ride = await self.get_ride(match.ride_id)
        RIDE_MACHINE.next_state(host_ride.status, RideEvent.MATCH)
        if not host_ride.seats_available:
            raise InvalidTransition(f"ride {host_ride.id} has no seats left")
        rider_ride = None
        if match.rider_ride_id:
            rider_ride = await self.get_ride(match.rider_ride_id)
            RIDE_MACHINE.next_state(rider_ride.status, RideEvent.MATCH)

        if not await self.matches.transition(
            match, MatchStatus.PENDING, MatchStatus.ACCEPTED
        ):
            raise StoreConflict(f"match {match_id} changed while accepting")
        if not await self.rides.transition(
            host_ride, RideStatus.AVAILABLE, RideStatus.MATCHED, consume_seat=True
        ):
            raise StoreConflict(f"ride {host_ride.id} changed while accepting")
        if rider_ride is not None and not await self.rides.transition(
            rider_ride, RideStatus.AVAILABLE, RideStatus.MATCHED
        ):
            raise StoreConflict(f"ride {rider_ride.id} changed while accepting")

        logger.info("Match %s accepted by host %s", match_id, identity_id)
        return match

    async def verify_otp_and_start(
        self, ctx: SessionContext, match_id: str, code: str
    ) -> bool:
        """
        Start the trip once the host enters the rider's OTP.

        The attempt is counted before the code is compared byte-for-byte
        (nothing is trimmed).  On a mismatch no ride or match changes and
        ``OtpMismatch`` is raised.  On success the match and its ride(s)
        move to STARTED together.
        """
        identity_id = ctx.require_identity()
        match = await self._load_match(match_id)
        if identity_id != match.host_id:
            raise ActionNotPermitted("only the host can start a ride")

        if self.limiter is not None and not await self.limiter.try_attempt(match_id):
            raise OtpAttemptsExceeded(f"too many OTP attempts for match {match_id}")

        MATCH_MACHINE.next_state(match.status, MatchEvent.START)
        host_ride = await self.get_ride(match.ride_id)
        RIDE_MACHINE.next_state(host_ride.status, RideEvent.START)
        rider_ride = None
        if match.rider_ride_id:
            rider_ride = await self.get_ride(match.rider_ride_id)
            RIDE_MACHINE.next_state(rider_ride.status, RideEvent.START)

        rider = await self.identities.get_by_id(match.rider_id)
        if rider is None:
            raise IdentityMissing(f"rider {match.rider_id} is not registered")

        if not hmac.compare_digest(code.encode("utf-8"), rider.otp.encode("utf-8")):
            logger.info("OTP mismatch for match %s", match_id)
            raise OtpMismatch("the code does not match the rider's OTP")

        if not await self.matches.transition(
            match, MatchStatus.ACCEPTED, MatchStatus.STARTED, started_at=_utcnow()
        ):
            raise StoreConflict(f"match {match_id} was started concurrently")
        if not await self.rides.transition(
            host_ride, RideStatus.MATCHED, RideStatus.STARTED
        ):
            raise StoreConflict(f"ride {host_ride.id} changed while starting")
        if rider_ride is not None and not await self.rides.transition(
            rider_ride, RideStatus.MATCHED, RideStatus.STARTED
        ):
            raise StoreConflict(f"ride {rider_ride.id} changed while starting")

        if self.limiter is not None:
            await self.limiter.reset(match_id)
        logger.info("Match %s started", match_id)
        return True

    # ── Internals ─────────────────────────────────────────────────

    async def _require_identity(self, ctx: SessionContext) -> IdentityModel:
        identity_id = ctx.require_identity()
        identity = await self.identities.get_by_id(identity_id)
        if identity is None:
            raise IdentityMissing(f"identity {identity_id} is not registered")
        return identity

    async def _load_match(self, match_id: str) -> MatchModel:
        match = await self.matches.get_by_id(match_id)
        if match is None:
            raise MatchNotFound(f"match {match_id} not found")
        return match

    async def _resolve_rider_ride(
        self, rider_id: str, rider_ride_id: str | None
    ) -> RideModel | None:
        if rider_ride_id is None:
            return await self.rides.get_latest_open_request(rider_id)
        ride = await self.get_ride(rider_ride_id)
        if ride.owner_id != rider_id or ride.kind != RideKind.RIDER:
            raise ActionNotPermitted(
                f"ride {rider_ride_id} is not one of your ride requests"
            )
        return ride

    async def _owner_ride_event(
        self, ctx: SessionContext, ride_id: str, event: RideEvent
    ) -> RideModel:
        identity_id = ctx.require_identity()
        ride = await self.get_ride(ride_id)
        if ride.owner_id != identity_id:
            raise ActionNotPermitted("only the owner can change this ride")
        current = ride.status
        new = RIDE_MACHINE.next_state(current, event)
        if not await self.rides.transition(ride, current, new):
            raise StoreConflict(f"ride {ride_id} changed concurrently")
        logger.info("Ride %s: %s -> %s", ride_id, current.value, new.value)
        return ride
