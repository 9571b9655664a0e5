"""
Service-level tests for ``RideLifecycle`` and ``MatchCoordinator``.

Runs the full rider -> host -> OTP flow against in-memory SQLite with the
directions provider mocked at the HTTP layer.
"""

from __future__ import annotations

import uuid

import httpx
import pytest

from src.domain.entities import GeoPoint, SessionContext
from src.domain.enums import MatchDecision, MatchStatus, RideKind, RideStatus
from src.domain.errors import (
    ActionNotPermitted,
    IdentityMissing,
    InvalidTransition,
    MatchNotFound,
    OtpMismatch,
    RideNotFound,
    RouteUnavailable,
    StoreConflict,
)
from src.services.coordinator import MatchCoordinator
from src.services.lifecycle import RideLifecycle, generate_otp
from tests.conftest import (
    CORRIDOR_END,
    CORRIDOR_START,
    create_host_ride,
    create_rider_ride,
    make_directions,
    waypoint,
)


# ── Identities ────────────────────────────────────────────────────────


class TestIdentities:
    def test_generated_otp_is_six_digits(self):
        for _ in range(20):
            otp = generate_otp()
            assert len(otp) == 6 and otp.isdigit()

    @pytest.mark.asyncio
    async def test_register_issues_otp(self, lifecycle):
        identity = await lifecycle.register_identity("+911234567890", name="Asha")
        assert identity.id == "+911234567890"
        assert len(identity.otp) == 6
        assert identity.verified is False

    @pytest.mark.asyncio
    async def test_register_twice_conflicts(self, lifecycle):
        await lifecycle.register_identity("+911234567890")
        with pytest.raises(StoreConflict):
            await lifecycle.register_identity("+911234567890")

    @pytest.mark.asyncio
    async def test_blank_identity_rejected(self, lifecycle):
        with pytest.raises(IdentityMissing):
            await lifecycle.register_identity("  ")

    @pytest.mark.asyncio
    async def test_get_identity_requires_registration(self, lifecycle):
        with pytest.raises(IdentityMissing):
            await lifecycle.get_identity(SessionContext(identity_id="+910000009999"))


# ── Ride creation ─────────────────────────────────────────────────────


class TestCreateRide:
    @pytest.mark.asyncio
    async def test_host_ride_stored_available(self, lifecycle, registered, host_ctx):
        ride = await create_host_ride(lifecycle, host_ctx, seats=3)
        assert ride.kind == RideKind.HOST
        assert ride.status == RideStatus.AVAILABLE
        assert ride.seats_available == 3
        assert ride.owner_id == host_ctx.identity_id
        assert ride.origin_cell
        assert len(ride.route) >= 2
        assert ride.route[0] == pytest.approx({"latitude": 12.90, "longitude": 77.50})
        uuid.UUID(ride.id)

    @pytest.mark.asyncio
    async def test_rider_ride_drops_host_fields(self, lifecycle, registered, rider_ctx):
        ride = await create_rider_ride(lifecycle, rider_ctx)
        assert ride.kind == RideKind.RIDER
        assert ride.seats_available is None
        assert ride.price_per_seat is None

    @pytest.mark.asyncio
    async def test_ride_ids_unique(self, lifecycle, registered, host_ctx):
        first = await create_host_ride(lifecycle, host_ctx)
        second = await create_host_ride(lifecycle, host_ctx)
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_no_identity_rejected(self, lifecycle):
        with pytest.raises(IdentityMissing):
            await create_host_ride(lifecycle, SessionContext())

    @pytest.mark.asyncio
    async def test_unregistered_identity_rejected(self, lifecycle):
        with pytest.raises(IdentityMissing):
            await create_rider_ride(lifecycle, SessionContext(identity_id="+910000009999"))

    @pytest.mark.asyncio
    async def test_host_without_seats_rejected(self, lifecycle, registered, host_ctx):
        with pytest.raises(ValueError):
            await lifecycle.create_ride(
                host_ctx,
                RideKind.HOST,
                waypoint(*CORRIDOR_START),
                waypoint(*CORRIDOR_END),
            )

    @pytest.mark.asyncio
    async def test_missing_address_is_reverse_geocoded(self, lifecycle, registered, rider_ctx):
        ride = await lifecycle.create_ride(
            rider_ctx,
            RideKind.RIDER,
            waypoint(*CORRIDOR_START, address=None),
            waypoint(*CORRIDOR_END, address="Indiranagar"),
        )
        assert ride.origin_address == "Near 12.9,77.5"
        assert ride.destination_address == "Indiranagar"

    @pytest.mark.asyncio
    async def test_provider_failure_stores_nothing(self, db_session, registered, rider_ctx):
        def no_route(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "routes": []})

        directions = make_directions(no_route)
        lifecycle = RideLifecycle(db_session, directions=directions)
        with pytest.raises(RouteUnavailable):
            await create_rider_ride(lifecycle, rider_ctx)
        assert await lifecycle.list_rides(rider_ctx) == []
        await directions.http.aclose()

    @pytest.mark.asyncio
    async def test_list_rides_returns_history(self, lifecycle, registered, host_ctx):
        first = await create_host_ride(lifecycle, host_ctx)
        second = await create_host_ride(lifecycle, host_ctx)
        rides = await lifecycle.list_rides(host_ctx)
        assert {r.id for r in rides} == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_get_unknown_ride(self, lifecycle):
        with pytest.raises(RideNotFound):
            await lifecycle.get_ride(str(uuid.uuid4()))


# ── Selecting a host ──────────────────────────────────────────────────


class TestSelectHost:
    @pytest.mark.asyncio
    async def test_creates_pending_match(self, pending, host_ctx, rider_ctx):
        host_ride, rider_ride, match = pending
        assert match.status == MatchStatus.PENDING
        assert match.rider_id == rider_ctx.identity_id
        assert match.host_id == host_ctx.identity_id
        assert match.ride_id == host_ride.id
        assert match.rider_ride_id == rider_ride.id
        assert match.score == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_selecting_again_returns_same_match(self, lifecycle, pending, rider_ctx):
        host_ride, rider_ride, match = pending
        again = await lifecycle.select_host(rider_ctx, host_ride.id, rider_ride.id)
        assert again.id == match.id

    @pytest.mark.asyncio
    async def test_defaults_to_latest_open_request(self, lifecycle, registered, host_ctx, rider_ctx):
        host_ride = await create_host_ride(lifecycle, host_ctx)
        rider_ride = await create_rider_ride(lifecycle, rider_ctx)
        match = await lifecycle.select_host(rider_ctx, host_ride.id)
        assert match.rider_ride_id == rider_ride.id

    @pytest.mark.asyncio
    async def test_without_rider_request(self, lifecycle, registered, host_ctx, rider_ctx):
        host_ride = await create_host_ride(lifecycle, host_ctx)
        match = await lifecycle.select_host(rider_ctx, host_ride.id)
        assert match.rider_ride_id is None
        assert match.score is None

    @pytest.mark.asyncio
    async def test_host_cannot_join_own_ride(self, lifecycle, registered, host_ctx):
        host_ride = await create_host_ride(lifecycle, host_ctx)
        with pytest.raises(ActionNotPermitted):
            await lifecycle.select_host(host_ctx, host_ride.id)

    @pytest.mark.asyncio
    async def test_cannot_select_a_rider_request(self, lifecycle, registered, host_ctx, rider_ctx):
        rider_ride = await create_rider_ride(lifecycle, rider_ctx)
        with pytest.raises(ActionNotPermitted):
            await lifecycle.select_host(host_ctx, rider_ride.id)

    @pytest.mark.asyncio
    async def test_someone_elses_request_rejected(self, lifecycle, registered, host_ctx, rider_ctx):
        host_ride = await create_host_ride(lifecycle, host_ctx)
        await lifecycle.register_identity("+910000000003")
        other = SessionContext(identity_id="+910000000003")
        other_request = await create_rider_ride(lifecycle, other)
        with pytest.raises(ActionNotPermitted):
            await lifecycle.select_host(rider_ctx, host_ride.id, other_request.id)

    @pytest.mark.asyncio
    async def test_full_host_ride_rejected(self, lifecycle, registered, host_ctx, rider_ctx):
        host_ride = await create_host_ride(lifecycle, host_ctx, seats=0)
        with pytest.raises(InvalidTransition):
            await lifecycle.select_host(rider_ctx, host_ride.id)


# ── Host response ─────────────────────────────────────────────────────


class TestRespondToMatch:
    @pytest.mark.asyncio
    async def test_rider_cannot_accept(self, lifecycle, pending, rider_ctx):
        _, _, match = pending
        with pytest.raises(ActionNotPermitted):
            await lifecycle.respond_to_match(rider_ctx, match.id, MatchDecision.ACCEPT)
        assert match.status == MatchStatus.PENDING

    @pytest.mark.asyncio
    async def test_accept_matches_both_rides(self, lifecycle, accepted):
        host_ride, rider_ride, match = accepted
        assert match.status == MatchStatus.ACCEPTED
        assert host_ride.status == RideStatus.MATCHED
        assert host_ride.seats_available == 1
        assert rider_ride.status == RideStatus.MATCHED

    @pytest.mark.asyncio
    async def test_accept_twice_rejected(self, lifecycle, accepted, host_ctx):
        _, _, match = accepted
        with pytest.raises(InvalidTransition):
            await lifecycle.respond_to_match(host_ctx, match.id, MatchDecision.ACCEPT)

    @pytest.mark.asyncio
    async def test_reject_frees_the_pair(self, lifecycle, pending, host_ctx, rider_ctx):
        host_ride, rider_ride, match = pending
        await lifecycle.respond_to_match(host_ctx, match.id, MatchDecision.REJECT)
        assert match.status == MatchStatus.REJECTED
        assert match.active_key is None
        assert host_ride.status == RideStatus.AVAILABLE

        again = await lifecycle.select_host(rider_ctx, host_ride.id, rider_ride.id)
        assert again.id != match.id
        assert again.status == MatchStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_match(self, lifecycle, host_ctx):
        with pytest.raises(MatchNotFound):
            await lifecycle.respond_to_match(host_ctx, "nope", MatchDecision.ACCEPT)


# ── OTP verification ──────────────────────────────────────────────────


class TestVerifyOtpAndStart:
    @pytest.mark.asyncio
    async def test_pending_match_cannot_start(self, lifecycle, registered, pending, host_ctx):
        _, rider = registered
        _, _, match = pending
        with pytest.raises(InvalidTransition):
            await lifecycle.verify_otp_and_start(host_ctx, match.id, rider.otp)

    @pytest.mark.asyncio
    async def test_wrong_code_changes_nothing(self, lifecycle, registered, accepted, host_ctx):
        _, rider = registered
        host_ride, rider_ride, match = accepted
        wrong = "000000" if rider.otp != "000000" else "111111"
        with pytest.raises(OtpMismatch):
            await lifecycle.verify_otp_and_start(host_ctx, match.id, wrong)
        assert match.status == MatchStatus.ACCEPTED
        assert match.started_at is None
        assert host_ride.status == RideStatus.MATCHED

    @pytest.mark.asyncio
    async def test_code_is_not_trimmed(self, lifecycle, registered, accepted, host_ctx):
        _, rider = registered
        _, _, match = accepted
        with pytest.raises(OtpMismatch):
            await lifecycle.verify_otp_and_start(host_ctx, match.id, f" {rider.otp}")

    @pytest.mark.asyncio
    async def test_rider_cannot_start(self, lifecycle, registered, accepted, rider_ctx):
        _, rider = registered
        _, _, match = accepted
        with pytest.raises(ActionNotPermitted):
            await lifecycle.verify_otp_and_start(rider_ctx, match.id, rider.otp)

    @pytest.mark.asyncio
    async def test_correct_code_starts_everything(self, lifecycle, registered, accepted, host_ctx):
        _, rider = registered
        host_ride, rider_ride, match = accepted
        assert await lifecycle.verify_otp_and_start(host_ctx, match.id, rider.otp) is True
        assert match.status == MatchStatus.STARTED
        assert match.started_at is not None
        assert host_ride.status == RideStatus.STARTED
        assert rider_ride.status == RideStatus.STARTED

    @pytest.mark.asyncio
    async def test_second_start_rejected(self, lifecycle, registered, accepted, host_ctx):
        _, rider = registered
        _, _, match = accepted
        await lifecycle.verify_otp_and_start(host_ctx, match.id, rider.otp)
        with pytest.raises(InvalidTransition):
            await lifecycle.verify_otp_and_start(host_ctx, match.id, rider.otp)


# ── Completion / cancellation ─────────────────────────────────────────


class TestCompleteAndCancel:
    @pytest.mark.asyncio
    async def test_complete_after_start(self, lifecycle, registered, accepted, host_ctx):
        _, rider = registered
        host_ride, _, match = accepted
        await lifecycle.verify_otp_and_start(host_ctx, match.id, rider.otp)
        ride = await lifecycle.complete_ride(host_ctx, host_ride.id)
        assert ride.status == RideStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cannot_complete_before_start(self, lifecycle, accepted, host_ctx):
        host_ride, _, _ = accepted
        with pytest.raises(InvalidTransition):
            await lifecycle.complete_ride(host_ctx, host_ride.id)

    @pytest.mark.asyncio
    async def test_cancel_available_ride(self, lifecycle, registered, host_ctx):
        ride = await create_host_ride(lifecycle, host_ctx)
        cancelled = await lifecycle.cancel_ride(host_ctx, ride.id)
        assert cancelled.status == RideStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_only_owner_cancels(self, lifecycle, registered, host_ctx, rider_ctx):
        ride = await create_host_ride(lifecycle, host_ctx)
        with pytest.raises(ActionNotPermitted):
            await lifecycle.cancel_ride(rider_ctx, ride.id)

    @pytest.mark.asyncio
    async def test_cancelled_is_terminal(self, lifecycle, registered, host_ctx):
        ride = await create_host_ride(lifecycle, host_ctx)
        await lifecycle.cancel_ride(host_ctx, ride.id)
        with pytest.raises(InvalidTransition):
            await lifecycle.cancel_ride(host_ctx, ride.id)


# ── Match listing ─────────────────────────────────────────────────────


class TestMatchViews:
    @pytest.mark.asyncio
    async def test_both_participants_see_match(self, lifecycle, pending, host_ctx, rider_ctx):
        _, _, match = pending
        assert [m.id for m in await lifecycle.list_matches(host_ctx)] == [match.id]
        assert [m.id for m in await lifecycle.list_matches(rider_ctx)] == [match.id]
        assert (await lifecycle.get_match(rider_ctx, match.id)).id == match.id

    @pytest.mark.asyncio
    async def test_outsider_cannot_view(self, lifecycle, pending):
        _, _, match = pending
        with pytest.raises(ActionNotPermitted):
            await lifecycle.get_match(SessionContext(identity_id="+910000000099"), match.id)


# ── Candidate discovery ───────────────────────────────────────────────


class TestMatchCoordinator:
    @pytest.mark.asyncio
    async def test_identical_route_found_with_full_score(
        self, db_session, lifecycle, registered, host_ctx, rider_ctx
    ):
        host_ride = await create_host_ride(lifecycle, host_ctx)
        rider_ride = await create_rider_ride(lifecycle, rider_ctx)

        offers = await MatchCoordinator(db_session).find_matches(rider_ctx, rider_ride.id)
        assert [o.ride.id for o in offers] == [host_ride.id]
        assert offers[0].score == pytest.approx(100.0)
        assert offers[0].breakdown.match_ratio == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_unrelated_route_not_offered(
        self, db_session, lifecycle, registered, host_ctx, rider_ctx
    ):
        await create_host_ride(lifecycle, host_ctx, start=(13.10, 77.70), end=(13.20, 77.80))
        rider_ride = await create_rider_ride(lifecycle, rider_ctx)
        assert await MatchCoordinator(db_session).find_matches(rider_ctx, rider_ride.id) == []

    @pytest.mark.asyncio
    async def test_matched_hosts_not_offered(
        self, db_session, lifecycle, accepted, registered, rider_ctx
    ):
        await lifecycle.register_identity("+910000000003")
        other = SessionContext(identity_id="+910000000003")
        request = await create_rider_ride(lifecycle, other)
        assert await MatchCoordinator(db_session).find_matches(other, request.id) == []

    @pytest.mark.asyncio
    async def test_only_owner_searches(self, db_session, lifecycle, registered, host_ctx, rider_ctx):
        rider_ride = await create_rider_ride(lifecycle, rider_ctx)
        with pytest.raises(ActionNotPermitted):
            await MatchCoordinator(db_session).find_matches(host_ctx, rider_ride.id)

    @pytest.mark.asyncio
    async def test_cancelled_request_not_searched(
        self, db_session, lifecycle, registered, host_ctx, rider_ctx
    ):
        await create_host_ride(lifecycle, host_ctx)
        rider_ride = await create_rider_ride(lifecycle, rider_ctx)
        await lifecycle.cancel_ride(rider_ctx, rider_ride.id)
        with pytest.raises(InvalidTransition):
            await MatchCoordinator(db_session).find_matches(rider_ctx, rider_ride.id)

    @pytest.mark.asyncio
    async def test_matched_request_not_searched(self, db_session, accepted, rider_ctx):
        _, rider_ride, _ = accepted
        assert rider_ride.status == RideStatus.MATCHED
        with pytest.raises(InvalidTransition):
            await MatchCoordinator(db_session).find_matches(rider_ctx, rider_ride.id)

    @pytest.mark.asyncio
    async def test_unknown_request(self, db_session, rider_ctx):
        with pytest.raises(RideNotFound):
            await MatchCoordinator(db_session).find_matches(rider_ctx, "missing")

    @pytest.mark.asyncio
    async def test_nearby_hosts_sorted_by_distance(
        self, db_session, lifecycle, registered, host_ctx, rider_ctx
    ):
        near = await create_host_ride(lifecycle, host_ctx, start=(12.9010, 77.5000))
        nearer = await create_host_ride(lifecycle, host_ctx, start=(12.9002, 77.5000))
        await create_host_ride(lifecycle, host_ctx, start=(12.9500, 77.5000))

        offers = await MatchCoordinator(db_session).find_nearby_hosts(
            rider_ctx, GeoPoint(12.90, 77.50), radius_km=0.5
        )
        assert [o.ride.id for o in offers] == [nearer.id, near.id]
        assert offers[0].distance_km < offers[1].distance_km <= 0.5
