"""
Ride endpoints
==============

POST  /api/v1/rides                  -- plan and store a host offer or rider request
GET   /api/v1/rides/nearby           -- host rides starting near a location
GET   /api/v1/rides/{ride_id}        -- ride details and status
GET   /api/v1/rides/{ride_id}/matches -- ranked host candidates for a rider request
PATCH /api/v1/rides/{ride_id}/cancel   -- cancel a ride (owner only)
PATCH /api/v1/rides/{ride_id}/complete -- complete a started ride (owner only)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import (
    get_coordinator,
    get_lifecycle,
    get_ride_planner,
    get_session_context,
)
from src.api.middleware import limiter
from src.api.schemas import (
    ErrorResponse,
    HostOfferResponse,
    RideCreateRequest,
    RideResponse,
)
from src.domain.entities import GeoPoint, SessionContext
from src.services.coordinator import MatchCoordinator
from src.services.lifecycle import RideLifecycle

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Create a host offer or a rider request",
    responses={
        401: {"model": ErrorResponse},
        503: {"model": ErrorResponse, "description": "Directions provider unavailable; retry."},
    },
)
@limiter.limit("100/minute")
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    ctx: SessionContext = Depends(get_session_context),
    planner: RideLifecycle = Depends(get_ride_planner),
):
    return await planner.create_ride(
        ctx,
        body.kind,
        body.origin.to_waypoint(),
        body.destination.to_waypoint(),
        seats_available=body.seats_available,
        price_per_seat=body.price_per_seat,
    )


@router.get(
    "/nearby",
    response_model=list[HostOfferResponse],
    summary="Available host rides starting near a location",
)
@limiter.limit("100/minute")
async def nearby_hosts(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=50),
    ctx: SessionContext = Depends(get_session_context),
    coordinator: MatchCoordinator = Depends(get_coordinator),
):
    offers = await coordinator.find_nearby_hosts(ctx, GeoPoint(lat, lng), radius_km)
    return [HostOfferResponse.from_offer(o) for o in offers]


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get ride status",
)
@limiter.limit("100/minute")
async def get_ride(
    request: Request,
    ride_id: str,
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_ride(ride_id)


@router.get(
    "/{ride_id}/matches",
    response_model=list[HostOfferResponse],
    summary="Ranked host candidates for a rider request",
)
@limiter.limit("100/minute")
async def find_matches(
    request: Request,
    ride_id: str,
    threshold: Optional[float] = Query(None, ge=0, le=100),
    ctx: SessionContext = Depends(get_session_context),
    coordinator: MatchCoordinator = Depends(get_coordinator),
):
    offers = await coordinator.find_matches(ctx, ride_id, threshold)
    return [HostOfferResponse.from_offer(o) for o in offers]


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
)
@limiter.limit("100/minute")
async def cancel_ride(
    request: Request,
    ride_id: str,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.cancel_ride(ctx, ride_id)


@router.patch(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Complete a started ride",
)
@limiter.limit("100/minute")
async def complete_ride(
    request: Request,
    ride_id: str,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.complete_ride(ctx, ride_id)
