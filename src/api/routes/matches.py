"""
Match endpoints
===============

POST /api/v1/matches                  -- rider selects a host ride
GET  /api/v1/matches                  -- matches the caller takes part in
GET  /api/v1/matches/{match_id}       -- one match (rider or host only)
POST /api/v1/matches/{match_id}/respond -- host accepts / rejects
POST /api/v1/matches/{match_id}/start   -- host enters the rider's OTP
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_lifecycle, get_session_context
from src.api.middleware import limiter
from src.api.schemas import (
    ErrorResponse,
    MatchDecisionRequest,
    MatchResponse,
    OtpRequest,
    SelectHostRequest,
    StartResponse,
)
from src.domain.entities import SessionContext
from src.services.lifecycle import RideLifecycle

router = APIRouter(prefix="/matches", tags=["matches"])


@router.post(
    "",
    status_code=201,
    response_model=MatchResponse,
    summary="Select a host ride",
)
@limiter.limit("100/minute")
async def select_host(
    request: Request,
    body: SelectHostRequest,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.select_host(ctx, body.host_ride_id, body.rider_ride_id)


@router.get("", response_model=list[MatchResponse], summary="List my matches")
@limiter.limit("100/minute")
async def list_matches(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_matches(ctx)


@router.get("/{match_id}", response_model=MatchResponse, summary="Get a match")
@limiter.limit("100/minute")
async def get_match(
    request: Request,
    match_id: str,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_match(ctx, match_id)


@router.post(
    "/{match_id}/respond",
    response_model=MatchResponse,
    summary="Accept or reject a pending match (host only)",
)
@limiter.limit("100/minute")
async def respond_to_match(
    request: Request,
    match_id: str,
    body: MatchDecisionRequest,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.respond_to_match(ctx, match_id, body.decision)


@router.post(
    "/{match_id}/start",
    response_model=StartResponse,
    summary="Verify the rider's OTP and start the ride (host only)",
    responses={
        400: {"model": ErrorResponse, "description": "Wrong code; nothing changed."},
        409: {"model": ErrorResponse, "description": "Not ACCEPTED, or started concurrently."},
        429: {"model": ErrorResponse, "description": "Too many attempts for this match."},
    },
)
@limiter.limit("30/minute")
async def verify_otp_and_start(
    request: Request,
    match_id: str,
    body: OtpRequest,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    started = await lifecycle.verify_otp_and_start(ctx, match_id, body.code)
    match = await lifecycle.get_match(ctx, match_id)
    return StartResponse(started=started, match=MatchResponse.model_validate(match))
