"""
Identity endpoints
==================

POST /api/v1/identities          -- register a phone number / id and issue its OTP
GET  /api/v1/identities/me       -- the caller's identity (shows their pickup OTP)
GET  /api/v1/identities/me/rides -- the caller's ride history, newest first
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_lifecycle, get_session_context
from src.api.middleware import limiter
from src.api.schemas import IdentityCreateRequest, IdentityResponse, RideResponse
from src.domain.entities import SessionContext
from src.services.lifecycle import RideLifecycle

router = APIRouter(prefix="/identities", tags=["identities"])


@router.post("", status_code=201, response_model=IdentityResponse)
@limiter.limit("20/minute")
async def register_identity(
    request: Request,
    body: IdentityCreateRequest,
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.register_identity(
        body.identity_id, name=body.name, email=body.email
    )


@router.get("/me", response_model=IdentityResponse)
@limiter.limit("100/minute")
async def get_me(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_identity(ctx)


@router.get("/me/rides", response_model=list[RideResponse])
@limiter.limit("100/minute")
async def my_rides(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_rides(ctx)
