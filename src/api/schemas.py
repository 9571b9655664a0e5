"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from src.domain.entities import GeoPoint, Waypoint
from src.domain.enums import MatchDecision, MatchStatus, RideKind, RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=255)
    timestamp: Optional[datetime] = None

    def to_waypoint(self) -> Waypoint:
        return Waypoint(
            point=GeoPoint(self.latitude, self.longitude),
            address=self.address,
            timestamp=self.timestamp,
        )


class IdentityCreateRequest(BaseModel):
    identity_id: str = Field(..., min_length=1, max_length=64)
    name: Optional[str] = Field(None, max_length=120)
    email: Optional[str] = Field(None, max_length=255)


class RideCreateRequest(BaseModel):
    kind: RideKind
    origin: LocationIn
    destination: LocationIn
    seats_available: Optional[int] = Field(None, ge=0, le=8)
    price_per_seat: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    @model_validator(mode="after")
    def _host_fields(self) -> "RideCreateRequest":
        if self.kind == RideKind.HOST and (
            self.seats_available is None or self.price_per_seat is None
        ):
            raise ValueError("host rides need seats_available and price_per_seat")
        return self


class SelectHostRequest(BaseModel):
    host_ride_id: str
    rider_ride_id: Optional[str] = Field(
        None,
        description="Rider's own request; defaults to their latest open request.",
    )


class MatchDecisionRequest(BaseModel):
    decision: MatchDecision


class OtpRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)


# ── Responses ─────────────────────────────────────────────────────────


class PointOut(BaseModel):
    latitude: float
    longitude: float


class IdentityResponse(BaseModel):
    id: str
    otp: str
    verified: bool
    name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RideResponse(BaseModel):
    id: str
    owner_id: str
    kind: RideKind
    origin_lat: float
    origin_lng: float
    origin_address: Optional[str] = None
    destination_lat: float
    destination_lng: float
    destination_address: Optional[str] = None
    route: list[PointOut]
    seats_available: Optional[int] = None
    price_per_seat: Optional[Decimal] = None
    status: RideStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ScoreBreakdownResponse(BaseModel):
    match_ratio: float
    avg_distance_km: float
    max_distance_km: float
    distance_score: float
    direction_similarity: float

    model_config = {"from_attributes": True}


class HostOfferResponse(BaseModel):
    ride: RideResponse
    score: Optional[float] = None
    breakdown: Optional[ScoreBreakdownResponse] = None
    distance_km: Optional[float] = None

    @classmethod
    def from_offer(cls, offer) -> "HostOfferResponse":
        return cls(
            ride=RideResponse.model_validate(offer.ride),
            score=offer.score,
            breakdown=(
                ScoreBreakdownResponse.model_validate(offer.breakdown)
                if offer.breakdown is not None
                else None
            ),
            distance_km=offer.distance_km,
        )


class MatchResponse(BaseModel):
    id: str
    rider_id: str
    host_id: str
    ride_id: str
    rider_ride_id: Optional[str] = None
    rider_origin_lat: Optional[float] = None
    rider_origin_lng: Optional[float] = None
    rider_destination_lat: Optional[float] = None
    rider_destination_lng: Optional[float] = None
    host_origin_lat: float
    host_origin_lng: float
    host_destination_lat: float
    host_destination_lng: float
    score: Optional[float] = None
    status: MatchStatus
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StartResponse(BaseModel):
    started: bool
    match: MatchResponse


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    error: str
    retryable: bool = False
