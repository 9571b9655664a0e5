"""
SQLAlchemy ORM models.

Tables
------
* ``identities``      -- registered riders / hosts and their pickup OTP
* ``rides``           -- host offers and rider requests, with their route
* ``identity_rides``  -- per-identity ride history (rides-by-identity)
* ``matches``         -- rider <-> host-ride pairings

Routes are stored as JSON lists of ``{"latitude", "longitude"}``; the
matching engine reads them whole, so no spatial column type is needed.
``origin_cell`` holds the H3 cell of the ride origin for the
nearby-host prefilter.

Indexes
-------
* **B-Tree** on ``status``/``kind``, ``owner_id``, ``origin_cell`` for the
  candidate scan; on ``rider_id``/``host_id`` for match listings.
* **Unique** ``active_key`` on ``matches``: set to ``rider_id:ride_id``
  while a match is active and NULL once rejected, so at most one active
  match exists per pair.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)

from .database import Base
from src.domain.enums import MatchStatus, RideKind, RideStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityModel(Base):
    __tablename__ = "identities"

    id = Column(String(64), primary_key=True)  # phone number or opaque id
    otp = Column(String(6), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    name = Column(String(120), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), ForeignKey("identities.id"), nullable=False)
    kind = Column(Enum(RideKind), nullable=False)

    origin_lat = Column(Float, nullable=False)
    origin_lng = Column(Float, nullable=False)
    origin_address = Column(String(255), nullable=True)
    origin_time = Column(DateTime(timezone=True), nullable=True)
    origin_cell = Column(String(20), nullable=True)

    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)
    destination_address = Column(String(255), nullable=True)
    destination_time = Column(DateTime(timezone=True), nullable=True)

    route = Column(JSON, nullable=False)

    seats_available = Column(Integer, nullable=True)
    price_per_seat = Column(Numeric(10, 2), nullable=True)

    status = Column(Enum(RideStatus), default=RideStatus.AVAILABLE, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_rides_kind_status", "kind", "status"),
        Index("idx_rides_owner", "owner_id"),
        Index("idx_rides_origin_cell", "origin_cell"),
        Index("idx_rides_created", "created_at"),
    )


class IdentityRideModel(Base):
    __tablename__ = "identity_rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity_id = Column(String(64), ForeignKey("identities.id"), nullable=False)
    ride_id = Column(String(36), ForeignKey("rides.id"), nullable=False)
    kind = Column(Enum(RideKind), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index("idx_identity_rides_identity", "identity_id"),)


class MatchModel(Base):
    __tablename__ = "matches"

    id = Column(String(36), primary_key=True)
    rider_id = Column(String(64), ForeignKey("identities.id"), nullable=False)
    host_id = Column(String(64), ForeignKey("identities.id"), nullable=False)
    ride_id = Column(String(36), ForeignKey("rides.id"), nullable=False)
    rider_ride_id = Column(String(36), ForeignKey("rides.id"), nullable=True)

    rider_origin_lat = Column(Float, nullable=True)
    rider_origin_lng = Column(Float, nullable=True)
    rider_destination_lat = Column(Float, nullable=True)
    rider_destination_lng = Column(Float, nullable=True)
    host_origin_lat = Column(Float, nullable=False)
    host_origin_lng = Column(Float, nullable=False)
    host_destination_lat = Column(Float, nullable=False)
    host_destination_lng = Column(Float, nullable=False)

    score = Column(Float, nullable=True)
    status = Column(Enum(MatchStatus), default=MatchStatus.PENDING, nullable=False)
    active_key = Column(String(110), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_matches_rider", "rider_id"),
        Index("idx_matches_host", "host_id"),
        Index("idx_matches_ride", "ride_id"),
        Index("idx_matches_status", "status"),
    )
