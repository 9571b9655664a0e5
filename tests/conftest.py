"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The directions provider is replaced by an
``httpx.MockTransport`` that answers every request with a straight-line
route between the requested origin and destination, encoded as a real
polyline, so the production client and codec are exercised end to end.
"""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.domain.entities import GeoPoint, Route, SessionContext, Waypoint
from src.domain.enums import MatchDecision, RideKind
from src.domain.polyline import encode
from src.infrastructure import models  # noqa: F401  (registers tables)
from src.infrastructure.database import Base
from src.infrastructure.directions import DirectionsClient
from src.services.lifecycle import RideLifecycle

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

DIRECTIONS_URL = "https://maps.test/directions/json"
GEOCODING_URL = "https://maps.test/geocode/json"

# Rider / host corridor used across tests (~12 km across Bengaluru).
CORRIDOR_START = (12.90, 77.50)
CORRIDOR_END = (12.95, 77.60)


# ── Helpers ───────────────────────────────────────────────────────────


def straight_route(start, end, points: int = 50) -> Route:
    """Evenly spaced points on the lat/lng line from *start* to *end*."""
    steps = points - 1
    return Route.from_pairs(
        (
            start[0] + (end[0] - start[0]) * i / steps,
            start[1] + (end[1] - start[1]) * i / steps,
        )
        for i in range(points)
    )


def waypoint(lat: float, lng: float, address: str | None = "somewhere") -> Waypoint:
    return Waypoint(point=GeoPoint(lat, lng), address=address)


def directions_handler(request: httpx.Request) -> httpx.Response:
    """Fake provider: straight 50-point route, or a reverse-geocoded address."""
    params = request.url.params
    if request.url.path.endswith("/geocode/json"):
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [{"formatted_address": f"Near {params['latlng']}"}],
            },
        )
    origin = tuple(float(v) for v in params["origin"].split(","))
    destination = tuple(float(v) for v in params["destination"].split(","))
    polyline = encode(straight_route(origin, destination))
    return httpx.Response(
        200,
        json={"status": "OK", "routes": [{"overview_polyline": {"points": polyline}}]},
    )


def make_directions(handler=directions_handler) -> DirectionsClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DirectionsClient(
        http,
        api_key="test-key",
        directions_url=DIRECTIONS_URL,
        geocoding_url=GEOCODING_URL,
    )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory schema per test."""
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def directions() -> AsyncGenerator[DirectionsClient, None]:
    client = make_directions()
    yield client
    await client.http.aclose()


@pytest.fixture
def lifecycle(db_session, directions) -> RideLifecycle:
    return RideLifecycle(db_session, directions=directions)


@pytest.fixture
def host_ctx() -> SessionContext:
    return SessionContext(identity_id="+910000000001")


@pytest.fixture
def rider_ctx() -> SessionContext:
    return SessionContext(identity_id="+910000000002")


@pytest_asyncio.fixture
async def registered(lifecycle, host_ctx, rider_ctx):
    """Register the host and the rider; returns ``(host, rider)`` identities."""
    host = await lifecycle.register_identity(host_ctx.identity_id, name="Host")
    rider = await lifecycle.register_identity(rider_ctx.identity_id, name="Rider")
    return host, rider


async def create_host_ride(lifecycle, ctx, start=CORRIDOR_START, end=CORRIDOR_END, seats=2):
    return await lifecycle.create_ride(
        ctx,
        RideKind.HOST,
        waypoint(*start),
        waypoint(*end),
        seats_available=seats,
        price_per_seat=Decimal("50.00"),
    )


async def create_rider_ride(lifecycle, ctx, start=CORRIDOR_START, end=CORRIDOR_END):
    return await lifecycle.create_ride(
        ctx, RideKind.RIDER, waypoint(*start), waypoint(*end)
    )


@pytest_asyncio.fixture
async def pending(lifecycle, registered, host_ctx, rider_ctx):
    """A host ride, a matching rider request and the PENDING match between them."""
    host_ride = await create_host_ride(lifecycle, host_ctx)
    rider_ride = await create_rider_ride(lifecycle, rider_ctx)
    match = await lifecycle.select_host(rider_ctx, host_ride.id, rider_ride.id)
    return host_ride, rider_ride, match


@pytest_asyncio.fixture
async def accepted(lifecycle, pending, host_ctx):
    """``pending`` after the host accepted it."""
    host_ride, rider_ride, match = pending
    await lifecycle.respond_to_match(host_ctx, match.id, MatchDecision.ACCEPT)
    return host_ride, rider_ride, match
