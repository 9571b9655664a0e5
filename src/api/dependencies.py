"""FastAPI dependency injection helpers."""

from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import SessionContext
from src.infrastructure.database import async_session_factory
from src.infrastructure.directions import DirectionsClient
from src.infrastructure.otp_limiter import OtpAttemptLimiter
from src.infrastructure.redis_client import get_otp_limiter
from src.services.coordinator import MatchCoordinator
from src.services.lifecycle import RideLifecycle


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session_context(
    x_identity_id: Optional[str] = Header(default=None),
) -> SessionContext:
    """The acting identity, taken from the ``X-Identity-Id`` header."""
    return SessionContext(identity_id=x_identity_id)


async def get_directions() -> AsyncIterator[DirectionsClient]:
    async with httpx.AsyncClient(timeout=settings.maps_timeout_seconds) as http:
        yield DirectionsClient(
            http,
            api_key=settings.maps_api_key,
            directions_url=settings.directions_url,
            geocoding_url=settings.geocoding_url,
        )


async def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    limiter: OtpAttemptLimiter = Depends(get_otp_limiter),
) -> RideLifecycle:
    return RideLifecycle(db, limiter=limiter)


async def get_coordinator(db: AsyncSession = Depends(get_db)) -> MatchCoordinator:
    return MatchCoordinator(db)


async def get_ride_planner(
    db: AsyncSession = Depends(get_db),
    directions: DirectionsClient = Depends(get_directions),
) -> RideLifecycle:
    """Lifecycle service wired to the directions provider, for ride creation."""
    return RideLifecycle(db, directions=directions)
