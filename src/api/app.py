"""
FastAPI application factory.

* Registers routes for identities, rides, matches and admin.
* Maps the domain error taxonomy onto HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, identities, matches, rides
from src.domain.errors import (
    ActionNotPermitted,
    IdentityMissing,
    InvalidCoordinate,
    InvalidRoute,
    InvalidTransition,
    MalformedPolyline,
    MatchNotFound,
    OtpAttemptsExceeded,
    OtpMismatch,
    RideNotFound,
    RouteShareError,
    RouteUnavailable,
    StoreConflict,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Most specific first; the first isinstance() hit wins.
ERROR_STATUS: list[tuple[type[RouteShareError], int]] = [
    (MalformedPolyline, 422),
    (InvalidCoordinate, 422),
    (InvalidRoute, 422),
    (RouteUnavailable, 503),
    (IdentityMissing, 401),
    (ActionNotPermitted, 403),
    (RideNotFound, 404),
    (MatchNotFound, 404),
    (InvalidTransition, 409),
    (StoreConflict, 409),
    (OtpMismatch, 400),
    (OtpAttemptsExceeded, 429),
]


def status_for(exc: RouteShareError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


async def route_share_error_handler(request: Request, exc: RouteShareError):
    status = status_for(exc)
    if status >= 500:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={
            "detail": exc.message,
            "error": type(exc).__name__,
            "retryable": exc.retryable,
        },
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Route Share API",
        description=(
            "Pairs riders with hosts travelling a similar route.  Scores "
            "route similarity, ranks host candidates and drives each match "
            "from selection to an OTP-verified pickup."
        ),
        version="1.0.0",
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(RouteShareError, route_share_error_handler)

    # Routers
    app.include_router(identities.router, prefix="/api/v1")
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(matches.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
