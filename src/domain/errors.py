"""
Error taxonomy shared by the domain, the services and the API layer.

Every error carries ``retryable`` so callers can tell a transient failure
(provider outage, OTP typo, lost optimistic-concurrency race) from one
that blocks the action entirely.
"""

from __future__ import annotations


class RouteShareError(Exception):
    """Base class for all errors raised by the matching engine."""

    retryable: bool = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or "")
        self.message = message or (self.__class__.__doc__ or "").strip()


# ── Geometry ──────────────────────────────────────────────────────────


class InvalidCoordinate(RouteShareError, ValueError):
    """Latitude or longitude is outside the valid range."""


class InvalidRoute(RouteShareError, ValueError):
    """A route needs at least two points."""


class MalformedPolyline(RouteShareError, ValueError):
    """Encoded polyline could not be decoded."""


# ── Providers ─────────────────────────────────────────────────────────


class RouteUnavailable(RouteShareError):
    """Directions provider returned no usable route."""

    retryable = True


# ── Lifecycle ─────────────────────────────────────────────────────────


class IdentityMissing(RouteShareError):
    """No stable rider/host identity is attached to the request."""


class ActionNotPermitted(RouteShareError):
    """The current identity may not perform this action."""


class InvalidTransition(RouteShareError):
    """The requested state change is not allowed from the current state."""


class OtpMismatch(RouteShareError):
    """The entered code does not match the rider's OTP."""

    retryable = True


class OtpAttemptsExceeded(RouteShareError):
    """Too many OTP attempts for this match; try again later."""

    retryable = True


class StoreConflict(RouteShareError):
    """The record changed underneath us; re-read and retry."""

    retryable = True


class RideNotFound(RouteShareError):
    """Ride not found."""


class MatchNotFound(RouteShareError):
    """Match not found."""
