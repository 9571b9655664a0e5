"""
Directions / geocoding provider client.

Only the provider's public contract is relied on:

* directions -- ``status`` must be ``"OK"``; the route is
  ``routes[0].overview_polyline.points`` (an encoded polyline);
* geocoding  -- ``results[0].formatted_address``.

Any directions failure (HTTP error, timeout, non-OK status, no routes)
surfaces as ``RouteUnavailable``; an empty route is never substituted.
Geocoding is display-only, so its failures are logged and yield ``None``.

Calls are plain ``await``s on an ``httpx.AsyncClient``, so cancelling the
request task cancels the in-flight HTTP call.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from src.domain.entities import GeoPoint, Route
from src.domain.errors import RouteUnavailable
from src.domain.polyline import decode

logger = logging.getLogger(__name__)


class DirectionsClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_key: str = "",
        directions_url: str,
        geocoding_url: str | None = None,
    ):
        self.http = http
        self.api_key = api_key
        self.directions_url = directions_url
        self.geocoding_url = geocoding_url

    async def fetch_polyline(self, origin: GeoPoint, destination: GeoPoint) -> str:
        """Return the encoded overview polyline from *origin* to *destination*."""
        params = {
            "origin": _latlng(origin),
            "destination": _latlng(destination),
            "key": self.api_key,
        }
        try:
            response = await self.http.get(self.directions_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Directions request failed: %s", exc)
            raise RouteUnavailable(f"directions provider unreachable: {exc}") from exc

        status = payload.get("status")
        if status != "OK":
            logger.warning(
                "Directions provider returned %s: %s",
                status,
                payload.get("error_message", ""),
            )
            raise RouteUnavailable(f"directions provider returned {status}")

        try:
            return payload["routes"][0]["overview_polyline"]["points"]
        except (KeyError, IndexError, TypeError) as exc:
            raise RouteUnavailable("no route found between locations") from exc

    async def fetch_route(self, origin: GeoPoint, destination: GeoPoint) -> Route:
        """Fetch and decode the route; ``MalformedPolyline`` propagates."""
        return decode(await self.fetch_polyline(origin, destination))

    async def reverse_geocode(self, point: GeoPoint) -> Optional[str]:
        """Human-readable address for *point*, or ``None``."""
        if not self.geocoding_url:
            return None
        params = {"latlng": _latlng(point), "key": self.api_key}
        try:
            response = await self.http.get(self.geocoding_url, params=params)
            response.raise_for_status()
            payload = response.json()
            if payload.get("status") != "OK":
                return None
            return payload["results"][0]["formatted_address"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Reverse geocoding failed for %s: %s", _latlng(point), exc)
            return None


def _latlng(point: GeoPoint) -> str:
    return f"{point.latitude},{point.longitude}"
