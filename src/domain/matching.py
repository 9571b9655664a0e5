"""
Candidate Ranking
=================

1. **Ownership**   -- a rider is never offered their own host rides.
2. **Geofence**    -- the rider's pickup *and* drop-off must lie within
   ``proximity_radius_km`` of the host route (AND policy, optional).
3. **Similarity**  -- ``SimilarityScorer.score(rider_route, host_route)``;
   candidates below ``threshold`` are dropped.
4. **Ranking**     -- score descending, ties broken by the oldest
   ``created_at``.

Complexity
----------
Let H = candidate host rides, N = sample points, k = host route points.

* Geofence:  O(H x k)
* Scoring:   O(H x N²)
* Sorting:   O(H log H)

This is a full scan over the snapshot it is handed; bounding the snapshot
is the caller's job.

Nearby hosts
------------
Ride origins are binned into H3 hexagons so "hosts starting near me"
only has to look at a small disk of cells before the exact haversine
check.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

import h3

from .distance import endpoints_on_route
from .entities import HostCandidate, RankedCandidate, Route
from .similarity import SimilarityScorer

logger = logging.getLogger(__name__)


def rank_candidates(
    rider_id: str,
    rider_route: Route,
    candidates: Iterable[HostCandidate],
    threshold: float = 75.0,
    scorer: SimilarityScorer | None = None,
    proximity_radius_km: float | None = 0.5,
) -> list[RankedCandidate]:
    """
    Score and rank *candidates* for a rider travelling *rider_route*.

    Pass ``proximity_radius_km=None`` to skip the endpoint geofence.
    Candidates are read, never modified.
    """
    scorer = scorer or SimilarityScorer()
    ranked: list[RankedCandidate] = []

    for candidate in candidates:
        if candidate.owner_id == rider_id:
            continue

        if proximity_radius_km is not None and not endpoints_on_route(
            rider_route.start,
            rider_route.end,
            candidate.route,
            proximity_radius_km,
        ):
            logger.debug("Host ride %s rejected by geofence", candidate.ride_id)
            continue

        breakdown = scorer.breakdown(rider_route, candidate.route)
        if breakdown.score < threshold:
            logger.debug(
                "Host ride %s scored %.2f (< %.2f)",
                candidate.ride_id,
                breakdown.score,
                threshold,
            )
            continue

        ranked.append(
            RankedCandidate(
                ride_id=candidate.ride_id,
                owner_id=candidate.owner_id,
                score=breakdown.score,
                created_at=candidate.created_at,
                seats_available=candidate.seats_available,
                breakdown=breakdown,
            )
        )

    ranked.sort(key=lambda c: (-c.score, c.created_at))
    return ranked


def ride_h3_cell(lat: float, lng: float, resolution: int = 8) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def h3_cells_within(
    lat: float, lng: float, radius_km: float, resolution: int = 8
) -> set[str]:
    """
    H3 cells that together cover every point within *radius_km*.

    Each ring adds at least one hexagon edge length of coverage, so
    ``ceil(radius / edge) + 1`` rings is always enough.
    """
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    k = math.ceil(radius_km / edge_km) + 1
    return set(h3.grid_disk(ride_h3_cell(lat, lng, resolution), k))
