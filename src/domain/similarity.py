"""
Route Similarity Scoring
========================

score = match_ratio x 100 x W_match
      + distance_score x W_distance
      + direction_similarity x 100 x W_direction

1. **Normalise**  -- both routes are resampled to N points (default 50).
2. **Proximity**  -- for every point of A, the minimum distance to B
   (nearest point, or nearest segment in ``SEGMENT`` mode).
3. **Match ratio** -- share of A's points within ``match_radius_km``.
4. **Distance score** -- ``max(0, 100 - avg_km x penalty_per_km)``.
5. **Direction** -- cosine between the start->end lat/lng deltas,
   mapped from [-1, 1] to [0, 1]; 0 when either delta is zero.

Known asymmetry
---------------
Only A's points look for neighbours in B, so ``score(A, B)`` and
``score(B, A)`` differ when one route covers more ground than the other.

Complexity: O(N²) per pair (O(N x k) in segment mode).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from .distance import point_distance, point_to_route_distance
from .entities import Route
from .enums import DistanceMode
from .sampling import normalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    match: float = 0.6
    distance: float = 0.2
    direction: float = 0.2

    def __post_init__(self) -> None:
        if min(self.match, self.distance, self.direction) < 0:
            raise ValueError("scoring weights must be non-negative")
        if not math.isclose(self.match + self.distance + self.direction, 1.0):
            raise ValueError("scoring weights must sum to 1")


@dataclass(frozen=True)
class ScoreBreakdown:
    score: float
    match_ratio: float
    avg_distance_km: float
    max_distance_km: float
    distance_score: float
    direction_similarity: float


@dataclass(frozen=True)
class SimilarityScorer:
    """Configurable route-similarity scorer.  Stateless and thread-safe."""

    sample_points: int = 50
    match_radius_km: float = 0.5
    distance_penalty_per_km: float = 20.0
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    mode: DistanceMode = DistanceMode.POINT

    @classmethod
    def from_settings(cls, settings) -> "SimilarityScorer":
        return cls(
            sample_points=settings.sample_points,
            match_radius_km=settings.match_radius_km,
            distance_penalty_per_km=settings.distance_penalty_per_km,
            weights=ScoringWeights(
                settings.weight_match,
                settings.weight_distance,
                settings.weight_direction,
            ),
            mode=DistanceMode(settings.distance_mode),
        )

    def score(self, route_a: Route, route_b: Route) -> float:
        return self.breakdown(route_a, route_b).score

    def breakdown(self, route_a: Route, route_b: Route) -> ScoreBreakdown:
        a = normalize(route_a, self.sample_points)
        b = normalize(route_b, self.sample_points)

        distances = [self._min_distance(p, b) for p in a]
        matched = sum(1 for d in distances if d <= self.match_radius_km)
        match_ratio = matched / len(distances)
        avg_distance = sum(distances) / len(distances)
        distance_score = max(0.0, 100.0 - avg_distance * self.distance_penalty_per_km)
        direction = direction_similarity(a, b)

        raw = (
            match_ratio * 100.0 * self.weights.match
            + distance_score * self.weights.distance
            + direction * 100.0 * self.weights.direction
        )
        result = ScoreBreakdown(
            score=min(100.0, max(0.0, raw)),
            match_ratio=match_ratio,
            avg_distance_km=avg_distance,
            max_distance_km=max(distances),
            distance_score=distance_score,
            direction_similarity=direction,
        )
        logger.debug(
            "similarity=%.2f match_ratio=%.2f avg_km=%.3f direction=%.2f",
            result.score,
            match_ratio,
            avg_distance,
            direction,
        )
        return result

    def _min_distance(self, point, route: Route) -> float:
        if self.mode is DistanceMode.SEGMENT:
            return point_to_route_distance(point, route)
        return min(point_distance(point, q) for q in route)


def direction_vector(route: Route) -> tuple[float, float]:
    """End minus start as a plain (dlat, dlng) delta."""
    return (
        route.end.latitude - route.start.latitude,
        route.end.longitude - route.start.longitude,
    )


def direction_similarity(route_a: Route, route_b: Route) -> float:
    """Cosine of the two direction vectors mapped to [0, 1]."""
    ax, ay = direction_vector(route_a)
    bx, by = direction_vector(route_b)
    mag_a = math.hypot(ax, ay)
    mag_b = math.hypot(bx, by)
    if mag_a == 0 or mag_b == 0:
        return 0.0
    cosine = (ax * bx + ay * by) / (mag_a * mag_b)
    cosine = max(-1.0, min(1.0, cosine))
    return (cosine + 1) / 2
