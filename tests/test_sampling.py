"""Unit tests for route resampling (normalize / declutter)."""

import pytest

from src.domain.entities import Route
from src.domain.sampling import declutter, normalize


def _lats(route):
    return [p.latitude for p in route]


class TestNormalize:
    def test_short_route_returned_unchanged(self):
        route = Route.from_pairs([(0, 0), (0, 0.5), (0, 1)])
        assert normalize(route, 50) is route

    def test_exact_length_returned_unchanged(self):
        route = Route.from_pairs([(0, i * 0.01) for i in range(50)])
        assert normalize(route, 50) is route

    def test_resamples_to_requested_length(self):
        route = Route.from_pairs([(i * 0.001, 0) for i in range(101)])
        result = normalize(route, 11)
        assert len(result) == 11
        assert _lats(result) == pytest.approx([i * 0.01 for i in range(11)])

    def test_keeps_endpoints(self):
        route = Route.from_pairs([(i * 0.001, i * 0.002) for i in range(137)])
        result = normalize(route, 50)
        assert result.start == route.start
        assert result.end.latitude == pytest.approx(route.end.latitude)
        assert result.end.longitude == pytest.approx(route.end.longitude)

    def test_interpolates_between_indices(self):
        """4 points down to 3: the middle sample sits halfway between points 1 and 2."""
        route = Route.from_pairs([(0, 0), (1, 0), (3, 0), (4, 0)])
        result = normalize(route, 3)
        assert _lats(result) == pytest.approx([0, 2, 4])

    @pytest.mark.parametrize("n", [0, 1, -5])
    def test_rejects_fewer_than_two_points(self, n):
        route = Route.from_pairs([(0, 0), (0, 1)])
        with pytest.raises(ValueError):
            normalize(route, n)


class TestDeclutter:
    def test_two_point_route_unchanged(self):
        route = Route.from_pairs([(0, 0), (0, 0.00001)])
        assert declutter(route) is route

    def test_drops_points_closer_than_separation(self):
        # Points every ~22 m over ~222 m: the 5th one (~111 m) is the first kept.
        route = Route.from_pairs([(i * 0.0002, 0) for i in range(11)])
        result = declutter(route, 0.1)
        assert _lats(result) == pytest.approx([0, 0.001, 0.002])

    def test_always_keeps_endpoints(self):
        route = Route.from_pairs([(0, 0), (0.00001, 0), (0.00002, 0), (0.00003, 0)])
        result = declutter(route, 0.1)
        assert result.start == route.start
        assert result.end == route.end
        assert len(result) == 2

    def test_sparse_route_kept_whole(self):
        route = Route.from_pairs([(i * 0.01, 0) for i in range(10)])
        assert declutter(route, 0.1).points == route.points
