"""
Tests for the planar geometry helpers.

Run tests:
    pytest tests/test_geometry.py -v
"""

import numpy as np
import pytest

from api.shared.geometry import (
    as_points,
    bounding_box,
    convex_hull,
    nearest_index,
)

from .geometry_utils import polygon_contains


class TestConvexHull:
    def test_fewer_than_three_points_returned_unchanged(self):
        assert convex_hull([]) == []
        assert convex_hull([(1, 2)]) == [(1.0, 2.0)]
        assert convex_hull([(1, 2), (3, 4)]) == [(1.0, 2.0), (3.0, 4.0)]

    def test_square_with_interior_point(self):
        hull = convex_hull([(0, 0), (1, 0), (1, 1), (0, 1), (0.5, 0.5)])
        assert sorted(hull) == [(0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (1.0, 1.0)]
        assert (0.5, 0.5) not in hull

    def test_counter_clockwise_from_lowest_x(self):
        hull = convex_hull([(0, 0), (2, 0), (2, 2), (0, 2)])
        assert hull[0] == (0.0, 0.0)
        # Shoelace area is positive for counter-clockwise order
        area = sum(
            hull[i][0] * hull[(i + 1) % len(hull)][1] - hull[(i + 1) % len(hull)][0] * hull[i][1]
            for i in range(len(hull))
        )
        assert area > 0

    def test_collinear_boundary_points_dropped(self):
        hull = convex_hull([(0, 0), (1, 0), (2, 0), (2, 2), (0, 2)])
        assert (1.0, 0.0) not in hull
        assert len(hull) == 4

    def test_hull_contains_every_input_point(self, rng):
        points = rng.normal(size=(200, 2))
        hull = convex_hull(points)
        assert len(hull) >= 3
        for p in points:
            assert polygon_contains(hull, p, tol=1e-7)


class TestPointHelpers:
    def test_as_points_empty(self):
        assert as_points([]).shape == (0, 2)

    def test_as_points_rejects_wrong_shape(self):
        with pytest.raises(ValueError):
            as_points([[1, 2, 3]])

    def test_nearest_index_first_seen_wins_ties(self):
        centroids = np.array([[1.0, 0.0], [-1.0, 0.0]])
        assert nearest_index(np.array([[0.0, 0.0]]), centroids).tolist() == [0]

    def test_bounding_box(self):
        assert bounding_box(np.array([[0, 5], [2, -1], [1, 1]])) == (0.0, 2.0, -1.0, 5.0)

    def test_bounding_box_empty_raises(self):
        with pytest.raises(ValueError):
            bounding_box(np.empty((0, 2)))
