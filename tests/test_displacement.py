"""Tests for centroid targets and displacement ratios."""

import pytest
import numpy as np

from py_lloyd.core.displacement import centroid, displacement, displacement_ratio, shortest_incident_edge
from py_lloyd.core.mesh_builder import build_mesh
from py_lloyd.core.triangulation import SUPER_VERTICES

RING = [(0, 1), (1, 2), (2, 3), (3, 0)]


class TestDisplacement:
    """Test displacement vectors and ratios."""

    @pytest.fixture
    def square(self):
        return build_mesh([(0, 0), (2, 0), (2, 2), (0, 2), (1.2, 1.0)], RING)

    def test_centroid(self):
        """Test the centroid of a Voronoi cell polygon."""
        assert centroid([(1, 0), (2, 1), (1, 2), (0, 1)]) == pytest.approx((1, 1))

    def test_displacement_vector(self, square):
        """Test the vector from the vertex to its target."""
        move = displacement(square, SUPER_VERTICES + 4, (1.0, 1.5))
        np.testing.assert_allclose(move, [-0.2, 0.5])

    def test_shortest_incident_edge(self, square):
        """Test the shortest spoke of the interior vertex."""
        shortest = shortest_incident_edge(square, SUPER_VERTICES + 4)
        assert shortest == pytest.approx(np.hypot(0.8, 1.0))

    def test_ratio(self, square):
        """Test that the ratio is relative to the shortest edge."""
        v = SUPER_VERTICES + 4
        move = np.array([0.3, 0.4])
        assert displacement_ratio(square, v, move) == pytest.approx(0.5 / np.hypot(0.8, 1.0))

    def test_zero_move(self, square):
        """Test that no displacement gives a zero ratio."""
        assert displacement_ratio(square, SUPER_VERTICES + 4, np.zeros(2)) == 0.0

    def test_isolated_vertex(self):
        """Test that a vertex without mesh edges reports zero instead of dividing by zero."""
        store = build_mesh([(0.0, 0.0)])
        v = SUPER_VERTICES

        assert shortest_incident_edge(store, v) == 0.0
        assert displacement_ratio(store, v, np.array([1.0, 1.0])) == 0.0
