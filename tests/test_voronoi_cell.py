"""Tests for Voronoi cell extraction."""

import pytest
import numpy as np
from shapely.geometry import Polygon

from py_lloyd.core.exceptions import DegenerateGeometry
from py_lloyd.core.geometry import polygon_area, polygon_centroid
from py_lloyd.core.mesh_builder import build_mesh
from py_lloyd.core.triangulation import SUPER_VERTICES, Triangle
from py_lloyd.core.voronoi_cell import domain_region, voronoi_cell


RING = [(0, 1), (1, 2), (2, 3), (3, 0)]


class TestVoronoiCell:
    """Test cells of interior, boundary and excluded vertices."""

    @pytest.fixture
    def square(self):
        return build_mesh([(0, 0), (2, 0), (2, 2), (0, 2), (1, 1)], RING)

    def test_centered_vertex(self, square):
        """Test the diamond shaped cell of the square's center."""
        cell = voronoi_cell(square, SUPER_VERTICES + 4)

        assert polygon_area(cell) == pytest.approx(2.0)
        assert polygon_centroid(cell) == pytest.approx((1.0, 1.0))

    def test_cell_is_clipped_to_boundary(self):
        """Test that circumcenters outside the boundary are cut off."""
        store = build_mesh([(0, 0), (2, 0), (2, 2), (0, 2), (1.6, 1.0)], RING)
        cell = voronoi_cell(store, SUPER_VERTICES + 4)

        assert polygon_area(cell) > 0
        assert max(x for x, _ in cell) <= 2.0 + 1e-12
        assert min(x for x, _ in cell) >= -1e-12

    def test_cell_contains_its_vertex(self):
        """Test cells of a random mesh surround their generators."""
        rng = np.random.default_rng(4)
        points = np.vstack([[(0, 0), (1, 0), (1, 1), (0, 1)], rng.uniform(0.1, 0.9, (30, 2))])
        store = build_mesh(points, RING)

        for v in range(SUPER_VERTICES + 4, SUPER_VERTICES + len(points)):
            cell = voronoi_cell(store, v)
            assert polygon_area(cell) > 0
            px, py = store.point(v)
            xs, ys = zip(*cell)
            assert min(xs) <= px <= max(xs)
            assert min(ys) <= py <= max(ys)

    def test_constrained_vertex_has_no_cell(self, square):
        """Test that boundary vertices are not relaxed."""
        assert voronoi_cell(square, SUPER_VERTICES) is None

    def test_vertex_touching_outer_face_has_no_cell(self):
        """Test a vertex whose fan reaches outside the domain."""
        store = build_mesh([(0, 0), (2, 0), (2, 2), (0, 2), (1, 1)])
        assert voronoi_cell(store, SUPER_VERTICES + 4) is None

    def test_vertex_in_hole_has_no_cell(self):
        """Test that a vertex inside a seeded hole is excluded."""
        points = [(0, 0), (4, 0), (4, 4), (0, 4), (1, 1), (3, 1), (3, 3), (1, 3), (2, 2)]
        constraints = RING + [(4, 5), (5, 6), (6, 7), (7, 4)]
        store = build_mesh(points, constraints, seeds=[8])

        assert voronoi_cell(store, SUPER_VERTICES + 8) is None

    def test_two_triangle_fan_is_degenerate(self):
        """Test that a fan with fewer than three triangles raises."""

        class TwoTriangleStore:
            def is_constrained(self, v):
                return False

            def incident_triangles(self, v):
                return [Triangle(0, (v, 1, 2), True), Triangle(1, (v, 2, 1), True)]

        with pytest.raises(DegenerateGeometry):
            voronoi_cell(TwoTriangleStore(), 0)


L_SHAPE = [(0, 0), (2, 0), (2, 1), (1, 1), (1, 2), (0, 2)]
L_RING = [(i, (i + 1) % 6) for i in range(6)]


def l_shape_mesh(seed=2, n=150):
    """Random points inside an L made of three unit squares."""
    rng = np.random.default_rng(seed)
    candidates = rng.uniform(0.05, 1.95, (n, 2))
    inside = candidates[~((candidates[:, 0] > 0.95) & (candidates[:, 1] > 0.95))]
    return build_mesh(np.vstack([L_SHAPE, inside]), L_RING)


class TestDomainClipping:
    """Test that cells never reach outside the meshed region."""

    def test_domain_region_area(self):
        """Test the region of a square with a hole."""
        points = [(0, 0), (4, 0), (4, 4), (0, 4), (1, 1), (3, 1), (3, 3), (1, 3), (2, 2)]
        constraints = RING + [(4, 5), (5, 6), (6, 7), (7, 4)]
        store = build_mesh(points, constraints, seeds=[8])

        assert domain_region(store).area == pytest.approx(12.0)

    def test_centroids_inside_square(self):
        """Test that every cell centroid of a dense random mesh lies in the square."""
        rng = np.random.default_rng(11)
        points = np.vstack([[(0, 0), (1, 0), (1, 1), (0, 1)], rng.uniform(0.05, 0.95, (200, 2))])
        store = build_mesh(points, RING)
        domain = domain_region(store)

        for v in range(SUPER_VERTICES + 4, SUPER_VERTICES + len(points)):
            cx, cy = polygon_centroid(voronoi_cell(store, v, domain))
            assert -1e-12 <= cx <= 1.0 + 1e-12
            assert -1e-12 <= cy <= 1.0 + 1e-12

    def test_cells_inside_l_shape(self):
        """Test that cells near the notch of a non-convex domain stay inside it."""
        store = l_shape_mesh()
        domain = domain_region(store)
        slack = domain.buffer(1e-9)

        assert domain.area == pytest.approx(3.0)
        for v in range(SUPER_VERTICES + len(L_SHAPE), SUPER_VERTICES + store.number_of_vertices):
            cell = voronoi_cell(store, v, domain)
            assert slack.contains(Polygon(cell))

    def test_domain_built_on_demand(self):
        """Test that omitting the region gives the same cell."""
        store = l_shape_mesh(seed=6, n=40)
        v = SUPER_VERTICES + len(L_SHAPE)

        with_region = voronoi_cell(store, v, domain_region(store))
        without = voronoi_cell(store, v)

        assert polygon_area(without) == pytest.approx(polygon_area(with_region))
