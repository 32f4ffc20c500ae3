"""
Voronoi cell extraction from the triangulation dual.

The cell of an interior vertex is the set of points closer to it than to
any of its link neighbours, i.e. the intersection of the half-planes bounded
by the perpendicular bisectors of its incident edges. For a Delaunay fan the
corners of that polygon are exactly the circumcenters of the incident
triangles. The cell is then cut down to the part of the domain the vertex
sits in: constrained link edges act as walls, and the result is intersected
with the union of the in-domain triangles so that cells near the boundary
never reach outside the mesh.
"""

from typing import List, Optional

import structlog
from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient
from shapely.ops import unary_union

from .exceptions import DegenerateGeometry
from .geometry import Point, clip_polygon_half_plane, orient2d
from .triangulation import Triangulation, VertexHandle

logger = structlog.get_logger()


def domain_region(store: Triangulation) -> BaseGeometry:
    """
    Union of the finite in-domain triangles of ``store``.

    Constrained vertices never move and free vertices never cross a
    constraint, so the region stays the same for a whole relaxation run.
    """
    triangles = [Polygon([store.point(w) for w in tri.vertices])
                 for tri in store.finite_triangles() if tri.in_domain]
    region = unary_union(triangles)
    logger.debug("Domain region built", triangles=len(triangles), area=region.area)
    return region


def _bisector_cell(store: Triangulation, v: VertexHandle, neighbours: List[int],
                   bounds) -> List[Point]:
    min_x, min_y, max_x, max_y = bounds
    cell = [(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)]
    vx, vy = store.point(v)
    for w in neighbours:
        wx, wy = store.point(w)
        ux, uy = wx - vx, wy - vy
        mid = (0.5 * (vx + wx), 0.5 * (vy + wy))
        # Left of this line is the side of the bisector facing ``v``
        cell = clip_polygon_half_plane(cell, mid, (mid[0] - uy, mid[1] + ux))
    return cell


def voronoi_cell(store: Triangulation, v: VertexHandle,
                 domain: Optional[BaseGeometry] = None) -> Optional[List[Point]]:
    """
    Bounded Voronoi cell of vertex ``v``.

    Args:
        store: Triangulation to read from
        v: Vertex handle
        domain: Precomputed ``domain_region(store)``; built on demand when omitted

    Returns:
        CCW list of cell corners, or None if the vertex does not take part in
        relaxation (constrained, or touching a triangle outside the domain).

    Raises:
        DegenerateGeometry: if the fan has fewer than three triangles, one of
            them is flat, or clipping leaves no area.
    """
    if store.is_constrained(v):
        return None

    fan = store.incident_triangles(v)
    if any(not tri.in_domain for tri in fan):
        return None
    if len(fan) < 3:
        raise DegenerateGeometry(f"Vertex {v} has only {len(fan)} incident triangles")

    for tri in fan:
        if orient2d(*(store.point(w) for w in tri.vertices)) == 0.0:
            raise DegenerateGeometry(f"Flat triangle {tri.vertices} around vertex {v}")

    if domain is None:
        domain = domain_region(store)

    polygon = _bisector_cell(store, v, [tri.vertices[1] for tri in fan], domain.bounds)
    for tri in fan:
        _, b, c = tri.vertices
        if store.is_constraint_edge(b, c):
            # ``v`` is left of b -> c because the triangle (v, b, c) is CCW
            polygon = clip_polygon_half_plane(polygon, store.point(b), store.point(c))
    if len(polygon) < 3:
        raise DegenerateGeometry(f"Voronoi cell of vertex {v} vanished after clipping")

    clipped = Polygon(polygon).intersection(domain)
    parts = [g for g in getattr(clipped, "geoms", [clipped])
             if isinstance(g, Polygon) and not g.is_empty]
    if not parts:
        raise DegenerateGeometry(f"Voronoi cell of vertex {v} lies outside the domain")

    # A non-convex domain can split the cell; keep the piece around ``v``
    site = ShapelyPoint(store.point(v))
    part = min(parts, key=site.distance)
    return [(float(x), float(y)) for x, y in orient(part, 1.0).exterior.coords[:-1]]
