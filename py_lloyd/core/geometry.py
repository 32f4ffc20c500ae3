"""
Planar geometric primitives used by the triangulation and the relaxation.

All functions take plain ``(x, y)`` pairs and return floats or new tuples.
Orientation and in-circle tests use Shewchuk's static error bounds: when the
sign of the determinant cannot be trusted in floating point the result is
reported as exactly ``0.0`` so callers treat the configuration as degenerate
instead of acting on round-off noise.
"""

import math
from typing import List, Sequence, Tuple

from .exceptions import DegenerateGeometry

Point = Tuple[float, float]

_EPSILON = 2.0 ** -53
_CCW_ERRBOUND = (3.0 + 16.0 * _EPSILON) * _EPSILON
_ICC_ERRBOUND = (10.0 + 96.0 * _EPSILON) * _EPSILON

# Relative area below which a polygon is considered flat
_AREA_TOLERANCE = 1e-12


def orient2d(a: Point, b: Point, c: Point) -> float:
    """
    Twice the signed area of triangle ``abc``.

    Positive when ``a, b, c`` turn counter-clockwise, negative when clockwise
    and ``0.0`` when collinear or too close to call.
    """
    detleft = (a[0] - c[0]) * (b[1] - c[1])
    detright = (a[1] - c[1]) * (b[0] - c[0])
    det = detleft - detright
    errbound = _CCW_ERRBOUND * (abs(detleft) + abs(detright))
    if abs(det) <= errbound:
        return 0.0
    return det


def in_circle(a: Point, b: Point, c: Point, d: Point) -> float:
    """
    In-circle determinant for CCW triangle ``abc`` and query point ``d``.

    Positive when ``d`` lies strictly inside the circumcircle, negative when
    outside, ``0.0`` when co-circular or too close to call.
    """
    adx, ady = a[0] - d[0], a[1] - d[1]
    bdx, bdy = b[0] - d[0], b[1] - d[1]
    cdx, cdy = c[0] - d[0], c[1] - d[1]

    bdxcdy = bdx * cdy
    cdxbdy = cdx * bdy
    alift = adx * adx + ady * ady

    cdxady = cdx * ady
    adxcdy = adx * cdy
    blift = bdx * bdx + bdy * bdy

    adxbdy = adx * bdy
    bdxady = bdx * ady
    clift = cdx * cdx + cdy * cdy

    det = (alift * (bdxcdy - cdxbdy)
           + blift * (cdxady - adxcdy)
           + clift * (adxbdy - bdxady))

    permanent = ((abs(bdxcdy) + abs(cdxbdy)) * alift
                 + (abs(cdxady) + abs(adxcdy)) * blift
                 + (abs(adxbdy) + abs(bdxady)) * clift)
    if abs(det) <= _ICC_ERRBOUND * permanent:
        return 0.0
    return det


def polygon_area(polygon: Sequence[Point]) -> float:
    """Signed shoelace area (positive for CCW polygons)."""
    n = len(polygon)
    if n < 3:
        return 0.0
    x0, y0 = polygon[0]
    area = 0.0
    for i in range(n):
        xi, yi = polygon[i][0] - x0, polygon[i][1] - y0
        xj, yj = polygon[(i + 1) % n][0] - x0, polygon[(i + 1) % n][1] - y0
        area += xi * yj - xj * yi
    return 0.5 * area


def polygon_centroid(polygon: Sequence[Point]) -> Point:
    """
    Area-weighted centroid of a simple polygon.

    Uses the shoelace formula, not the average of the vertices, so that
    irregular cells are weighted by area.

    Args:
        polygon: Polygon vertices in order (either orientation)

    Returns:
        (x, y) centroid coordinates

    Raises:
        DegenerateGeometry: if the polygon has fewer than three vertices or
            (near) zero area.
    """
    n = len(polygon)
    if n < 3:
        raise DegenerateGeometry(f"Polygon with {n} vertices has no area centroid")

    # Translate to the first vertex for precision
    x0, y0 = polygon[0]
    area = 0.0
    cx = 0.0
    cy = 0.0
    min_x = max_x = x0
    min_y = max_y = y0
    for i in range(n):
        xi, yi = polygon[i][0] - x0, polygon[i][1] - y0
        xj, yj = polygon[(i + 1) % n][0] - x0, polygon[(i + 1) % n][1] - y0
        a = xi * yj - xj * yi
        area += a
        cx += (xi + xj) * a
        cy += (yi + yj) * a
        min_x, max_x = min(min_x, polygon[i][0]), max(max_x, polygon[i][0])
        min_y, max_y = min(min_y, polygon[i][1]), max(max_y, polygon[i][1])

    scale = max(max_x - min_x, max_y - min_y)
    if scale == 0.0 or abs(area) <= _AREA_TOLERANCE * scale * scale:
        raise DegenerateGeometry("Polygon has zero area")

    area *= 0.5
    centroid = (x0 + cx / (6.0 * area), y0 + cy / (6.0 * area))
    if not (math.isfinite(centroid[0]) and math.isfinite(centroid[1])):
        raise DegenerateGeometry("Polygon centroid is not finite")
    return centroid


def clip_polygon_half_plane(polygon: Sequence[Point], a: Point, b: Point) -> List[Point]:
    """
    Clip a polygon to the closed half-plane left of the directed line ``a -> b``.

    Sutherland-Hodgman against a single edge; the result may be empty.
    """
    ex, ey = b[0] - a[0], b[1] - a[1]

    def side(p: Point) -> float:
        return ex * (p[1] - a[1]) - ey * (p[0] - a[0])

    clipped: List[Point] = []
    n = len(polygon)
    for i in range(n):
        current = polygon[i]
        previous = polygon[i - 1]
        s_cur = side(current)
        s_prev = side(previous)
        if s_cur >= 0.0:
            if s_prev < 0.0:
                t = s_prev / (s_prev - s_cur)
                clipped.append((previous[0] + t * (current[0] - previous[0]),
                                previous[1] + t * (current[1] - previous[1])))
            clipped.append(current)
        elif s_prev >= 0.0:
            t = s_prev / (s_prev - s_cur)
            clipped.append((previous[0] + t * (current[0] - previous[0]),
                            previous[1] + t * (current[1] - previous[1])))
    return clipped


def segments_cross(p: Point, q: Point, a: Point, b: Point) -> bool:
    """True when segments ``pq`` and ``ab`` cross at a single interior point."""
    o1 = orient2d(p, q, a)
    o2 = orient2d(p, q, b)
    o3 = orient2d(a, b, p)
    o4 = orient2d(a, b, q)
    return o1 * o2 < 0.0 and o3 * o4 < 0.0


def point_on_segment(p: Point, a: Point, b: Point) -> bool:
    """True when ``p`` lies on the open segment ``ab``."""
    if orient2d(a, b, p) != 0.0:
        return False
    dot = (p[0] - a[0]) * (b[0] - a[0]) + (p[1] - a[1]) * (b[1] - a[1])
    length2 = (b[0] - a[0]) ** 2 + (b[1] - a[1]) ** 2
    return 0.0 < dot < length2


def point_in_triangle(p: Point, a: Point, b: Point, c: Point) -> bool:
    """Closed containment test for a CCW triangle."""
    return (orient2d(a, b, p) >= 0.0
            and orient2d(b, c, p) >= 0.0
            and orient2d(c, a, p) >= 0.0)
