"""
Incremental constrained Delaunay triangulation with movable vertices.

Vertices and triangles live in dense NumPy arrays and are addressed by
integer handles. Triangle ``t`` stores its vertices in counter-clockwise
order in ``_tri_vertices[t]`` and, in ``_tri_neighbors[t, i]``, the triangle
across the edge opposite local vertex ``i`` (``-1`` on the outer boundary).
Dead triangles are tombstoned and their slots recycled through a free list.

The mesh is embedded in a large "super triangle" whose three vertices occupy
handles 0-2. Those vertices are never exported or moved; triangles touching
them form the unbounded outer face and are never part of the domain.
"""

import math
from collections import deque
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple

import numpy as np
import structlog

from .exceptions import DegenerateGeometry, InvalidRelocation, MeshInputError
from .geometry import (
    Point,
    in_circle,
    orient2d,
    point_in_triangle,
    point_on_segment,
    segments_cross,
)

logger = structlog.get_logger()

VertexHandle = int

SUPER_VERTICES = 3
SUPER_TRIANGLE_SCALE = 100.0

# Point location results
LOCATED_INSIDE = 0
LOCATED_ON_EDGE = 1
LOCATED_ON_VERTEX = 2


class Triangle(NamedTuple):
    """A live triangle as seen through the public API."""
    index: int
    vertices: Tuple[int, int, int]  # CCW
    in_domain: bool


class Location(NamedTuple):
    """Result of point location."""
    triangle: int
    kind: int
    local_index: int  # edge: opposite vertex, vertex: the vertex itself


def _edge_key(a: int, b: int) -> Tuple[int, int]:
    return (a, b) if a < b else (b, a)


class Triangulation:
    """
    Constrained Delaunay triangulation supporting vertex relocation.

    The triangulation is Delaunay (constrained) after every public call:
    ``insert``, ``insert_constraint`` and ``relocate`` restore the
    empty-circumcircle property with Lawson edge flips before returning.
    """

    def __init__(self, bounds: Tuple[float, float, float, float], capacity: int = 64):
        """
        Create an empty triangulation covering ``bounds``.

        Args:
            bounds: (min_x, min_y, max_x, max_y) of every point that will be inserted
            capacity: Initial number of vertex slots
        """
        min_x, min_y, max_x, max_y = (float(b) for b in bounds)
        if not all(math.isfinite(b) for b in (min_x, min_y, max_x, max_y)):
            raise ValueError(f"Bounds must be finite, got {bounds}")
        if min_x > max_x or min_y > max_y:
            raise ValueError(f"Invalid bounds {bounds}")

        extent = max(max_x - min_x, max_y - min_y) or 1.0
        size = SUPER_TRIANGLE_SCALE * extent
        cx = 0.5 * (min_x + max_x)
        cy = 0.5 * (min_y + max_y)

        capacity = max(capacity, SUPER_VERTICES + 1)
        self._points = np.zeros((capacity, 2), dtype=np.float64)
        self._constrained = np.zeros(capacity, dtype=bool)
        self._vertex_triangle = np.full(capacity, -1, dtype=np.int64)
        self._n_vertices = 0

        tri_capacity = 2 * capacity
        self._tri_vertices = np.zeros((tri_capacity, 3), dtype=np.int64)
        self._tri_neighbors = np.full((tri_capacity, 3), -1, dtype=np.int64)
        self._tri_alive = np.zeros(tri_capacity, dtype=bool)
        self._tri_domain = np.ones(tri_capacity, dtype=bool)
        self._n_triangles = 0
        self._free_triangles: List[int] = []

        self._constraints: Set[Tuple[int, int]] = set()
        self._last_triangle = 0

        for x, y in ((cx - size, cy - size), (cx + size, cy - size), (cx, cy + size)):
            self._new_vertex((x, y))
        self._new_triangle(0, 1, 2)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _new_vertex(self, p: Point) -> int:
        if self._n_vertices == len(self._points):
            grow = len(self._points)
            self._points = np.vstack([self._points, np.zeros((grow, 2))])
            self._constrained = np.concatenate([self._constrained, np.zeros(grow, dtype=bool)])
            self._vertex_triangle = np.concatenate(
                [self._vertex_triangle, np.full(grow, -1, dtype=np.int64)])
        v = self._n_vertices
        self._points[v] = p
        self._n_vertices += 1
        return v

    def _new_triangle(self, a: int, b: int, c: int, in_domain: bool = True) -> int:
        if self._free_triangles:
            t = self._free_triangles.pop()
        else:
            if self._n_triangles == len(self._tri_alive):
                grow = len(self._tri_alive)
                self._tri_vertices = np.vstack(
                    [self._tri_vertices, np.zeros((grow, 3), dtype=np.int64)])
                self._tri_neighbors = np.vstack(
                    [self._tri_neighbors, np.full((grow, 3), -1, dtype=np.int64)])
                self._tri_alive = np.concatenate([self._tri_alive, np.zeros(grow, dtype=bool)])
                self._tri_domain = np.concatenate([self._tri_domain, np.ones(grow, dtype=bool)])
            t = self._n_triangles
            self._n_triangles += 1
        self._tri_vertices[t] = (a, b, c)
        self._tri_neighbors[t] = (-1, -1, -1)
        self._tri_alive[t] = True
        self._tri_domain[t] = in_domain
        self._vertex_triangle[a] = t
        self._vertex_triangle[b] = t
        self._vertex_triangle[c] = t
        self._last_triangle = t
        return t

    def _kill_triangle(self, t: int) -> None:
        self._tri_alive[t] = False
        self._free_triangles.append(t)

    def _set_triangle(self, t: int, a: int, b: int, c: int) -> None:
        self._tri_vertices[t] = (a, b, c)
        self._vertex_triangle[a] = t
        self._vertex_triangle[b] = t
        self._vertex_triangle[c] = t

    def _replace_neighbor(self, t: int, old: int, new: int) -> None:
        if t < 0:
            return
        row = self._tri_neighbors[t]
        for i in range(3):
            if row[i] == old:
                row[i] = new
                return
        raise RuntimeError(f"Triangle {old} is not a neighbor of {t}")

    def _local_index(self, t: int, v: int) -> int:
        row = self._tri_vertices[t]
        for i in range(3):
            if row[i] == v:
                return i
        raise RuntimeError(f"Vertex {v} is not in triangle {t}")

    def _opposite_index(self, t: int, a: int, b: int) -> int:
        """Local index of the vertex of ``t`` that is neither ``a`` nor ``b``."""
        row = self._tri_vertices[t]
        for i in range(3):
            if row[i] != a and row[i] != b:
                return i
        raise RuntimeError(f"Triangle {t} is degenerate")

    def _xy(self, v: int) -> Point:
        p = self._points[v]
        return (float(p[0]), float(p[1]))

    def _tri_points(self, t: int) -> Tuple[Point, Point, Point]:
        a, b, c = self._tri_vertices[t]
        return self._xy(a), self._xy(b), self._xy(c)

    def _is_super(self, v: int) -> bool:
        return v < SUPER_VERTICES

    def _is_finite(self, t: int) -> bool:
        return bool(np.all(self._tri_vertices[t] >= SUPER_VERTICES))

    def _check_vertex(self, v: int) -> None:
        if not SUPER_VERTICES <= v < self._n_vertices:
            raise InvalidRelocation(f"Unknown vertex handle {v}")

    # ------------------------------------------------------------------
    # Adjacency
    # ------------------------------------------------------------------

    def _star(self, v: int) -> List[int]:
        """Triangles around ``v`` in CCW order."""
        start = int(self._vertex_triangle[v])
        if start < 0 or not self._tri_alive[start]:
            raise RuntimeError(f"Vertex {v} is not attached to the triangulation")
        star = [start]
        t = start
        while True:
            i = self._local_index(t, v)
            t = int(self._tri_neighbors[t, (i + 1) % 3])
            if t == start:
                return star
            if t < 0:
                break
            star.append(t)

        # Open fan (super vertex): complete it clockwise from the start
        t = start
        while True:
            i = self._local_index(t, v)
            t = int(self._tri_neighbors[t, (i + 2) % 3])
            if t < 0:
                return star
            star.insert(0, t)

    def _find_edge(self, a: int, b: int) -> Optional[Tuple[int, int]]:
        """A triangle containing edge ``ab`` and the local index opposite it."""
        pivot, other = (b, a) if self._is_super(a) else (a, b)
        if self._vertex_triangle[pivot] < 0:
            return None
        for t in self._star(pivot):
            row = self._tri_vertices[t]
            if other in row:
                return t, self._opposite_index(t, a, b)
        return None

    def has_edge(self, a: VertexHandle, b: VertexHandle) -> bool:
        return self._find_edge(a, b) is not None

    # ------------------------------------------------------------------
    # Point location
    # ------------------------------------------------------------------

    def locate(self, point: Sequence[float], hint: Optional[int] = None) -> Location:
        """
        Find the triangle containing ``point`` by a visibility walk.

        Falls back to a linear scan if the walk does not settle.

        Raises:
            ValueError: if the point lies outside the super triangle.
        """
        p = (float(point[0]), float(point[1]))
        t = self._last_triangle if hint is None else hint
        if not (0 <= t < self._n_triangles and self._tri_alive[t]):
            t = int(np.flatnonzero(self._tri_alive[:self._n_triangles])[0])

        max_steps = 4 * self._n_triangles + 16
        for step in range(max_steps):
            moved = False
            for k in range(3):
                i = (k + step) % 3
                row = self._tri_vertices[t]
                e1 = self._xy(row[(i + 1) % 3])
                e2 = self._xy(row[(i + 2) % 3])
                if orient2d(e1, e2, p) < 0.0:
                    nxt = int(self._tri_neighbors[t, i])
                    if nxt < 0:
                        raise ValueError(f"Point {p} lies outside the triangulation bounds")
                    t = nxt
                    moved = True
                    break
            if not moved:
                return self._classify(t, p)

        logger.debug("Point location walk did not settle, scanning", point=p)
        for t in np.flatnonzero(self._tri_alive[:self._n_triangles]):
            a, b, c = self._tri_points(int(t))
            if point_in_triangle(p, a, b, c):
                return self._classify(int(t), p)
        raise ValueError(f"Point {p} lies outside the triangulation bounds")

    def _classify(self, t: int, p: Point) -> Location:
        self._last_triangle = t
        row = self._tri_vertices[t]
        for i in range(3):
            q = self._points[row[i]]
            if q[0] == p[0] and q[1] == p[1]:
                return Location(t, LOCATED_ON_VERTEX, i)
        for i in range(3):
            e1 = self._xy(row[(i + 1) % 3])
            e2 = self._xy(row[(i + 2) % 3])
            if orient2d(e1, e2, p) == 0.0:
                return Location(t, LOCATED_ON_EDGE, i)
        return Location(t, LOCATED_INSIDE, -1)

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def insert(self, point: Sequence[float]) -> VertexHandle:
        """
        Insert a point and restore the Delaunay property.

        Returns:
            Handle of the new vertex, or of the existing vertex when the point
            duplicates one exactly.
        """
        p = (float(point[0]), float(point[1]))
        if not (math.isfinite(p[0]) and math.isfinite(p[1])):
            raise ValueError(f"Point coordinates must be finite, got {p}")

        location = self.locate(p)
        if location.kind == LOCATED_ON_VERTEX:
            existing = int(self._tri_vertices[location.triangle, location.local_index])
            logger.debug("Duplicate point not inserted", point=p, vertex=existing)
            return existing

        v = self._new_vertex(p)
        self._insert_vertex_at(v, location)
        return v

    def _insert_vertex_at(self, v: int, location: Location) -> None:
        if location.kind == LOCATED_INSIDE:
            edges = self._split_triangle(location.triangle, v)
        else:
            edges = self._split_edge(location.triangle, location.local_index, v)
        self._restore_delaunay(edges)

    def _split_triangle(self, t: int, v: int) -> List[Tuple[int, int]]:
        a, b, c = (int(x) for x in self._tri_vertices[t])
        na, nb, nc = (int(x) for x in self._tri_neighbors[t])
        domain = bool(self._tri_domain[t])

        t0 = t
        self._set_triangle(t0, v, b, c)
        t1 = self._new_triangle(a, v, c, domain)
        t2 = self._new_triangle(a, b, v, domain)

        self._tri_neighbors[t0] = (na, t1, t2)
        self._tri_neighbors[t1] = (t0, nb, t2)
        self._tri_neighbors[t2] = (t0, t1, nc)
        self._replace_neighbor(nb, t, t1)
        self._replace_neighbor(nc, t, t2)
        self._vertex_triangle[v] = t0
        return [(b, c), (c, a), (a, b)]

    def _split_edge(self, t: int, i: int, v: int) -> List[Tuple[int, int]]:
        a = int(self._tri_vertices[t, i])
        b = int(self._tri_vertices[t, (i + 1) % 3])
        c = int(self._tri_vertices[t, (i + 2) % 3])
        u = int(self._tri_neighbors[t, i])
        if u < 0:
            raise ValueError("Cannot insert a point on the bounding triangle")

        j = self._opposite_index(u, b, c)
        d = int(self._tri_vertices[u, j])
        t_ca = int(self._tri_neighbors[t, (i + 1) % 3])
        t_ab = int(self._tri_neighbors[t, (i + 2) % 3])
        u_bd = int(self._tri_neighbors[u, self._local_index(u, c)])
        u_dc = int(self._tri_neighbors[u, self._local_index(u, b)])
        t_domain = bool(self._tri_domain[t])
        u_domain = bool(self._tri_domain[u])

        key = _edge_key(b, c)
        if key in self._constraints:
            self._constraints.discard(key)
            self._constraints.add(_edge_key(b, v))
            self._constraints.add(_edge_key(v, c))
            self._constrained[v] = True
            logger.debug("Constraint split by inserted vertex", edge=key, vertex=v)

        t1 = t
        self._set_triangle(t1, a, b, v)
        t2 = self._new_triangle(a, v, c, t_domain)
        u1 = u
        self._set_triangle(u1, d, c, v)
        u2 = self._new_triangle(d, v, b, u_domain)

        self._tri_neighbors[t1] = (u2, t2, t_ab)
        self._tri_neighbors[t2] = (u1, t_ca, t1)
        self._tri_neighbors[u1] = (t2, u2, u_dc)
        self._tri_neighbors[u2] = (t1, u_bd, u1)
        self._replace_neighbor(t_ca, t, t2)
        self._replace_neighbor(u_bd, u, u2)
        self._vertex_triangle[v] = t1
        return [(a, b), (c, a), (b, d), (d, c)]

    # ------------------------------------------------------------------
    # Edge flipping
    # ------------------------------------------------------------------

    def _is_illegal(self, t: int, i: int) -> bool:
        """Whether the edge of ``t`` opposite local vertex ``i`` must be flipped."""
        u = int(self._tri_neighbors[t, i])
        if u < 0:
            return False
        a = int(self._tri_vertices[t, i])
        b = int(self._tri_vertices[t, (i + 1) % 3])
        c = int(self._tri_vertices[t, (i + 2) % 3])
        if _edge_key(b, c) in self._constraints:
            return False
        d = int(self._tri_vertices[u, self._opposite_index(u, b, c)])

        pa, pb, pc, pd = self._xy(a), self._xy(b), self._xy(c), self._xy(d)
        # The flipped diagonal must leave two CCW triangles
        if orient2d(pa, pb, pd) <= 0.0 or orient2d(pa, pd, pc) <= 0.0:
            return False

        if (self._is_super(a) or self._is_super(b)
                or self._is_super(c) or self._is_super(d)):
            # Symbolic rule for the bounding vertices: treat them as points at
            # infinity so the finite part matches the true Delaunay triangulation.
            return self._symbolic_rank(a, d) > self._symbolic_rank(b, c)

        return in_circle(pa, pb, pc, pd) > 0.0

    @staticmethod
    def _symbolic_rank(p: int, q: int) -> int:
        # Super vertices rank below every real vertex
        rank_p = p - SUPER_VERTICES if p < SUPER_VERTICES else p
        rank_q = q - SUPER_VERTICES if q < SUPER_VERTICES else q
        return min(rank_p, rank_q)

    def _flip(self, t: int, i: int) -> Tuple[int, int, int, int]:
        """Flip the edge of ``t`` opposite local vertex ``i``; returns (a, b, c, d)."""
        u = int(self._tri_neighbors[t, i])
        a = int(self._tri_vertices[t, i])
        b = int(self._tri_vertices[t, (i + 1) % 3])
        c = int(self._tri_vertices[t, (i + 2) % 3])
        d = int(self._tri_vertices[u, self._opposite_index(u, b, c)])

        t_ca = int(self._tri_neighbors[t, (i + 1) % 3])
        t_ab = int(self._tri_neighbors[t, (i + 2) % 3])
        u_bd = int(self._tri_neighbors[u, self._local_index(u, c)])
        u_dc = int(self._tri_neighbors[u, self._local_index(u, b)])

        self._set_triangle(t, a, b, d)
        self._set_triangle(u, a, d, c)
        self._tri_neighbors[t] = (u_bd, u, t_ab)
        self._tri_neighbors[u] = (u_dc, t_ca, t)
        self._replace_neighbor(u_bd, u, t)
        self._replace_neighbor(t_ca, t, u)
        return a, b, c, d

    def _restore_delaunay(self, edges: Iterable[Tuple[int, int]]) -> int:
        """Lawson flips starting from ``edges`` until every edge is legal."""
        queue = deque(edges)
        flips = 0
        max_flips = 16 * self._n_triangles + 1024
        while queue:
            a, b = queue.pop()
            found = self._find_edge(a, b)
            if found is None:
                continue
            t, i = found
            if not self._is_illegal(t, i):
                continue
            pa, pb, pc, pd = self._flip(t, i)
            flips += 1
            if flips > max_flips:
                raise RuntimeError("Edge flipping did not terminate")
            queue.extend([(pb, pd), (pd, pc), (pc, pa), (pa, pb)])
        return flips

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def insert_constraint(self, a: VertexHandle, b: VertexHandle) -> None:
        """
        Force edge ``ab`` into the triangulation.

        Crossing edges are flipped away, then the constrained Delaunay
        property is restored around the new edge. A vertex lying exactly on
        the segment splits it into two constraints.

        Raises:
            MeshInputError: if the segment is degenerate or crosses an
                existing constraint.
        """
        for v in (a, b):
            if not SUPER_VERTICES <= v < self._n_vertices:
                raise MeshInputError(f"Unknown vertex handle {v} in constraint")
        if a == b:
            raise MeshInputError(f"Constraint ({a}, {b}) has identical endpoints")
        self._insert_segment(a, b)

    def _insert_segment(self, a: int, b: int) -> None:
        self._constrained[a] = True
        self._constrained[b] = True
        if self.has_edge(a, b):
            self._constraints.add(_edge_key(a, b))
            return

        pa, pb = self._xy(a), self._xy(b)

        # Find the first edge crossed when leaving ``a`` toward ``b``
        crossing: List[Tuple[int, int]] = []
        start = None
        for t in self._star(a):
            i = self._local_index(t, a)
            x = int(self._tri_vertices[t, (i + 1) % 3])
            y = int(self._tri_vertices[t, (i + 2) % 3])
            for w in (x, y):
                if point_on_segment(self._xy(w), pa, pb):
                    self._insert_segment(a, w)
                    self._insert_segment(w, b)
                    return
            if orient2d(pa, pb, self._xy(x)) < 0.0 < orient2d(pa, pb, self._xy(y)):
                start = (t, x, y)
                break
        if start is None:
            raise MeshInputError(f"Constraint ({a}, {b}) could not be traced")

        t, x, y = start
        while True:
            if _edge_key(x, y) in self._constraints:
                raise MeshInputError(
                    f"Constraint ({a}, {b}) crosses existing constraint ({x}, {y})")
            crossing.append((x, y))
            u = int(self._tri_neighbors[t, self._opposite_index(t, x, y)])
            w = int(self._tri_vertices[u, self._opposite_index(u, x, y)])
            if w == b:
                break
            pw = self._xy(w)
            if point_on_segment(pw, pa, pb):
                self._insert_segment(a, w)
                self._insert_segment(w, b)
                return
            if orient2d(pa, pb, pw) < 0.0:
                x = w
            else:
                y = w
            t = u

        new_edges = self._flip_out_crossings(a, b, crossing)
        self._constraints.add(_edge_key(a, b))
        self._restore_delaunay(new_edges)
        logger.debug("Constraint inserted", edge=(a, b), crossed=len(crossing))

    def _flip_out_crossings(self, a: int, b: int,
                            crossing: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
        pa, pb = self._xy(a), self._xy(b)
        queue = deque(crossing)
        new_edges: List[Tuple[int, int]] = []
        attempts = 0
        max_attempts = 64 * (len(crossing) + 4) ** 2
        while queue:
            attempts += 1
            if attempts > max_attempts:
                raise MeshInputError(f"Constraint ({a}, {b}) could not be recovered")
            x, y = queue.popleft()
            found = self._find_edge(x, y)
            if found is None:
                continue
            t, i = found
            u = int(self._tri_neighbors[t, i])
            c = int(self._tri_vertices[t, i])
            p = int(self._tri_vertices[t, (i + 1) % 3])
            q = int(self._tri_vertices[t, (i + 2) % 3])
            d = int(self._tri_vertices[u, self._opposite_index(u, p, q)])
            pc, pd = self._xy(c), self._xy(d)
            if orient2d(pc, self._xy(p), pd) <= 0.0 or orient2d(pc, pd, self._xy(q)) <= 0.0:
                queue.append((x, y))
                continue
            self._flip(t, i)
            if segments_cross(pc, pd, pa, pb):
                queue.append((c, d))
            else:
                new_edges.append((c, d))
        return new_edges

    # ------------------------------------------------------------------
    # Domain
    # ------------------------------------------------------------------

    def mark_domain(self, seeds: Iterable[Sequence[float]] = ()) -> int:
        """
        Flag triangles belonging to the meshing domain.

        Triangles reachable without crossing a constraint from the outer face,
        or from the triangle containing a seed point, are excluded.

        Returns:
            Number of triangles left in the domain.
        """
        alive = np.flatnonzero(self._tri_alive[:self._n_triangles])
        self._tri_domain[alive] = True

        starts = [int(t) for t in alive if not self._is_finite(int(t))]
        for seed in seeds:
            starts.append(self.locate(seed).triangle)

        stack = list(starts)
        while stack:
            t = stack.pop()
            if not self._tri_domain[t]:
                continue
            self._tri_domain[t] = False
            for i in range(3):
                u = int(self._tri_neighbors[t, i])
                if u < 0 or not self._tri_domain[u]:
                    continue
                b = int(self._tri_vertices[t, (i + 1) % 3])
                c = int(self._tri_vertices[t, (i + 2) % 3])
                if _edge_key(b, c) not in self._constraints:
                    stack.append(u)

        in_domain = int(np.count_nonzero(self._tri_domain[alive]))
        logger.info("Domain marked", triangles=len(alive), in_domain=in_domain)
        return in_domain

    # ------------------------------------------------------------------
    # Relocation
    # ------------------------------------------------------------------

    def relocate(self, v: VertexHandle, new_point: Sequence[float]) -> None:
        """
        Move an unconstrained vertex and restore constrained Delaunay validity.

        When the new position keeps every incident triangle counter-clockwise
        the vertex is moved in place and its neighbourhood re-flipped.
        Otherwise it is removed and re-inserted at the target under the same
        handle.

        Raises:
            InvalidRelocation: if ``v`` is constrained, a bounding vertex or unknown.
            DegenerateGeometry: if the target coincides with a vertex, lies on
                a constraint, leaves the vertex's region of the domain or the
                hole left by the vertex cannot be re-triangulated. The
                triangulation is unchanged in that case.
        """
        self._check_vertex(v)
        if self._constrained[v]:
            raise InvalidRelocation(f"Vertex {v} is constrained and cannot be relocated")

        p = (float(new_point[0]), float(new_point[1]))
        if not (math.isfinite(p[0]) and math.isfinite(p[1])):
            raise DegenerateGeometry(f"Target {p} for vertex {v} is not finite")
        old = self._xy(v)
        if p == old:
            return

        star = self._star(v)
        link = [(int(self._tri_vertices[t, (self._local_index(t, v) + 1) % 3]),
                 int(self._tri_vertices[t, (self._local_index(t, v) + 2) % 3])) for t in star]

        if all(orient2d(self._xy(b), self._xy(c), p) > 0.0 for b, c in link):
            self._points[v] = p
            edges = [(v, b) for b, _ in link] + link
            self._restore_delaunay(edges)
            return

        try:
            location = self.locate(p, hint=star[0])
        except ValueError as e:
            raise DegenerateGeometry(f"Target {p} for vertex {v} is outside the mesh") from e
        t = location.triangle
        if location.kind == LOCATED_ON_VERTEX:
            raise DegenerateGeometry(f"Target {p} coincides with an existing vertex")
        if location.kind == LOCATED_ON_EDGE:
            i = location.local_index
            b = int(self._tri_vertices[t, (i + 1) % 3])
            c = int(self._tri_vertices[t, (i + 2) % 3])
            if _edge_key(b, c) in self._constraints:
                raise DegenerateGeometry(f"Target {p} lies on constraint ({b}, {c})")
        if not self._is_finite(t) or self._tri_domain[t] != self._tri_domain[star[0]]:
            raise DegenerateGeometry(f"Target {p} is outside the region of vertex {v}")
        for a, b in self._constraints:
            if segments_cross(old, p, self._xy(a), self._xy(b)):
                raise DegenerateGeometry(f"Move of vertex {v} crosses constraint ({a}, {b})")

        fill = self._ear_clip([b for b, _ in link])
        self._remove_vertex(v, star, link, fill)
        self._points[v] = p
        self._insert_vertex_at(v, self.locate(p, hint=self._last_triangle))

    def _ear_clip(self, polygon: List[int]) -> List[Tuple[int, int, int]]:
        """Triangulate the CCW link polygon of a vertex, preferring Delaunay ears."""
        remaining = list(polygon)
        triangles: List[Tuple[int, int, int]] = []
        while len(remaining) > 3:
            n = len(remaining)
            fallback = None
            chosen = None
            for k in range(n):
                p, q, r = remaining[k - 1], remaining[k], remaining[(k + 1) % n]
                pp, pq, pr = self._xy(p), self._xy(q), self._xy(r)
                if orient2d(pp, pq, pr) <= 0.0:
                    continue
                others = [self._xy(w) for w in remaining if w not in (p, q, r)]
                if any(point_in_triangle(o, pp, pq, pr) for o in others):
                    continue
                if fallback is None:
                    fallback = k
                if all(in_circle(pp, pq, pr, o) <= 0.0 for o in others):
                    chosen = k
                    break
            if chosen is None:
                chosen = fallback
            if chosen is None:
                raise DegenerateGeometry("Link polygon has no ear")
            triangles.append((remaining[chosen - 1], remaining[chosen],
                              remaining[(chosen + 1) % len(remaining)]))
            del remaining[chosen]

        p, q, r = remaining
        if orient2d(self._xy(p), self._xy(q), self._xy(r)) <= 0.0:
            raise DegenerateGeometry("Link polygon collapses to a segment")
        triangles.append((p, q, r))
        return triangles

    def _remove_vertex(self, v: int, star: List[int], link: List[Tuple[int, int]],
                       fill: List[Tuple[int, int, int]]) -> None:
        domain = bool(self._tri_domain[star[0]])
        outer: Dict[Tuple[int, int], int] = {}
        for t, (b, c) in zip(star, link):
            outer[(b, c)] = int(self._tri_neighbors[t, self._local_index(t, v)])
        for t in star:
            self._kill_triangle(t)
        self._vertex_triangle[v] = -1

        directed: Dict[Tuple[int, int], Tuple[int, int]] = {}
        created = []
        for a, b, c in fill:
            t = self._new_triangle(a, b, c, domain)
            created.append(t)
            directed[(b, c)] = (t, 0)
            directed[(c, a)] = (t, 1)
            directed[(a, b)] = (t, 2)

        diagonals = []
        for (x, y), (t, i) in directed.items():
            if (y, x) in directed:
                self._tri_neighbors[t, i] = directed[(y, x)][0]
                if x < y:
                    diagonals.append((x, y))
            else:
                u = outer[(x, y)]
                self._tri_neighbors[t, i] = u
                if u >= 0:
                    self._tri_neighbors[u, self._opposite_index(u, x, y)] = t

        self._restore_delaunay(diagonals)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def number_of_vertices(self) -> int:
        return self._n_vertices - SUPER_VERTICES

    @property
    def number_of_faces(self) -> int:
        return len(self.finite_triangles())

    @property
    def constraints(self) -> List[Tuple[int, int]]:
        return sorted(self._constraints)

    def vertices(self) -> range:
        """Handles of all real (non-bounding) vertices, in insertion order."""
        return range(SUPER_VERTICES, self._n_vertices)

    def point(self, v: VertexHandle) -> Point:
        return self._xy(v)

    def points(self) -> np.ndarray:
        """Coordinates of the real vertices as an (n, 2) array, in handle order."""
        return self._points[SUPER_VERTICES:self._n_vertices].copy()

    def is_constrained(self, v: VertexHandle) -> bool:
        return bool(self._constrained[v])

    def is_constraint_edge(self, a: VertexHandle, b: VertexHandle) -> bool:
        return _edge_key(a, b) in self._constraints

    def is_bounding_vertex(self, v: VertexHandle) -> bool:
        return self._is_super(v)

    def incident_triangles(self, v: VertexHandle) -> List[Triangle]:
        """
        Triangles around ``v`` in CCW order.

        Each triangle's vertices are rotated so that ``v`` comes first; the
        remaining two are the link edge opposite ``v``.
        """
        result = []
        for t in self._star(v):
            i = self._local_index(t, v)
            row = self._tri_vertices[t]
            result.append(Triangle(
                index=t,
                vertices=(v, int(row[(i + 1) % 3]), int(row[(i + 2) % 3])),
                in_domain=bool(self._tri_domain[t]) and self._is_finite(t),
            ))
        return result

    def incident_edges(self, v: VertexHandle) -> List[Tuple[int, float]]:
        """
        Neighbours of ``v`` in CCW order with the length of the connecting edge.

        Edges to the bounding vertices are not part of the mesh and are left out.
        """
        px, py = self._xy(v)
        edges = []
        for tri in self.incident_triangles(v):
            w = tri.vertices[1]
            if self._is_super(w):
                continue
            qx, qy = self._xy(w)
            edges.append((w, math.hypot(qx - px, qy - py)))
        return edges

    def finite_triangles(self) -> List[Triangle]:
        """Live triangles not touching the bounding vertices."""
        result = []
        for t in np.flatnonzero(self._tri_alive[:self._n_triangles]):
            t = int(t)
            if self._is_finite(t):
                a, b, c = (int(x) for x in self._tri_vertices[t])
                result.append(Triangle(t, (a, b, c), bool(self._tri_domain[t])))
        return result

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_valid(self) -> bool:
        """Check orientation and neighbour symmetry of every live triangle."""
        for t in np.flatnonzero(self._tri_alive[:self._n_triangles]):
            t = int(t)
            a, b, c = self._tri_points(t)
            if orient2d(a, b, c) <= 0.0:
                logger.warning("Triangle is not counter-clockwise", triangle=t)
                return False
            for i in range(3):
                u = int(self._tri_neighbors[t, i])
                if u < 0:
                    continue
                if not self._tri_alive[u] or t not in self._tri_neighbors[u]:
                    logger.warning("Asymmetric adjacency", triangle=t, neighbor=u)
                    return False
        return True

    def is_delaunay(self) -> bool:
        """Check the empty-circumcircle property across every unconstrained edge."""
        for tri in self.finite_triangles():
            t = tri.index
            for i in range(3):
                u = int(self._tri_neighbors[t, i])
                if u < 0 or not self._is_finite(u):
                    continue
                b = int(self._tri_vertices[t, (i + 1) % 3])
                c = int(self._tri_vertices[t, (i + 2) % 3])
                if _edge_key(b, c) in self._constraints:
                    continue
                d = int(self._tri_vertices[u, self._opposite_index(u, b, c)])
                pa, pb, pc = self._tri_points(t)
                if in_circle(pa, pb, pc, self._xy(d)) > 0.0:
                    logger.warning("Delaunay violation", triangle=t, vertex=d)
                    return False
        return True

    def constraints_present(self) -> bool:
        """Check that every constraint is still an edge of the triangulation."""
        return all(self.has_edge(a, b) for a, b in self._constraints)
