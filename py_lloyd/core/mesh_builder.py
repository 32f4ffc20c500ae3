"""
Building a constrained triangulation from mesh arrays and exporting it back.

The exchange layout mirrors the text mesh format used by the command line
tool: a point list, a list of boundary segments given as index pairs into the
point list, and an optional list of seed indices whose points mark excluded
regions. The export is a vertex list plus a face list of index triples.
"""

from typing import NamedTuple, Sequence

import numpy as np
import structlog

from .exceptions import MeshInputError
from .triangulation import SUPER_VERTICES, Triangulation

logger = structlog.get_logger()


class MeshArrays(NamedTuple):
    """Mesh ready to be written out."""
    vertices: np.ndarray  # (n, 2) float64
    faces: np.ndarray     # (f, 3) int64, CCW, indices into vertices
    dimension: int


def _as_points(points) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise MeshInputError(f"Points must have shape (n, 2), got {arr.shape}")
    if len(arr) == 0:
        raise MeshInputError("Mesh has no points")
    if not np.all(np.isfinite(arr)):
        bad = int(np.flatnonzero(~np.all(np.isfinite(arr), axis=1))[0])
        raise MeshInputError(f"Point {bad} has non-finite coordinates")
    return arr


def _as_indices(values, n_points: int, width: int, what: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.int64)
    if arr.size == 0:
        return arr.reshape((0, width)) if width > 1 else arr.reshape(0)
    if width > 1 and (arr.ndim != 2 or arr.shape[1] != width):
        raise MeshInputError(f"{what} must have shape (m, {width}), got {arr.shape}")
    if width == 1 and arr.ndim != 1:
        raise MeshInputError(f"{what} must be a flat index list, got shape {arr.shape}")
    if np.any(arr < 0) or np.any(arr >= n_points):
        raise MeshInputError(f"{what} refer to points outside 0..{n_points - 1}")
    return arr


def build_mesh(points: Sequence[Sequence[float]],
               constraints: Sequence[Sequence[int]] = (),
               seeds: Sequence[int] = (),
               seed_points: Sequence[Sequence[float]] = ()) -> Triangulation:
    """
    Build the constrained Delaunay triangulation of a mesh description.

    Points are inserted in order, then every boundary segment, then the
    domain is marked from the seeds. Point ``i`` gets vertex handle
    ``i + SUPER_VERTICES``.

    Args:
        points: (n, 2) coordinates
        constraints: (m, 2) index pairs of boundary segments
        seeds: Indices of points marking excluded regions
        seed_points: Extra seed coordinates marking excluded regions

    Returns:
        Triangulation ready for optimization

    Raises:
        MeshInputError: for malformed arrays, duplicate points, dangling
            indices or crossing constraints
    """
    pts = _as_points(points)
    n = len(pts)
    segments = _as_indices(constraints, n, 2, "Constraints")
    seed_idx = _as_indices(seeds, n, 1, "Seeds")
    extra_seeds = np.asarray(seed_points, dtype=np.float64).reshape(-1, 2)

    unique = np.unique(pts, axis=0)
    if len(unique) != n:
        raise MeshInputError(f"Mesh contains {n - len(unique)} duplicate point(s)")

    logger.info("Building mesh", points=n, constraints=len(segments),
                seeds=len(seed_idx) + len(extra_seeds))

    min_xy = pts.min(axis=0)
    max_xy = pts.max(axis=0)
    store = Triangulation((min_xy[0], min_xy[1], max_xy[0], max_xy[1]), capacity=n + SUPER_VERTICES)

    for i, p in enumerate(pts):
        handle = store.insert(p)
        if handle != i + SUPER_VERTICES:
            raise MeshInputError(f"Point {i} was merged with an existing vertex")

    for k, (a, b) in enumerate(segments):
        if a == b:
            raise MeshInputError(f"Constraint {k} has identical endpoints ({a}, {b})")
        store.insert_constraint(int(a) + SUPER_VERTICES, int(b) + SUPER_VERTICES)

    seed_coords = [tuple(pts[i]) for i in seed_idx] + [tuple(p) for p in extra_seeds]
    try:
        store.mark_domain(seed_coords)
    except ValueError as e:
        raise MeshInputError(f"Seed point outside the mesh: {e}") from e

    logger.info("Mesh built", vertices=store.number_of_vertices,
                faces=store.number_of_faces, constraints=len(store.constraints))
    return store


def export_mesh(store: Triangulation, domain_only: bool = False) -> MeshArrays:
    """
    Export vertices and finite triangles with dense indices.

    Vertex ``k`` of the export is the vertex inserted ``k``-th, so indices
    match the point list the mesh was built from.

    Args:
        store: Triangulation to export
        domain_only: Only export triangles inside the domain

    Returns:
        MeshArrays with vertices, faces and the dimension (2, or lower for
        degenerate point sets)
    """
    vertices = store.points()
    triangles = [tri for tri in store.finite_triangles() if tri.in_domain or not domain_only]
    faces = np.array([tri.vertices for tri in triangles], dtype=np.int64).reshape(-1, 3)
    faces -= SUPER_VERTICES

    if len(faces):
        dimension = 2
    elif len(vertices) > 1:
        dimension = 1
    else:
        dimension = 0
    return MeshArrays(vertices=vertices, faces=faces, dimension=dimension)
