"""Centroid targets and normalized displacement of vertices."""

from typing import Sequence

import numpy as np

from .geometry import Point, polygon_centroid
from .triangulation import Triangulation, VertexHandle


def centroid(polygon: Sequence[Point]) -> Point:
    """Area centroid of a Voronoi cell."""
    return polygon_centroid(polygon)


def displacement(store: Triangulation, v: VertexHandle, target: Point) -> np.ndarray:
    """Vector from the current position of ``v`` to ``target``."""
    return np.asarray(target, dtype=np.float64) - np.asarray(store.point(v), dtype=np.float64)


def shortest_incident_edge(store: Triangulation, v: VertexHandle) -> float:
    """Length of the shortest edge at ``v``; 0.0 for an isolated vertex."""
    edges = store.incident_edges(v)
    if not edges:
        return 0.0
    return min(length for _, length in edges)


def displacement_ratio(store: Triangulation, v: VertexHandle, move: np.ndarray) -> float:
    """
    Displacement length relative to the shortest incident edge.

    This dimensionless ratio is what the convergence ratio and the freeze
    bound are compared against. An isolated vertex reports 0.0 (no move
    needed) instead of dividing by zero.
    """
    shortest = shortest_incident_edge(store, v)
    if shortest <= 0.0:
        return 0.0
    return float(np.hypot(move[0], move[1])) / shortest
