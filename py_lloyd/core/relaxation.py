"""
One Lloyd relaxation pass over the movable vertices of a triangulation.

Moves are applied immediately: each vertex's cell is computed from the
triangulation as it stands right before that vertex is processed, so a
vertex sees the already-updated positions of neighbours handled earlier in
the same pass. Vertices are visited in ascending handle order, which makes a
pass reproducible.
"""

from dataclasses import dataclass, field
from typing import Dict

import structlog

from .displacement import centroid, displacement, displacement_ratio
from .exceptions import DegenerateGeometry
from .triangulation import Triangulation
from .voronoi_cell import domain_region, voronoi_cell

logger = structlog.get_logger()


@dataclass
class StepReport:
    """Outcome of a single relaxation pass."""
    max_ratio: float = 0.0  # Largest ratio among vertices that were not frozen
    moved: int = 0
    frozen: int = 0
    skipped: int = 0  # No cell, degenerate geometry or rejected move
    ratios: Dict[int, float] = field(default_factory=dict)  # Pre-move ratio per vertex


def relaxation_step(store: Triangulation, freeze_bound: float = 0.0) -> StepReport:
    """
    Move every movable vertex toward the centroid of its Voronoi cell.

    Args:
        store: Triangulation to relax in place
        freeze_bound: Vertices whose displacement ratio is below this value
            are left where they are for this pass

    Returns:
        StepReport whose ``max_ratio`` is the pass's convergence signal
    """
    report = StepReport()
    domain = domain_region(store)

    for v in store.vertices():
        if store.is_constrained(v):
            continue

        try:
            cell = voronoi_cell(store, v, domain)
            if cell is None:
                report.skipped += 1
                continue
            target = centroid(cell)
        except DegenerateGeometry as e:
            logger.debug("Degenerate cell, vertex frozen for this pass", vertex=v, reason=str(e))
            report.skipped += 1
            continue

        move = displacement(store, v, target)
        ratio = displacement_ratio(store, v, move)
        report.ratios[v] = ratio

        if ratio < freeze_bound:
            report.frozen += 1
            continue

        try:
            store.relocate(v, target)
        except DegenerateGeometry as e:
            logger.debug("Relocation rejected", vertex=v, target=target, reason=str(e))
            report.skipped += 1
            continue

        report.moved += 1
        report.max_ratio = max(report.max_ratio, ratio)

    logger.debug("Relaxation pass finished",
                 moved=report.moved, frozen=report.frozen,
                 skipped=report.skipped, max_ratio=report.max_ratio)
    return report
