"""
Convergence control for Lloyd relaxation.

The optimizer repeats relaxation passes until the first stopping criterion
fires. Before every pass it checks, in order, the wall-clock limit, the
iteration cap and the cancel flag; after every pass it compares the largest
displacement ratio with the convergence ratio. Every terminal state leaves
the triangulation fully valid.
"""

import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import structlog

from .exceptions import ConfigurationError
from .relaxation import relaxation_step
from .triangulation import Triangulation

logger = structlog.get_logger()


class OptimizationStatus(Enum):
    """Terminal state of an optimization run. None of them is an error."""
    CONVERGED = "converged"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class LloydOptions:
    """
    Stopping and freezing options.

    ``None`` disables a limit. Zero is rejected for ``iterations`` and
    ``time_limit`` so that "unlimited" and "stop immediately" cannot be
    confused; a ratio or bound of 0.0 means "never converge on ratio" and
    "never freeze" respectively.
    """
    iterations: Optional[int] = None
    time_limit: Optional[float] = None  # seconds
    convergence_ratio: float = 0.0
    freeze_bound: float = 0.0

    def __post_init__(self):
        if self.iterations is not None:
            if isinstance(self.iterations, bool) or int(self.iterations) != self.iterations:
                raise ConfigurationError(f"iterations must be an integer, got {self.iterations!r}")
            if self.iterations <= 0:
                raise ConfigurationError(
                    f"iterations must be positive or None for unlimited, got {self.iterations}")
        if self.time_limit is not None:
            if not math.isfinite(self.time_limit) or self.time_limit <= 0:
                raise ConfigurationError(
                    f"time_limit must be positive or None for unlimited, got {self.time_limit}")
        for name in ("convergence_ratio", "freeze_bound"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")

    @property
    def is_unbounded(self) -> bool:
        """True when only a fixed point or cancellation can stop the run."""
        return (self.iterations is None and self.time_limit is None
                and self.convergence_ratio == 0.0)


@dataclass
class OptimizationResult:
    """Summary of a finished optimization run."""
    status: OptimizationStatus
    iterations: int
    elapsed: float
    last_max_ratio: Optional[float] = None


class LloydOptimizer:
    """Drives relaxation passes over a triangulation it exclusively owns."""

    def __init__(self, store: Triangulation, options: Optional[LloydOptions] = None,
                 cancel_event: Optional[threading.Event] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the optimizer.

        Args:
            store: Triangulation to relax in place
            options: Stopping and freezing options
            cancel_event: Externally set flag, honoured between passes only
            clock: Monotonic clock used for the time limit
        """
        self.store = store
        self.options = options or LloydOptions()
        self.cancel_event = cancel_event
        self.clock = clock

    def run(self) -> OptimizationResult:
        options = self.options
        if options.is_unbounded:
            logger.warning("No iteration, time or convergence limit set; "
                           "optimization stops only at a fixed point or on cancel")

        logger.info("Starting Lloyd optimization",
                    vertices=self.store.number_of_vertices,
                    iterations=options.iterations,
                    time_limit=options.time_limit,
                    convergence_ratio=options.convergence_ratio,
                    freeze_bound=options.freeze_bound)

        start = self.clock()
        passes = 0
        last_max_ratio = None

        while True:
            elapsed = self.clock() - start
            if options.time_limit is not None and elapsed >= options.time_limit:
                status = OptimizationStatus.TIMED_OUT
                break
            if options.iterations is not None and passes >= options.iterations:
                status = OptimizationStatus.ITERATION_LIMIT_REACHED
                break
            if self.cancel_event is not None and self.cancel_event.is_set():
                status = OptimizationStatus.CANCELLED
                break

            report = relaxation_step(self.store, options.freeze_bound)
            passes += 1
            last_max_ratio = report.max_ratio
            logger.info("Relaxation pass complete", iteration=passes,
                        max_ratio=report.max_ratio, moved=report.moved,
                        frozen=report.frozen, skipped=report.skipped)

            if options.convergence_ratio > 0.0 and report.max_ratio < options.convergence_ratio:
                status = OptimizationStatus.CONVERGED
                break
            if report.max_ratio == 0.0:
                status = OptimizationStatus.CONVERGED
                break

        result = OptimizationResult(
            status=status,
            iterations=passes,
            elapsed=self.clock() - start,
            last_max_ratio=last_max_ratio,
        )
        logger.info("Lloyd optimization finished", status=result.status.value,
                    iterations=result.iterations, elapsed=round(result.elapsed, 3),
                    last_max_ratio=result.last_max_ratio)
        return result


def lloyd_optimize(store: Triangulation, options: Optional[LloydOptions] = None,
                   cancel_event: Optional[threading.Event] = None) -> OptimizationResult:
    """Relax ``store`` in place with the given options."""
    return LloydOptimizer(store, options, cancel_event).run()
