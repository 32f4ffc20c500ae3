"""Entry point wiring settings and logging into the optimizer."""

import threading
from typing import Optional

import structlog

from .config import Settings, settings as default_settings
from .core.optimizer import OptimizationResult, lloyd_optimize
from .core.triangulation import Triangulation
from .logging_config import configure_logging

logger = structlog.get_logger()


def optimize_from_settings(store: Triangulation, settings: Optional[Settings] = None,
                           cancel_event: Optional[threading.Event] = None) -> OptimizationResult:
    """
    Relax ``store`` in place using environment driven settings.

    Args:
        store: Triangulation to relax
        settings: Settings to use, the module level ``LLOYD_*`` settings by default
        cancel_event: Optional flag checked between passes

    Returns:
        OptimizationResult of the run
    """
    settings = settings or default_settings
    configure_logging(settings.log_level, settings.log_format)

    logger.debug("Settings loaded", log_level=settings.log_level, log_format=settings.log_format)
    return lloyd_optimize(store, settings.to_options(), cancel_event)
