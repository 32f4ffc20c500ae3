"""Error types raised by the mesh optimization engine."""


class LloydError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(LloydError, ValueError):
    """Optimizer options are out of range or ambiguous."""


class DegenerateGeometry(LloydError, ArithmeticError):
    """A geometric construction is ill-defined (collinear, zero area, ...).

    Raised by cell/centroid computations and by rejected relocations.
    The relaxation step recovers from it by freezing the vertex for that pass.
    """


class InvalidRelocation(LloydError, RuntimeError):
    """Attempt to move a constrained, super-triangle or unknown vertex."""


class MeshInputError(LloydError, ValueError):
    """Input arrays describe a malformed mesh."""
