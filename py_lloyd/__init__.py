"""Lloyd relaxation of constrained triangular meshes."""

__version__ = "0.1.0"
