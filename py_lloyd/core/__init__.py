"""
Core mesh relaxation functionality.
"""

from .exceptions import ConfigurationError, DegenerateGeometry, InvalidRelocation, LloydError, MeshInputError
from .triangulation import Triangle, Triangulation
from .mesh_builder import MeshArrays, build_mesh, export_mesh
from .voronoi_cell import domain_region, voronoi_cell
from .displacement import centroid, displacement, displacement_ratio, shortest_incident_edge
from .relaxation import StepReport, relaxation_step
from .optimizer import LloydOptimizer, LloydOptions, OptimizationResult, OptimizationStatus, lloyd_optimize

__all__ = ['LloydError', 'ConfigurationError', 'DegenerateGeometry', 'InvalidRelocation', 'MeshInputError',
           'Triangle', 'Triangulation', 'MeshArrays', 'build_mesh', 'export_mesh',
           'domain_region', 'voronoi_cell', 'centroid', 'displacement', 'displacement_ratio', 'shortest_incident_edge',
           'StepReport', 'relaxation_step',
           'LloydOptimizer', 'LloydOptions', 'OptimizationResult', 'OptimizationStatus', 'lloyd_optimize']
