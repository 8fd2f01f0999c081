"""Solvers: run orchestration, results and parallel kernels."""

from pygeotherm.solvers.base import SimulationResults, Solver
from pygeotherm.solvers.parallel import (
    RadialPartition,
    ScalarLanes,
    VectorLanes,
    select_lanes,
)
from pygeotherm.solvers.geothermal import GeothermalSolver

__all__ = [
    "SimulationResults",
    "Solver",
    "RadialPartition",
    "ScalarLanes",
    "VectorLanes",
    "select_lanes",
    "GeothermalSolver",
]
